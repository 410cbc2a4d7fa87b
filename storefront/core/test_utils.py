"""
Test utilities and factories for creating test data
"""
import random
import string
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from storefront.catalog.models import Category, Product, ProductImage
from storefront.core.models import UserAddress
from storefront.discounts.models import DiscountRule, Voucher
from storefront.inventory.models import Stock
from storefront.stores.models import Store

User = get_user_model()

# Central Jakarta; most fixtures sit a few km around it
JAKARTA = (-6.2000, 106.8166)


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', role=User.ROLE_USER, is_verified=True, store=None,
                    full_name='Test User'):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            username=email,
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            is_verified=is_verified,
            store=store,
        )

    @staticmethod
    def create_super_admin(email=None):
        return TestDataFactory.create_user(email=email, role=User.ROLE_SUPER_ADMIN)

    @staticmethod
    def create_store_admin(store, email=None):
        return TestDataFactory.create_user(email=email, role=User.ROLE_STORE_ADMIN, store=store)

    @staticmethod
    def create_store(name=None, latitude=JAKARTA[0], longitude=JAKARTA[1], is_active=True):
        """Create a test store"""
        if not name:
            name = f'Store_{TestDataFactory.random_string(6)}'
        return Store.objects.create(
            name=name,
            address=f'Test Address {name}',
            city='Jakarta',
            province='DKI Jakarta',
            latitude=latitude,
            longitude=longitude,
            is_active=is_active,
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_product(name=None, price=Decimal('10000'), weight=1000, category=None, image_url=None):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not category:
            category = TestDataFactory.create_category()
        product = Product.objects.create(
            name=name,
            description=f'Test product {name}',
            price=price,
            weight=weight,
            category=category,
        )
        if image_url:
            ProductImage.objects.create(product=product, image_url=image_url)
        return product

    @staticmethod
    def create_stock(product, store, quantity=10):
        return Stock.objects.create(product=product, store=store, quantity=quantity)

    @staticmethod
    def create_address(user, latitude=JAKARTA[0], longitude=JAKARTA[1], is_main=True, label='Home'):
        """Create a shipping address for a user"""
        return UserAddress.objects.create(
            user=user,
            label=label,
            full_address='Jl. Test No. 1, Jakarta',
            latitude=latitude,
            longitude=longitude,
            recipient_name=user.full_name or 'Recipient',
            recipient_phone='081234567890',
            is_main=is_main,
        )

    @staticmethod
    def create_discount(store, type=DiscountRule.TYPE_PERCENTAGE, value=Decimal('10'), product=None,
                        min_purchase=None, max_discount_amount=None, start_date=None, end_date=None):
        """Create a discount rule for a store (product-level when product is given)"""
        return DiscountRule.objects.create(
            store=store,
            product=product,
            description=f'Discount {TestDataFactory.random_string(4)}',
            type=type,
            value=value,
            min_purchase=min_purchase,
            max_discount_amount=max_discount_amount,
            start_date=start_date,
            end_date=end_date,
        )

    @staticmethod
    def create_voucher(user, code=None, type=Voucher.TYPE_NOMINAL, target=Voucher.TARGET_TRANSACTION,
                       value=Decimal('5000'), min_purchase=Decimal('0'), max_discount=None, days=7):
        if not code:
            code = f'VC-{TestDataFactory.random_string(8).upper()}'
        return Voucher.objects.create(
            user=user,
            code=code,
            description='Test voucher',
            type=type,
            target=target,
            value=value,
            min_purchase=min_purchase,
            max_discount=max_discount,
            expires_at=timezone.now() + timedelta(days=days),
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
