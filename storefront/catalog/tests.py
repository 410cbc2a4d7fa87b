"""
Test suite for the catalog: categories, products, store-aware product
listing and the homepage payload
"""
from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from storefront.catalog.models import Category, Product
from storefront.core.cache import CATALOG_NAMESPACE, make_key, namespace_version
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.discounts.models import DiscountRule


class CategoryAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories', {'name': '  Fruits ', 'description': 'Fresh'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['name'], 'Fruits')
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_duplicate_name_case_insensitive(self):
        TestDataFactory.create_category(name='Fruits')
        response = self.client.post('/api/v1/categories', {'name': 'fruits'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_store_admin_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_store_admin(TestDataFactory.create_store()))
        response = self.client.post('/api/v1/categories', {'name': 'Fruits'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_counts_alive_products(self):
        category = TestDataFactory.create_category(name='Fruits')
        TestDataFactory.create_product(category=category)
        TestDataFactory.create_product(category=category).soft_delete()
        self.client.logout()
        response = self.client.get('/api/v1/categories')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'][0]['productCount'], 1)

    def test_cannot_delete_category_with_products(self):
        category = TestDataFactory.create_category()
        TestDataFactory.create_product(category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_list_deleted_and_restore(self):
        category = TestDataFactory.create_category()
        response = self.client.delete(f'/api/v1/categories/{category.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/categories/deleted')
        self.assertEqual([c['id'] for c in response.data['data']['categories']], [category.id])

        response = self.client.patch(f'/api/v1/categories/{category.id}/restore')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        category.refresh_from_db()
        self.assertIsNone(category.deleted_at)

    def test_list_cache_is_invalidated_on_change(self):
        TestDataFactory.create_category(name='Fruits')
        first = self.client.get('/api/v1/categories')
        self.assertEqual(len(first.data['data']), 1)
        TestDataFactory.create_category(name='Vegetables')
        second = self.client.get('/api/v1/categories')
        self.assertEqual(len(second.data['data']), 2)


class ProductAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.super_admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)
        self.category = TestDataFactory.create_category(name='Fruits')
        self.store = TestDataFactory.create_store()

    def test_create_product_with_images(self):
        response = self.client.post('/api/v1/products', {
            'name': 'Apple',
            'description': 'Red apple',
            'price': '15000',
            'weight': 200,
            'categoryId': self.category.id,
            'imageUrls': ['https://img.test/apple-1.jpg', 'https://img.test/apple-2.jpg'],
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(name='Apple')
        self.assertEqual(list(product.images.values_list('position', flat=True)), [0, 1])

    def test_create_product_negative_price(self):
        response = self.client.post('/api/v1/products', {
            'name': 'Apple', 'price': '-1', 'categoryId': self.category.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_product_in_deleted_category(self):
        self.category.soft_delete()
        response = self.client.post('/api/v1/products', {
            'name': 'Apple', 'price': '100', 'categoryId': self.category.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_product_logs_price_change(self):
        product = TestDataFactory.create_product(name='Apple', category=self.category, price=Decimal('100'))
        response = self.client.put(f'/api/v1/products/{product.id}', {'price': '150'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Product', action='update')
        self.assertEqual(log.changes['price']['new'], '150.00')

    def test_list_with_store_stock_and_discount(self):
        apple = TestDataFactory.create_product(name='Apple', category=self.category, price=Decimal('10000'))
        pear = TestDataFactory.create_product(name='Pear', category=self.category, price=Decimal('20000'))
        TestDataFactory.create_stock(apple, self.store, quantity=5)
        TestDataFactory.create_stock(pear, self.store, quantity=0)
        TestDataFactory.create_discount(self.store, product=apple, value=Decimal('10'))

        response = self.client.get('/api/v1/products', {'storeId': self.store.id, 'sortBy': 'name', 'sortOrder': 'asc'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        products = response.data['data']['products']
        self.assertEqual([p['name'] for p in products], ['Apple', 'Pear'])
        self.assertEqual(products[0]['stock'], 5)
        self.assertTrue(products[0]['canAddToCart'])
        self.assertEqual(products[0]['finalPrice'], Decimal('9000.00'))
        self.assertEqual(products[1]['stock'], 0)
        self.assertFalse(products[1]['canAddToCart'])
        self.assertIsNone(products[1]['discount'])
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_in_stock_filter(self):
        apple = TestDataFactory.create_product(name='Apple', category=self.category)
        pear = TestDataFactory.create_product(name='Pear', category=self.category)
        TestDataFactory.create_stock(apple, self.store, quantity=5)
        TestDataFactory.create_stock(pear, self.store, quantity=0)
        response = self.client.get('/api/v1/products', {'storeId': self.store.id, 'inStock': 'true'})
        self.assertEqual([p['name'] for p in response.data['data']['products']], ['Apple'])

    def test_search_and_price_filters(self):
        TestDataFactory.create_product(name='Green Apple', category=self.category, price=Decimal('5000'))
        TestDataFactory.create_product(name='Red Apple', category=self.category, price=Decimal('15000'))
        TestDataFactory.create_product(name='Banana', category=self.category, price=Decimal('8000'))

        response = self.client.get('/api/v1/products', {'search': 'apple', 'minPrice': '10000'})
        self.assertEqual([p['name'] for p in response.data['data']['products']], ['Red Apple'])

    def test_list_hides_deleted_products(self):
        TestDataFactory.create_product(name='Apple', category=self.category).soft_delete()
        response = self.client.get('/api/v1/products')
        self.assertEqual(response.data['data']['total'], 0)

    def test_unknown_store(self):
        response = self.client.get('/api/v1/products', {'storeId': 9999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_product(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.delete(f'/api/v1/products/{product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(f'/api/v1/products/{product.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class HomepageTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.store = TestDataFactory.create_store(name='Near', latitude=-6.21, longitude=106.82)
        self.far_store = TestDataFactory.create_store(name='Far', latitude=-7.2575, longitude=112.7521)
        self.category = TestDataFactory.create_category(name='Fruits')
        self.product = TestDataFactory.create_product(name='Apple', category=self.category,
                                                      image_url='https://img.test/apple.jpg')
        TestDataFactory.create_stock(self.product, self.store, quantity=3)

    def test_homepage_uses_nearest_store(self):
        TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('20'))
        response = self.client.get('/api/v1/homepage', {'lat': -6.2, 'lng': 106.8166})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['productList']['store']['name'], 'Near')
        self.assertEqual(data['productList']['products'][0]['stock'], 3)
        self.assertEqual(data['navigation']['categories'], [{'id': self.category.id, 'name': 'Fruits'}])
        self.assertEqual(data['heroSection']['carousel'][0]['imageUrl'], 'https://img.test/apple.jpg')
        self.assertIn('companyInfo', data['footer'])

    def test_homepage_without_location_uses_first_store(self):
        response = self.client.get('/api/v1/homepage')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['productList']['store']['id'], self.store.id)

    def test_expired_discount_not_in_carousel(self):
        TestDataFactory.create_discount(self.store, product=self.product,
                                        end_date=timezone.now() - timedelta(days=1))
        response = self.client.get('/api/v1/homepage')
        self.assertEqual(response.data['data']['heroSection']['carousel'], [])

    def test_stock_change_invalidates_homepage(self):
        self.client.get('/api/v1/homepage')
        version = namespace_version(CATALOG_NAMESPACE)
        stock = self.product.stocks.get()
        stock.quantity = 7
        stock.save()
        self.assertGreater(namespace_version(CATALOG_NAMESPACE), version)
        response = self.client.get('/api/v1/homepage')
        self.assertEqual(response.data['data']['productList']['products'][0]['stock'], 7)


class CacheHelperTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_keys_change_after_invalidation(self):
        before = make_key(CATALOG_NAMESPACE, 'homepage', 1)
        Category.objects.create(name='Trigger')
        after = make_key(CATALOG_NAMESPACE, 'homepage', 1)
        self.assertNotEqual(before, after)

    def test_discount_rule_save_invalidates(self):
        version = namespace_version(CATALOG_NAMESPACE)
        TestDataFactory.create_discount(TestDataFactory.create_store(), type=DiscountRule.TYPE_NOMINAL,
                                        value=Decimal('1000'))
        self.assertGreater(namespace_version(CATALOG_NAMESPACE), version)
