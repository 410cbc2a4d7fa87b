"""
Test suite for the cart: adding items against store stock, updates,
removal and per-store carts
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from storefront.cart.models import Cart, CartItem
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CartAPITests(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product(price=Decimal('10000'), weight=500)
        TestDataFactory.create_stock(self.product, self.store, quantity=5)
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _add(self, quantity=1, product=None, store=None):
        return self.client.post('/api/v1/cart/items', {
            'productId': (product or self.product).id,
            'storeId': (store or self.store).id,
            'quantity': quantity,
        })

    def test_empty_cart(self):
        response = self.client.get('/api/v1/cart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['cartItems'], [])
        self.assertEqual(response.data['data']['totalItems'], 0)

    def test_add_item(self):
        response = self._add(2)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['storeId'], self.store.id)
        self.assertEqual(data['totalItems'], 2)
        self.assertEqual(data['subtotal'], Decimal('20000.00'))
        self.assertEqual(data['cartItems'][0]['stockAvailable'], 5)

    def test_adding_same_product_merges_quantity(self):
        self._add(2)
        self._add(1)
        item = CartItem.objects.get()
        self.assertEqual(item.quantity, 3)

    def test_cannot_exceed_stock(self):
        self._add(4)
        response = self._add(2)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['data']['available'], 5)
        self.assertEqual(CartItem.objects.get().quantity, 4)

    def test_product_without_stock_in_store(self):
        other_store = TestDataFactory.create_store()
        response = self._add(1, store=other_store)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unverified_user_cannot_add(self):
        self.client.authenticate_user(TestDataFactory.create_user(is_verified=False))
        response = self._add(1)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_quantity(self):
        self._add(1)
        item = CartItem.objects.get()
        response = self.client.patch(f'/api/v1/cart/items/{item.id}', {'quantity': 5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.quantity, 5)

        response = self.client.patch(f'/api/v1/cart/items/{item.id}', {'quantity': 6})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v1/cart/items/{item.id}', {'quantity': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_item(self):
        self._add(1)
        item = CartItem.objects.get()
        response = self.client.delete(f'/api/v1/cart/items/{item.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CartItem.objects.exists())

    def test_cannot_touch_other_users_item(self):
        self._add(1)
        item = CartItem.objects.get()
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.delete(f'/api/v1/cart/items/{item.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_separate_cart_per_store(self):
        other_store = TestDataFactory.create_store()
        TestDataFactory.create_stock(self.product, other_store, quantity=3)
        self._add(1)
        self._add(2, store=other_store)
        self.assertEqual(Cart.objects.filter(user=self.user).count(), 2)

        response = self.client.get('/api/v1/cart', {'storeId': other_store.id})
        self.assertEqual(response.data['data']['totalItems'], 2)

    def test_item_discount_in_cart(self):
        TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('10'))
        response = self._add(2)
        line = response.data['data']['cartItems'][0]
        self.assertEqual(line['originalPrice'], Decimal('20000.00'))
        self.assertEqual(line['discountAmount'], Decimal('2000.00'))
        self.assertEqual(line['finalPrice'], Decimal('18000.00'))
        self.assertIsNotNone(line['appliedDiscount'])

    def test_deleted_product_hidden_from_cart(self):
        self._add(1)
        self.product.soft_delete()
        response = self.client.get('/api/v1/cart')
        self.assertEqual(response.data['data']['cartItems'], [])

    def test_clear_cart(self):
        self._add(2)
        response = self.client.delete('/api/v1/cart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CartItem.objects.exists())
