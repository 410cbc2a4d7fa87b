"""
Test suite for Inventory module
Tests: stock creation, quantity changes with journals, store scoping
"""
from django.test import TestCase
from rest_framework import status

from storefront.core.exceptions import StockError
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.inventory.models import Stock, StockJournal
from storefront.inventory.services import change_stock, set_stock_quantity, lock_stocks


class StockServiceTests(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product()
        self.stock = TestDataFactory.create_stock(self.product, self.store, quantity=10)

    def test_change_stock_writes_journal(self):
        journal = change_stock(self.stock, -3, reason='Sold')
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 7)
        self.assertEqual(journal.type, StockJournal.TYPE_OUT)
        self.assertEqual(journal.quantity, 3)
        self.assertEqual((journal.quantity_before, journal.quantity_after), (10, 7))

    def test_change_stock_never_below_zero(self):
        with self.assertRaises(StockError) as ctx:
            change_stock(self.stock, -11)
        self.assertEqual(ctx.exception.data['available'], 10)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 10)
        self.assertFalse(StockJournal.objects.exists())

    def test_zero_change_rejected(self):
        with self.assertRaises(StockError):
            change_stock(self.stock, 0)

    def test_set_stock_quantity(self):
        journal = set_stock_quantity(self.stock, 25, reason='Restock')
        self.assertEqual(journal.type, StockJournal.TYPE_IN)
        self.assertEqual(journal.quantity, 15)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 25)

    def test_lock_stocks_skips_deleted(self):
        other = TestDataFactory.create_product()
        TestDataFactory.create_stock(other, self.store, quantity=5).soft_delete()
        locked = lock_stocks(self.store, [self.product.id, other.id])
        self.assertEqual(list(locked), [self.product.id])


class StockAPITests(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.other_store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product()
        self.super_admin = TestDataFactory.create_super_admin()
        self.store_admin = TestDataFactory.create_store_admin(self.store)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_stock_with_initial_journal(self):
        response = self.client.post('/api/v1/stocks', {
            'productId': self.product.id, 'storeId': self.store.id, 'quantity': 12})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        stock = Stock.objects.get(product=self.product, store=self.store)
        self.assertEqual(stock.quantity, 12)
        journal = stock.journals.get()
        self.assertEqual(journal.reason, 'Initial stock')
        self.assertEqual(journal.admin, self.super_admin)

    def test_create_duplicate_stock(self):
        TestDataFactory.create_stock(self.product, self.store)
        response = self.client.post('/api/v1/stocks', {
            'productId': self.product.id, 'storeId': self.store.id, 'quantity': 1})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_revives_deleted_stock(self):
        stock = TestDataFactory.create_stock(self.product, self.store, quantity=4)
        stock.soft_delete()
        response = self.client.post('/api/v1/stocks', {
            'productId': self.product.id, 'storeId': self.store.id, 'quantity': 9})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        stock.refresh_from_db()
        self.assertIsNone(stock.deleted_at)
        self.assertEqual(stock.quantity, 9)

    def test_store_admin_cannot_create_stock(self):
        self.client.authenticate_user(self.store_admin)
        response = self.client.post('/api/v1/stocks', {
            'productId': self.product.id, 'storeId': self.store.id, 'quantity': 1})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_store_admin_updates_own_store_stock(self):
        stock = TestDataFactory.create_stock(self.product, self.store, quantity=10)
        self.client.authenticate_user(self.store_admin)
        response = self.client.put(f'/api/v1/stocks/{stock.id}', {'quantity': 4, 'reason': 'Damaged'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['quantity'], 4)
        journal = stock.journals.get()
        self.assertEqual(journal.type, StockJournal.TYPE_OUT)
        self.assertEqual(journal.reason, 'Damaged')

    def test_update_requires_reason(self):
        stock = TestDataFactory.create_stock(self.product, self.store, quantity=10)
        response = self.client.put(f'/api/v1/stocks/{stock.id}', {'quantity': 4})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_quantity_rejected(self):
        stock = TestDataFactory.create_stock(self.product, self.store, quantity=10)
        response = self.client.put(f'/api/v1/stocks/{stock.id}', {'quantity': -1, 'reason': 'Oops'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_store_admin_cannot_touch_other_store(self):
        stock = TestDataFactory.create_stock(self.product, self.other_store, quantity=10)
        self.client.authenticate_user(self.store_admin)
        response = self.client.put(f'/api/v1/stocks/{stock.id}', {'quantity': 4, 'reason': 'Nope'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_store_admin_list_is_scoped(self):
        TestDataFactory.create_stock(self.product, self.store)
        TestDataFactory.create_stock(self.product, self.other_store)
        self.client.authenticate_user(self.store_admin)
        response = self.client.get('/api/v1/stocks', {'storeId': self.other_store.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['storeId'] for s in response.data['data']['stocks']], [self.store.id])

    def test_regular_user_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/stocks')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_journal_history(self):
        stock = TestDataFactory.create_stock(self.product, self.store, quantity=10)
        change_stock(stock, 5, reason='Restock')
        change_stock(stock, -2, reason='Sold')
        response = self.client.get(f'/api/v1/stocks/{stock.id}/journals')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total'], 2)
        self.assertEqual(response.data['data']['journals'][0]['reason'], 'Sold')

        response = self.client.get(f'/api/v1/stocks/{stock.id}/journals', {'type': 'IN'})
        self.assertEqual(response.data['data']['total'], 1)

    def test_delete_and_restore(self):
        stock = TestDataFactory.create_stock(self.product, self.store)
        response = self.client.delete(f'/api/v1/stocks/{stock.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/stocks/{stock.id}/restore')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stock.refresh_from_db()
        self.assertIsNone(stock.deleted_at)
