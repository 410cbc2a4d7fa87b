"""
Test suite for Reports module
Tests: monthly sales, sales by category/product, stock summary and detail,
dashboard counters and store scoping
"""
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from storefront.cart.models import Cart, CartItem
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.inventory.services import change_stock
from storefront.orders import checkout
from storefront.orders.models import Order


class ReportTestBase(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store(name='Alpha')
        self.other_store = TestDataFactory.create_store(name='Beta')
        self.category = TestDataFactory.create_category(name='Fruits')
        self.product = TestDataFactory.create_product(name='Apple', category=self.category, price=Decimal('10000'))
        self.stock = TestDataFactory.create_stock(self.product, self.store, quantity=20)
        TestDataFactory.create_stock(self.product, self.other_store, quantity=20)
        self.shopper = TestDataFactory.create_user()
        self.address = TestDataFactory.create_address(self.shopper)

        self.super_admin = TestDataFactory.create_super_admin()
        self.store_admin = TestDataFactory.create_store_admin(self.store)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

        now = timezone.localtime()
        self.period = {'month': now.month, 'year': now.year}

    def make_order(self, store, quantity, status=Order.STATUS_PROCESSING):
        cart, _created = Cart.objects.get_or_create(user=self.shopper, store=store)
        CartItem.objects.create(cart=cart, product=self.product, quantity=quantity)
        order = checkout.create_order(self.shopper, {
            'storeId': store.id, 'userAddressId': self.address.id, 'shippingMethod': 'REG'})
        Order.objects.filter(pk=order.pk).update(status=status)
        order.refresh_from_db()
        return order


class SalesReportTests(ReportTestBase):

    def test_monthly_sales_counts_only_paid_statuses(self):
        first = self.make_order(self.store, 1)
        second = self.make_order(self.store, 2, status=Order.STATUS_CONFIRMED)
        self.make_order(self.store, 3, status=Order.STATUS_PENDING_PAYMENT)
        self.make_order(self.store, 1, status=Order.STATUS_CANCELLED)

        response = self.client.get('/api/v1/reports/sales/monthly', self.period)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.data['data']['data']
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['storeName'], 'Alpha')
        self.assertEqual(rows[0]['totalTransactions'], 2)
        self.assertEqual(rows[0]['totalSales'], first.final_total + second.final_total)

    def test_store_admin_sees_only_own_store(self):
        self.make_order(self.store, 1)
        self.make_order(self.other_store, 1)
        self.client.authenticate_user(self.store_admin)
        response = self.client.get('/api/v1/reports/sales/monthly', {**self.period, 'storeId': self.other_store.id})
        rows = response.data['data']['data']
        self.assertEqual([row['storeId'] for row in rows], [self.store.id])

    def test_unassigned_store_admin_is_refused(self):
        self.make_order(self.store, 1)
        self.make_order(self.other_store, 1)
        response = self.client.delete(f'/api/v1/stores/remove-admin/{self.store_admin.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.store_admin)
        response = self.client.get('/api/v1/reports/sales/monthly', self.period)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/orders/admin/all')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/stocks')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_filters_by_store(self):
        self.make_order(self.store, 1)
        self.make_order(self.other_store, 1)
        response = self.client.get('/api/v1/reports/sales/monthly', self.period)
        self.assertEqual(response.data['data']['total'], 2)
        response = self.client.get('/api/v1/reports/sales/monthly', {**self.period, 'storeId': self.other_store.id})
        self.assertEqual(response.data['data']['total'], 1)

    def test_sales_by_category_and_product(self):
        self.make_order(self.store, 2)
        self.make_order(self.store, 1)

        response = self.client.get('/api/v1/reports/sales/by-category', self.period)
        row = response.data['data']['data'][0]
        self.assertEqual(row['categoryName'], 'Fruits')
        self.assertEqual(row['quantity'], 3)
        self.assertEqual(row['totalSales'], Decimal('30000.00'))

        response = self.client.get('/api/v1/reports/sales/by-product', self.period)
        row = response.data['data']['data'][0]
        self.assertEqual(row['productName'], 'Apple')
        self.assertEqual(row['quantity'], 3)

    def test_other_month_is_empty(self):
        self.make_order(self.store, 1)
        response = self.client.get('/api/v1/reports/sales/monthly', {'month': 1, 'year': 2001})
        self.assertEqual(response.data['data']['total'], 0)

    def test_invalid_month(self):
        response = self.client.get('/api/v1/reports/sales/monthly', {'month': 13, 'year': 2024})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_regular_user_forbidden(self):
        self.client.authenticate_user(self.shopper)
        response = self.client.get('/api/v1/reports/sales/monthly')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class StockReportTests(ReportTestBase):

    def test_stock_summary(self):
        change_stock(self.stock, 5, reason='Restock')
        change_stock(self.stock, -3, reason='Damaged')
        response = self.client.get('/api/v1/reports/stock/summary', {**self.period, 'storeId': self.store.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['data']['data'][0]
        self.assertEqual(row['totalAddition'], 5)
        self.assertEqual(row['totalReduction'], 3)
        self.assertEqual(row['finalStock'], 22)

    def test_stock_summary_rolls_back_later_movements(self):
        change_stock(self.stock, 5, reason='Restock')
        response = self.client.get('/api/v1/reports/stock/summary', {'month': 1, 'year': 2001,
                                                                      'storeId': self.store.id})
        row = response.data['data']['data'][0]
        self.assertEqual(row['totalAddition'], 0)
        self.assertEqual(row['finalStock'], 20)

    def test_stock_detail(self):
        change_stock(self.stock, 5, reason='Restock')
        order = self.make_order(self.store, 2)
        response = self.client.get('/api/v1/reports/stock/detail', {**self.period, 'storeId': self.store.id})
        rows = response.data['data']['data']
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]['type'], 'OUT')
        self.assertEqual(rows[0]['orderId'], order.id)
        self.assertEqual(rows[1]['reason'], 'Restock')


class DashboardTests(ReportTestBase):

    def test_dashboard_counters(self):
        self.make_order(self.store, 1)
        self.make_order(self.store, 1, status=Order.STATUS_PENDING_PAYMENT)
        response = self.client.get('/api/v1/admin/dashboard')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['orders']['total'], 2)
        self.assertEqual(data['orders']['byStatus']['PROCESSING'], 1)
        self.assertEqual(data['orders']['byStatus']['SHIPPED'], 0)
        self.assertEqual(data['stores'], 2)
        self.assertEqual(data['users'], 1)

    def test_store_admin_dashboard_is_scoped(self):
        self.make_order(self.other_store, 1)
        self.client.authenticate_user(self.store_admin)
        response = self.client.get('/api/v1/admin/dashboard')
        self.assertEqual(response.data['data']['storeId'], self.store.id)
        self.assertEqual(response.data['data']['orders']['total'], 0)
