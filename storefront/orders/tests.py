"""
Test suite for Orders module
Tests: shipping cost, checkout preview/validate, order placement, status
transitions, cancellation and the housekeeping command
"""
import shutil
import tempfile
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase, override_settings
from django.utils import timezone
from rest_framework import status

from storefront.cart.models import Cart, CartItem
from storefront.core.exceptions import OrderStateError
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.discounts.models import DiscountUsage
from storefront.inventory.models import StockJournal
from storefront.orders import checkout, shipping
from storefront.orders.models import Order

MEDIA_ROOT = tempfile.mkdtemp()


class ShippingCostTests(SimpleTestCase):

    def _service(self, code):
        return next(s for s in shipping.services() if s['code'] == code)

    def test_cost_formula(self):
        # 15000 + 12.5 km * 1000 + 2.5 kg * 500
        cost = shipping.shipping_cost(self._service('REG'), 12.5, 2500)
        self.assertEqual(cost, Decimal('28750'))

    def test_cost_rounds_to_whole_unit(self):
        cost = shipping.shipping_cost(self._service('REG'), 0.0005, 0)
        self.assertEqual(cost, Decimal('15001'))

    def test_options_filtered_by_distance(self):
        codes = [o['serviceCode'] for o in shipping.shipping_options(30, 1000)]
        self.assertEqual(codes, ['REG', 'EXP'])
        self.assertEqual(shipping.shipping_options(150, 1000), [])

    def test_find_option(self):
        self.assertIsNone(shipping.find_option(30, 1000, 'SDS'))
        self.assertEqual(shipping.find_option(10, 1000, 'SDS')['cost'], Decimal('60500'))

    def test_in_range(self):
        self.assertTrue(shipping.in_range(100))
        self.assertFalse(shipping.in_range(100.01))
        self.assertFalse(shipping.in_range(None))


class CheckoutTestMixin:
    """Store, stocked product, verified shopper with an address and a filled cart"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product(name='Apple', price=Decimal('10000'), weight=1000)
        self.stock = TestDataFactory.create_stock(self.product, self.store, quantity=5)
        self.user = TestDataFactory.create_user()
        self.address = TestDataFactory.create_address(self.user)
        self.cart = Cart.objects.create(user=self.user, store=self.store)
        self.item = CartItem.objects.create(cart=self.cart, product=self.product, quantity=2)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def order_payload(self, **overrides):
        data = {
            'storeId': self.store.id,
            'userAddressId': self.address.id,
            'shippingMethod': 'REG',
        }
        data.update(overrides)
        return data

    def place_order(self, **overrides):
        return checkout.create_order(self.user, self.order_payload(**overrides))


class CheckoutPreviewTests(CheckoutTestMixin, TestCase):

    def test_preview(self):
        response = self.client.get('/api/v1/orders/checkout/preview', {'storeId': self.store.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        preview = response.data['data']['preview']
        self.assertTrue(preview['canCheckout'])
        self.assertEqual(preview['totalWeight'], 2000)
        self.assertEqual(preview['selectedShipping']['serviceCode'], 'REG')
        self.assertEqual(preview['subtotal'], Decimal('20000.00'))
        # 20000 + (15000 + 0 km + 2 kg * 500)
        self.assertEqual(preview['finalTotal'], Decimal('36000.00'))

    def test_preview_with_shipping_method_and_bad_voucher(self):
        response = self.client.get('/api/v1/orders/checkout/preview', {
            'storeId': self.store.id, 'shippingMethod': 'EXP', 'voucherCode': 'NOPE'})
        preview = response.data['data']['preview']
        self.assertEqual(preview['selectedShipping']['serviceCode'], 'EXP')
        self.assertEqual(preview['voucherError'], 'Voucher not found')
        self.assertIsNone(preview['voucher'])

    def test_preview_without_address(self):
        self.address.delete()
        response = self.client.get('/api/v1/orders/checkout/preview')
        preview = response.data['data']['preview']
        self.assertFalse(preview['canCheckout'])
        self.assertTrue(preview['requiresAddress'])

    def test_validate_reports_problems(self):
        far = TestDataFactory.create_address(self.user, latitude=-7.2575, longitude=112.7521, is_main=False)
        self.stock.quantity = 1
        self.stock.save()
        response = self.client.post('/api/v1/orders/checkout/validate', self.order_payload(userAddressId=far.id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertFalse(data['isValid'])
        self.assertIn('Address is out of the delivery range of the store', data['errors'])
        self.assertIn('Only 1 item(s) of Apple available', data['errors'])

    def test_preview_blocks_checkout_beyond_stock(self):
        self.stock.quantity = 1
        self.stock.save()
        response = self.client.get('/api/v1/orders/checkout/preview', {'storeId': self.store.id})
        self.assertFalse(response.data['data']['preview']['canCheckout'])

    def test_preview_blocks_checkout_out_of_range(self):
        far = TestDataFactory.create_address(self.user, latitude=-7.2575, longitude=112.7521, is_main=False)
        response = self.client.get('/api/v1/orders/checkout/preview', {'storeId': self.store.id, 'addressId': far.id})
        self.assertFalse(response.data['data']['preview']['canCheckout'])

    def test_validate_with_non_numeric_ids(self):
        response = self.client.post('/api/v1/orders/checkout/validate', {
            'addressId': 'abc', 'storeId': 'xyz', 'shippingMethod': 'REG'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['isValid'])
        self.assertIn('Shipping address not found', response.data['data']['errors'])

    def test_validate_ok(self):
        response = self.client.post('/api/v1/orders/checkout/validate', self.order_payload())
        self.assertTrue(response.data['data']['isValid'])
        self.assertEqual(response.data['data']['errors'], [])

    def test_shipping_calculate(self):
        response = self.client.post('/api/v1/orders/shipping/calculate', {
            'addressId': self.address.id, 'storeId': self.store.id, 'weight': 2000})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['inRange'])
        self.assertEqual([s['serviceCode'] for s in response.data['data']['services']], ['REG', 'EXP', 'SDS'])


class OrderCreateTests(CheckoutTestMixin, TestCase):

    def test_create_order(self):
        TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('10'))
        response = self.client.post('/api/v1/orders/create', self.order_payload(expectedTotal='34000'))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['status'], Order.STATUS_PENDING_PAYMENT)
        self.assertEqual(data['pricing']['discountAmount'], Decimal('2000.00'))
        self.assertEqual(data['pricing']['shippingCost'], Decimal('16000.00'))
        self.assertEqual(data['finalTotal'], Decimal('34000.00'))
        self.assertEqual(data['items'][0]['lineTotal'], Decimal('18000.00'))

        order = Order.objects.get()
        self.assertIsNotNone(order.payment_deadline)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 3)
        journal = StockJournal.objects.get(order=order)
        self.assertEqual(journal.type, StockJournal.TYPE_OUT)
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())
        self.assertEqual(DiscountUsage.objects.filter(order=order).count(), 1)

    def test_order_with_voucher_marks_it_used(self):
        voucher = TestDataFactory.create_voucher(self.user, code='SAVE5K', value=Decimal('5000'))
        order = self.place_order(voucherCode='save5k')
        self.assertEqual(order.voucher_deduction, Decimal('5000.00'))
        self.assertEqual(order.final_total, Decimal('31000.00'))
        voucher.refresh_from_db()
        self.assertIsNotNone(voucher.used_at)
        self.assertEqual(voucher.order, order)

    def test_voucher_min_purchase_rejected(self):
        TestDataFactory.create_voucher(self.user, code='BIGSPEND', min_purchase=Decimal('100000'))
        response = self.client.post('/api/v1/orders/create', self.order_payload(voucherCode='BIGSPEND'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_price_mismatch(self):
        response = self.client.post('/api/v1/orders/create', self.order_payload(expectedTotal='1000'))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['data']['finalTotal'], Decimal('36000.00'))
        self.assertFalse(Order.objects.exists())
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 5)

    def test_insufficient_stock(self):
        self.item.quantity = 6
        self.item.save()
        response = self.client.post('/api/v1/orders/create', self.order_payload())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['data']['available'], 5)
        self.assertFalse(Order.objects.exists())

    def test_out_of_range_address(self):
        far = TestDataFactory.create_address(self.user, latitude=-7.2575, longitude=112.7521, is_main=False)
        response = self.client.post('/api/v1/orders/create', self.order_payload(userAddressId=far.id))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unavailable_shipping_method(self):
        response = self.client.post('/api/v1/orders/create', self.order_payload(shippingMethod='DRONE'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_numeric_ids_rejected(self):
        response = self.client.post('/api/v1/orders/create', self.order_payload(userAddressId='abc'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Shipping address not found')

        response = self.client.post('/api/v1/orders/create', self.order_payload(storeId='xyz'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Store is not available')
        self.assertFalse(Order.objects.exists())

    def test_empty_cart(self):
        self.item.delete()
        response = self.client.post('/api/v1/orders/create', self.order_payload())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_selected_cart_items_only(self):
        pear = TestDataFactory.create_product(name='Pear', price=Decimal('5000'))
        TestDataFactory.create_stock(pear, self.store, quantity=5)
        pear_item = CartItem.objects.create(cart=self.cart, product=pear, quantity=1)
        order = self.place_order(cartItemIds=[pear_item.id])
        self.assertEqual([item.product_name for item in order.items.all()], ['Pear'])
        self.assertTrue(CartItem.objects.filter(pk=self.item.pk).exists())

    def test_unverified_user_cannot_order(self):
        self.user.is_verified = False
        self.user.save()
        response = self.client.post('/api/v1/orders/create', self.order_payload())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class OrderLifecycleTests(CheckoutTestMixin, TestCase):

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        super().setUp()
        self.order = self.place_order()
        self.store_admin = TestDataFactory.create_store_admin(self.store)
        self.admin_client = AuthenticatedAPIClient()
        self.admin_client.authenticate_user(self.store_admin)

    def _upload(self, name='proof.jpg', size=100):
        upload = SimpleUploadedFile(name, b'x' * size, content_type='image/jpeg')
        return self.client.post(f'/api/v1/orders/{self.order.id}/payment-proof', {'file': upload}, format='multipart')

    def test_list_and_detail(self):
        response = self.client.get('/api/v1/orders')
        self.assertEqual(response.data['data']['total'], 1)
        self.assertEqual(response.data['data']['orders'][0]['itemCount'], 2)

        response = self.client.get(f'/api/v1/orders/{self.order.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/orders/{self.order.id}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_search_by_product_name(self):
        response = self.client.get('/api/v1/orders', {'search': 'apple'})
        self.assertEqual(response.data['data']['total'], 1)
        response = self.client.get('/api/v1/orders', {'search': 'banana'})
        self.assertEqual(response.data['data']['total'], 0)

    def test_upload_payment_proof(self):
        response = self._upload()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING_CONFIRMATION)
        self.assertIsNotNone(self.order.payment_proof_uploaded_at)

    def test_payment_proof_not_served_publicly(self):
        self._upload()
        self.order.refresh_from_db()
        self.client.logout()
        response = self.client.get(self.order.payment_proof.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_payment_proof_validation(self):
        response = self._upload(name='proof.gif')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self._upload(size=1024 * 1024 + 1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_after_deadline(self):
        Order.objects.filter(pk=self.order.pk).update(payment_deadline=timezone.now() - timedelta(minutes=1))
        response = self._upload()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_happy_path(self):
        self._upload()
        response = self.admin_client.patch(f'/api/v1/orders/admin/{self.order.id}/status', {'status': 'PROCESSING'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.admin_client.patch(f'/api/v1/orders/admin/{self.order.id}/status', {'status': 'SHIPPED'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['data']['shippedAt'])

        response = self.client.post(f'/api/v1/orders/{self.order.id}/confirm')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], Order.STATUS_CONFIRMED)

    def test_admin_rejects_payment(self):
        self._upload()
        response = self.admin_client.patch(f'/api/v1/orders/admin/{self.order.id}/status',
                                           {'status': 'PENDING_PAYMENT'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING_PAYMENT)
        self.assertFalse(self.order.payment_proof)
        self.assertGreater(self.order.payment_deadline, timezone.now())

    def test_invalid_transitions(self):
        response = self.admin_client.patch(f'/api/v1/orders/admin/{self.order.id}/status', {'status': 'SHIPPED'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/orders/{self.order.id}/confirm')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.admin_client.patch(f'/api/v1/orders/admin/{self.order.id}/status', {'status': 'LOST'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_cancel_restores_stock(self):
        response = self.client.post(f'/api/v1/orders/{self.order.id}/cancel', {'reason': 'Changed my mind'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_CANCELLED)
        self.assertEqual(self.order.cancel_reason, 'Changed my mind')
        self.assertIsNotNone(self.order.cancelled_at)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 5)
        self.assertEqual(StockJournal.objects.filter(order=self.order, type=StockJournal.TYPE_IN).count(), 1)

    def test_cancel_releases_voucher_and_discount_usage(self):
        TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('10'))
        CartItem.objects.create(cart=self.cart, product=self.product, quantity=1)
        voucher = TestDataFactory.create_voucher(self.user, code='BACKAGAIN')
        order = self.place_order(voucherCode='BACKAGAIN')
        self.assertEqual(DiscountUsage.objects.filter(order=order).count(), 1)

        checkout.cancel_order(order, 'Changed my mind', actor=self.user)
        voucher.refresh_from_db()
        self.assertIsNone(voucher.used_at)
        self.assertIsNone(voucher.order_id)
        self.assertFalse(DiscountUsage.objects.filter(order=order).exists())

    def test_user_cannot_cancel_after_payment(self):
        self._upload()
        response = self.client.post(f'/api/v1/orders/{self.order.id}/cancel')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_cancel_processing_order(self):
        self._upload()
        checkout.admin_update_status(self.order, Order.STATUS_PROCESSING, self.store_admin)
        response = self.admin_client.post(f'/api/v1/orders/admin/{self.order.id}/cancel', {'reason': 'Out of stock'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 5)

    def test_admin_cannot_cancel_shipped_order(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_SHIPPED, shipped_at=timezone.now())
        with self.assertRaises(OrderStateError):
            checkout.cancel_order(self.order, 'Too late', actor=self.store_admin, by_admin=True)

    def test_store_admin_scope(self):
        other_admin = TestDataFactory.create_store_admin(TestDataFactory.create_store())
        self.admin_client.authenticate_user(other_admin)
        response = self.admin_client.get(f'/api/v1/orders/admin/{self.order.id}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.admin_client.get('/api/v1/orders/admin/all')
        self.assertEqual(response.data['data']['total'], 0)

    def test_super_admin_sees_all_orders(self):
        self.admin_client.authenticate_user(TestDataFactory.create_super_admin())
        response = self.admin_client.get('/api/v1/orders/admin/all', {'status': Order.STATUS_PENDING_PAYMENT})
        self.assertEqual(response.data['data']['total'], 1)


class ProcessOrdersCommandTests(CheckoutTestMixin, TestCase):

    def test_expires_unpaid_and_confirms_shipped(self):
        unpaid = self.place_order()
        Order.objects.filter(pk=unpaid.pk).update(payment_deadline=timezone.now() - timedelta(minutes=5))

        self.item = CartItem.objects.create(cart=self.cart, product=self.product, quantity=1)
        shipped = self.place_order()
        Order.objects.filter(pk=shipped.pk).update(status=Order.STATUS_SHIPPED,
                                                   shipped_at=timezone.now() - timedelta(days=3))

        out = StringIO()
        call_command('process_orders', stdout=out)
        self.assertIn('Cancelled 1 unpaid order(s)', out.getvalue())
        self.assertIn('Confirmed 1 shipped order(s)', out.getvalue())

        unpaid.refresh_from_db()
        shipped.refresh_from_db()
        self.assertEqual(unpaid.status, Order.STATUS_CANCELLED)
        self.assertEqual(shipped.status, Order.STATUS_CONFIRMED)
        self.stock.refresh_from_db()
        self.assertEqual(self.stock.quantity, 4)

    def test_recent_orders_untouched(self):
        order = self.place_order()
        call_command('process_orders', stdout=StringIO())
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING_PAYMENT)

    def test_skip_flags(self):
        order = self.place_order()
        Order.objects.filter(pk=order.pk).update(payment_deadline=timezone.now() - timedelta(minutes=5))
        call_command('process_orders', '--skip-cancel', stdout=StringIO())
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING_PAYMENT)
