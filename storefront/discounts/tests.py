"""
Test suite for discounts and vouchers
Tests: pricing rules, best-discount selection, voucher deductions, discount API
"""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework import status

from storefront.cart.models import Cart
from storefront.core.exceptions import VoucherError
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.discounts import pricing
from storefront.discounts.models import DiscountRule, Voucher
from storefront.discounts.services import active_rules, resolve_voucher, price_for_store


def rule(type, value, min_purchase=None, max_discount_amount=None):
    return SimpleNamespace(type=type, value=Decimal(value), min_purchase=min_purchase,
                           max_discount_amount=max_discount_amount)


def voucher(type, value, target=pricing.TARGET_TRANSACTION, min_purchase=Decimal('0'), max_discount=None):
    return SimpleNamespace(code='TEST', type=type, value=Decimal(value), target=target,
                           min_purchase=min_purchase, max_discount=max_discount)


class MoneyTests(SimpleTestCase):

    def test_rounds_half_up(self):
        self.assertEqual(pricing.money(Decimal('1.005')), Decimal('1.01'))
        self.assertEqual(pricing.money(Decimal('1.004')), Decimal('1.00'))

    def test_none_is_zero(self):
        self.assertEqual(pricing.money(None), Decimal('0.00'))


class LineRuleTests(SimpleTestCase):

    def test_percentage(self):
        amount = pricing.line_rule_discount(rule(pricing.TYPE_PERCENTAGE, '10'), Decimal('15000'), 2)
        self.assertEqual(amount, Decimal('3000.00'))

    def test_percentage_capped(self):
        amount = pricing.line_rule_discount(
            rule(pricing.TYPE_PERCENTAGE, '50', max_discount_amount=Decimal('2000')), Decimal('10000'), 1)
        self.assertEqual(amount, Decimal('2000.00'))

    def test_nominal_per_unit(self):
        amount = pricing.line_rule_discount(rule(pricing.TYPE_NOMINAL, '1000'), Decimal('5000'), 3)
        self.assertEqual(amount, Decimal('3000.00'))

    def test_nominal_never_exceeds_line(self):
        amount = pricing.line_rule_discount(rule(pricing.TYPE_NOMINAL, '9000'), Decimal('5000'), 2)
        self.assertEqual(amount, Decimal('10000.00'))

    def test_bogo_odd_quantity(self):
        amount = pricing.line_rule_discount(rule(pricing.TYPE_BOGO, '0'), Decimal('4000'), 5)
        self.assertEqual(amount, Decimal('8000.00'))

    def test_bogo_single_item(self):
        amount = pricing.line_rule_discount(rule(pricing.TYPE_BOGO, '0'), Decimal('4000'), 1)
        self.assertEqual(amount, Decimal('0.00'))

    def test_min_purchase_not_reached(self):
        amount = pricing.line_rule_discount(
            rule(pricing.TYPE_PERCENTAGE, '10', min_purchase=Decimal('50000')), Decimal('10000'), 2)
        self.assertEqual(amount, Decimal('0'))

    def test_best_line_discount_picks_largest(self):
        rules = [rule(pricing.TYPE_PERCENTAGE, '10'), rule(pricing.TYPE_BOGO, '0'), rule(pricing.TYPE_NOMINAL, '500')]
        amount, best = pricing.best_line_discount(Decimal('2000'), 2, rules)
        self.assertEqual(amount, Decimal('2000.00'))
        self.assertIs(best, rules[1])

    def test_best_line_discount_without_rules(self):
        self.assertEqual(pricing.best_line_discount(Decimal('2000'), 2, []), (Decimal('0.00'), None))


class StoreRuleTests(SimpleTestCase):

    def test_percentage_on_subtotal(self):
        amount = pricing.store_rule_discount(rule(pricing.TYPE_PERCENTAGE, '5'), Decimal('200000'))
        self.assertEqual(amount, Decimal('10000.00'))

    def test_nominal_capped_by_subtotal(self):
        amount = pricing.store_rule_discount(rule(pricing.TYPE_NOMINAL, '50000'), Decimal('20000'))
        self.assertEqual(amount, Decimal('20000.00'))

    def test_bogo_is_ignored_store_wide(self):
        self.assertEqual(pricing.store_rule_discount(rule(pricing.TYPE_BOGO, '0'), Decimal('20000')), Decimal('0'))

    def test_min_purchase(self):
        store_rule = rule(pricing.TYPE_NOMINAL, '5000', min_purchase=Decimal('100000'))
        self.assertEqual(pricing.store_rule_discount(store_rule, Decimal('99999')), Decimal('0'))
        self.assertEqual(pricing.store_rule_discount(store_rule, Decimal('100000')), Decimal('5000.00'))


class VoucherDeductionTests(SimpleTestCase):

    def test_no_voucher(self):
        self.assertEqual(pricing.voucher_deductions(None, Decimal('100'), Decimal('0'), Decimal('10')),
                         (Decimal('0.00'), Decimal('0.00')))

    def test_transaction_percentage_after_store_discount(self):
        result = pricing.voucher_deductions(
            voucher(pricing.VOUCHER_PERCENTAGE, '10'), Decimal('100000'), Decimal('20000'), Decimal('15000'))
        self.assertEqual(result, (Decimal('8000.00'), Decimal('0.00')))

    def test_transaction_percentage_capped(self):
        result = pricing.voucher_deductions(
            voucher(pricing.VOUCHER_PERCENTAGE, '50', max_discount=Decimal('10000')),
            Decimal('100000'), Decimal('0'), Decimal('0'))
        self.assertEqual(result[0], Decimal('10000.00'))

    def test_shipping_voucher_limited_to_shipping_cost(self):
        result = pricing.voucher_deductions(
            voucher(pricing.VOUCHER_NOMINAL, '30000', target=pricing.TARGET_SHIPPING),
            Decimal('100000'), Decimal('0'), Decimal('18000'))
        self.assertEqual(result, (Decimal('0.00'), Decimal('18000.00')))

    def test_min_purchase_raises(self):
        with self.assertRaises(VoucherError):
            pricing.voucher_deductions(
                voucher(pricing.VOUCHER_NOMINAL, '5000', min_purchase=Decimal('100000')),
                Decimal('50000'), Decimal('0'), Decimal('0'))


class PriceOrderTests(SimpleTestCase):

    def test_full_breakdown(self):
        lines = [
            {'product_id': 1, 'unit_price': Decimal('10000'), 'quantity': 2},
            {'product_id': 2, 'unit_price': Decimal('5000'), 'quantity': 1},
        ]
        product_rules = {1: [rule(pricing.TYPE_PERCENTAGE, '10')]}
        store_rules = [rule(pricing.TYPE_NOMINAL, '1000')]
        result = pricing.price_order(lines, product_rules, store_rules, shipping_cost=Decimal('16000'),
                                     voucher=voucher(pricing.VOUCHER_NOMINAL, '2000'))

        self.assertEqual(result['original_subtotal'], Decimal('25000.00'))
        self.assertEqual(result['item_discount'], Decimal('2000.00'))
        self.assertEqual(result['subtotal'], Decimal('23000.00'))
        self.assertEqual(result['store_discount'], Decimal('1000.00'))
        self.assertEqual(result['voucher_deduction'], Decimal('2000.00'))
        self.assertEqual(result['shipping_cost'], Decimal('16000.00'))
        self.assertEqual(result['total_discount'], Decimal('5000.00'))
        # (23000 - 1000 - 2000) + 16000
        self.assertEqual(result['final_total'], Decimal('36000.00'))
        self.assertEqual(result['lines'][0]['final_amount'], Decimal('18000.00'))
        self.assertIsNone(result['lines'][1]['rule'])

    def test_goods_total_floors_at_zero(self):
        lines = [{'product_id': 1, 'unit_price': Decimal('1000'), 'quantity': 1}]
        result = pricing.price_order(lines, {}, [rule(pricing.TYPE_NOMINAL, '800')], shipping_cost=Decimal('5000'),
                                     voucher=voucher(pricing.VOUCHER_NOMINAL, '5000'))
        self.assertEqual(result['voucher_deduction'], Decimal('200.00'))
        self.assertEqual(result['final_total'], Decimal('5000.00'))

    def test_shipping_voucher(self):
        lines = [{'product_id': 1, 'unit_price': Decimal('1000'), 'quantity': 3}]
        result = pricing.price_order(lines, {}, [], shipping_cost=Decimal('16000'),
                                     voucher=voucher(pricing.VOUCHER_PERCENTAGE, '50', target=pricing.TARGET_SHIPPING))
        self.assertEqual(result['shipping_deduction'], Decimal('8000.00'))
        self.assertEqual(result['final_total'], Decimal('11000.00'))


class DiscountServiceTests(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product(price=Decimal('10000'))
        self.user = TestDataFactory.create_user()

    def test_active_rules_respects_dates_and_deletion(self):
        now = timezone.now()
        current = TestDataFactory.create_discount(self.store, product=self.product)
        TestDataFactory.create_discount(self.store, product=self.product, start_date=now + timedelta(days=1))
        TestDataFactory.create_discount(self.store, product=self.product, end_date=now - timedelta(days=1))
        TestDataFactory.create_discount(self.store, product=self.product).soft_delete()
        store_wide = TestDataFactory.create_discount(self.store, type=DiscountRule.TYPE_NOMINAL, value=Decimal('500'))
        TestDataFactory.create_discount(TestDataFactory.create_store(), product=self.product)

        product_rules, store_rules = active_rules(self.store)
        self.assertEqual(product_rules, {self.product.id: [current]})
        self.assertEqual(store_rules, [store_wide])

    def test_price_for_store(self):
        TestDataFactory.create_discount(self.store, product=self.product, type=DiscountRule.TYPE_BOGO, value=Decimal('0'))
        result = price_for_store(self.store, [{'product_id': self.product.id, 'unit_price': self.product.price,
                                               'quantity': 2}])
        self.assertEqual(result['item_discount'], Decimal('10000.00'))
        self.assertEqual(result['final_total'], Decimal('10000.00'))

    def test_resolve_voucher(self):
        owned = TestDataFactory.create_voucher(self.user, code='SAVE10')
        self.assertEqual(resolve_voucher(self.user, ' save10 '), owned)
        self.assertIsNone(resolve_voucher(self.user, ''))

    def test_resolve_voucher_of_other_user(self):
        TestDataFactory.create_voucher(TestDataFactory.create_user(), code='NOTYOURS')
        with self.assertRaises(VoucherError):
            resolve_voucher(self.user, 'NOTYOURS')

    def test_resolve_used_or_expired_voucher(self):
        used = TestDataFactory.create_voucher(self.user, code='USED')
        used.used_at = timezone.now()
        used.save()
        TestDataFactory.create_voucher(self.user, code='OLD', days=-1)
        with self.assertRaises(VoucherError):
            resolve_voucher(self.user, 'USED')
        with self.assertRaises(VoucherError):
            resolve_voucher(self.user, 'OLD')

    def test_usable_vouchers(self):
        fresh = TestDataFactory.create_voucher(self.user)
        TestDataFactory.create_voucher(self.user, days=-1)
        self.assertEqual(list(Voucher.objects.usable(self.user)), [fresh])


class DiscountAPITests(TestCase):

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.other_store = TestDataFactory.create_store()
        self.product = TestDataFactory.create_product(price=Decimal('10000'))
        self.store_admin = TestDataFactory.create_store_admin(self.store)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.store_admin)

    def test_store_admin_creates_discount_for_own_store(self):
        response = self.client.post('/api/v1/discounts', {
            'description': '10% off apples',
            'type': DiscountRule.TYPE_PERCENTAGE,
            'value': '10',
            'productId': self.product.id,
            'storeId': self.other_store.id,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        rule_obj = DiscountRule.objects.get()
        self.assertEqual(rule_obj.store, self.store)

    def test_bogo_requires_product(self):
        response = self.client.post('/api/v1/discounts', {'description': 'BOGO', 'type': DiscountRule.TYPE_BOGO})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('productId', response.data['errors'])

    def test_percentage_over_hundred_rejected(self):
        response = self.client.post('/api/v1/discounts', {
            'description': 'Too much', 'type': DiscountRule.TYPE_PERCENTAGE, 'value': '150'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_end_before_start_rejected(self):
        now = timezone.now()
        response = self.client.post('/api/v1/discounts', {
            'description': 'Dates', 'type': DiscountRule.TYPE_NOMINAL, 'value': '1000',
            'startDate': now.isoformat(), 'endDate': (now - timedelta(days=1)).isoformat()})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_super_admin_must_pass_store(self):
        self.client.authenticate_user(TestDataFactory.create_super_admin())
        response = self.client.post('/api/v1/discounts', {
            'description': 'No store', 'type': DiscountRule.TYPE_NOMINAL, 'value': '1000'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_scoped_to_own_store(self):
        TestDataFactory.create_discount(self.store)
        TestDataFactory.create_discount(self.other_store)
        response = self.client.get('/api/v1/discounts')
        self.assertEqual(response.data['data']['total'], 1)

    def test_cannot_edit_other_store_discount(self):
        other = TestDataFactory.create_discount(self.other_store)
        response = self.client.put(f'/api/v1/discounts/{other.id}', {'value': '20'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_restore_cycle(self):
        rule_obj = TestDataFactory.create_discount(self.store)
        response = self.client.delete(f'/api/v1/discounts/{rule_obj.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/discounts/deleted')
        self.assertEqual(response.data['data']['total'], 1)
        response = self.client.patch(f'/api/v1/discounts/{rule_obj.id}/restore')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rule_obj.refresh_from_db()
        self.assertIsNone(rule_obj.deleted_at)

    def test_apply_discount_to_cart(self):
        shopper = TestDataFactory.create_user()
        rule_obj = TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('25'))
        cart = Cart.objects.create(user=shopper, store=self.store)
        cart.items.create(product=self.product, quantity=2)

        self.client.authenticate_user(shopper)
        response = self.client.post('/api/v1/discounts/apply', {'discountId': rule_obj.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['discountAmount'], Decimal('5000.00'))
        self.assertTrue(response.data['data']['applicable'])

    def test_apply_expired_discount_gives_nothing(self):
        shopper = TestDataFactory.create_user()
        now = timezone.now()
        rule_obj = TestDataFactory.create_discount(
            self.store, type=DiscountRule.TYPE_NOMINAL, value=Decimal('500'), product=self.product,
            start_date=now - timedelta(days=10), end_date=now - timedelta(days=5))
        cart = Cart.objects.create(user=shopper, store=self.store)
        cart.items.create(product=self.product, quantity=2)

        self.client.authenticate_user(shopper)
        response = self.client.post('/api/v1/discounts/apply', {'discountId': rule_obj.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['discountAmount'], Decimal('0.00'))
        self.assertFalse(response.data['data']['applicable'])
        self.assertFalse(response.data['data']['active'])

    def test_apply_store_discount_after_item_discounts(self):
        shopper = TestDataFactory.create_user()
        TestDataFactory.create_discount(self.store, product=self.product, value=Decimal('10'))
        store_rule = TestDataFactory.create_discount(self.store, value=Decimal('10'))
        cart = Cart.objects.create(user=shopper, store=self.store)
        cart.items.create(product=self.product, quantity=2)

        self.client.authenticate_user(shopper)
        response = self.client.post('/api/v1/discounts/apply', {'discountId': store_rule.id})
        # 20000 less the 2000 item discount, then 10%
        self.assertEqual(response.data['data']['discountAmount'], Decimal('1800.00'))
        self.assertTrue(response.data['data']['active'])

    def test_usages_empty(self):
        rule_obj = TestDataFactory.create_discount(self.store)
        response = self.client.get(f'/api/v1/discounts/{rule_obj.id}/usages')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total'], 0)


class MyVouchersAPITests(TestCase):

    def test_lists_only_usable_vouchers(self):
        user = TestDataFactory.create_user()
        fresh = TestDataFactory.create_voucher(user)
        TestDataFactory.create_voucher(user, days=-2)
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)
        response = client.get('/api/v1/vouchers/my-vouchers')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([v['code'] for v in response.data['data']], [fresh.code])
