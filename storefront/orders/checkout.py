"""
Checkout and order lifecycle.

preview() and validate() price the cart without writing anything;
create_order() recomputes the same breakdown inside a transaction with the
stock rows and the voucher locked, then commits the order.
"""
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from storefront.cart.models import Cart, CartItem
from storefront.cart.services import cart_lines, serialize_line
from storefront.core.exceptions import (
    CheckoutError, PriceMismatchError, StockError, VoucherError, OrderStateError,
)
from storefront.core.models import UserAddress
from storefront.core.serializers import UserAddressSerializer
from storefront.core.utils import create_audit_log, parse_int
from storefront.discounts import pricing
from storefront.discounts.models import DiscountUsage
from storefront.discounts.serializers import VoucherSerializer
from storefront.discounts.services import price_for_store, resolve_voucher
from storefront.inventory.models import Stock
from storefront.inventory.services import change_stock, lock_stocks
from storefront.stores.models import Store
from . import shipping
from .models import Order, OrderItem

logger = logging.getLogger('storefront.orders')

# Status moves an admin may make from the order detail page
ADMIN_TRANSITIONS = {
    Order.STATUS_PENDING_PAYMENT: {Order.STATUS_CANCELLED},
    Order.STATUS_PENDING_CONFIRMATION: {Order.STATUS_PROCESSING, Order.STATUS_PENDING_PAYMENT, Order.STATUS_CANCELLED},
    Order.STATUS_PROCESSING: {Order.STATUS_SHIPPED, Order.STATUS_CANCELLED},
}

# Status moves the buyer may make
USER_TRANSITIONS = {
    Order.STATUS_PENDING_PAYMENT: {Order.STATUS_PENDING_CONFIRMATION, Order.STATUS_CANCELLED},
    Order.STATUS_SHIPPED: {Order.STATUS_CONFIRMED},
}


def _store_data(store, distance):
    if store is None:
        return None
    return {
        'id': store.id,
        'name': store.name,
        'address': store.address,
        'latitude': store.latitude,
        'longitude': store.longitude,
        'distance': distance,
    }


def breakdown_data(breakdown):
    """camelCase totals of a pricing breakdown"""
    store_rule = breakdown['store_rule']
    return {
        'originalSubtotal': breakdown['original_subtotal'],
        'discountAmount': breakdown['item_discount'],
        'subtotal': breakdown['subtotal'],
        'storeDiscount': breakdown['store_discount'],
        'storeDiscountRule': {'id': store_rule.id, 'type': store_rule.type, 'name': store_rule.description}
        if store_rule else None,
        'voucherDeduction': breakdown['voucher_deduction'],
        'shippingCost': breakdown['shipping_cost'],
        'shippingDeduction': breakdown['shipping_deduction'],
        'totalDiscount': breakdown['total_discount'],
        'finalTotal': breakdown['final_total'],
    }


def _cart_for(user, store_id=None):
    carts = Cart.objects.filter(user=user).select_related('store')
    if store_id:
        return carts.filter(store_id=store_id).first()
    return carts.order_by('-updated_at').first()


def preview(user, store_id=None, voucher_code=None, shipping_method=None, address_id=None):
    """Everything the checkout page needs to render, priced with the default shipping option"""
    addresses = list(UserAddress.objects.filter(user=user))
    selected = None
    if address_id:
        selected = next((address for address in addresses if address.id == address_id), None)
    if selected is None:
        selected = next((address for address in addresses if address.is_main), addresses[0] if addresses else None)

    cart = _cart_for(user, store_id)
    lines = cart_lines(cart) if cart else []
    store = cart.store if cart else None
    total_weight = sum(line['weight'] for line in lines)

    distance, options = None, []
    if store is not None and selected is not None:
        distance = shipping.distance_to(store, selected.latitude, selected.longitude)
        options = shipping.shipping_options(distance, total_weight)

    option = None
    if options:
        option = next((o for o in options if o['serviceCode'] == shipping_method), options[0])

    voucher, voucher_error = None, None
    if voucher_code:
        try:
            voucher = resolve_voucher(user, voucher_code)
        except VoucherError as e:
            voucher_error = e.message

    shipping_cost = option['cost'] if option else pricing.ZERO
    try:
        breakdown = price_for_store(store, lines, shipping_cost, voucher)
    except VoucherError as e:
        voucher, voucher_error = None, e.message
        breakdown = price_for_store(store, lines, shipping_cost, None)

    totals = breakdown_data(breakdown)
    in_stock = all(line['quantity'] <= line['stock'] for line in lines)
    can_checkout = (bool(lines) and selected is not None and bool(options)
                    and shipping.in_range(distance) and in_stock)
    return {
        'canCheckout': can_checkout,
        'requiresAddress': not addresses,
        'addresses': UserAddressSerializer(addresses, many=True).data,
        'selectedAddress': UserAddressSerializer(selected).data if selected else None,
        'cartSummary': [serialize_line(line, cart.id) for line in breakdown['lines']] if cart else [],
        'totalWeight': total_weight,
        'shippingOptions': options,
        'selectedShipping': option,
        'distance': distance,
        'nearestStore': _store_data(store, distance),
        'voucher': VoucherSerializer(voucher).data if voucher else None,
        'voucherError': voucher_error,
        **totals,
    }


def _parse_ids(value):
    if not value:
        return []
    try:
        return [int(item) for item in value]
    except (TypeError, ValueError):
        raise CheckoutError('cartItemIds must be a list of ids')


def validate(user, data):
    """Check a checkout request without placing it; problems are reported, not raised"""
    errors = []
    address_id = parse_int(data.get('addressId')) or parse_int(data.get('userAddressId'))
    address = UserAddress.objects.filter(pk=address_id, user=user).first()
    if address is None:
        errors.append('Shipping address not found')

    cart = _cart_for(user, parse_int(data.get('storeId')))
    lines = cart_lines(cart, _parse_ids(data.get('cartItemIds'))) if cart else []
    if not lines:
        errors.append('Cart is empty')
    for line in lines:
        if line['quantity'] > line['stock']:
            errors.append(f"Only {line['stock']} item(s) of {line['item'].product.name} available")

    store = cart.store if cart else None
    distance, options, option = None, [], None
    if store is not None and address is not None:
        distance = shipping.distance_to(store, address.latitude, address.longitude)
        if not shipping.in_range(distance):
            errors.append('Address is out of the delivery range of the store')
        options = shipping.shipping_options(distance, sum(line['weight'] for line in lines))
        option = next((o for o in options if o['serviceCode'] == data.get('shippingMethod')), None)
        if option is None:
            errors.append('Shipping method is not available for this address')
    if store is not None and (store.is_deleted or not store.is_active):
        errors.append('Store is not available')

    voucher = None
    if data.get('voucherCode'):
        try:
            voucher = resolve_voucher(user, data['voucherCode'])
        except VoucherError as e:
            errors.append(e.message)

    shipping_cost = option['cost'] if option else pricing.ZERO
    try:
        breakdown = price_for_store(store, lines, shipping_cost, voucher)
    except VoucherError as e:
        errors.append(e.message)
        breakdown = price_for_store(store, lines, shipping_cost, None)

    return {
        'isValid': not errors,
        'errors': errors,
        'userAddress': UserAddressSerializer(address).data if address else None,
        'nearestStore': _store_data(store, distance),
        'distance': distance,
        'availableShippingMethods': options,
        **breakdown_data(breakdown),
    }


def _expected_total(data):
    value = data.get('expectedTotal')
    if value in (None, ''):
        return None
    try:
        return pricing.money(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        raise CheckoutError('expectedTotal must be a number')


@transaction.atomic
def create_order(user, data, request=None):
    """Place an order from cart items; all totals are recomputed here"""
    address_id = parse_int(data.get('userAddressId')) or parse_int(data.get('addressId'))
    address = UserAddress.objects.filter(pk=address_id, user=user).first()
    if address is None:
        raise CheckoutError('Shipping address not found')

    store = Store.objects.alive().filter(pk=parse_int(data.get('storeId')), is_active=True).first()
    if store is None:
        raise CheckoutError('Store is not available')

    cart = Cart.objects.select_for_update().filter(user=user, store=store).first()
    if cart is None:
        raise CheckoutError('Cart is empty')
    item_ids = _parse_ids(data.get('cartItemIds'))
    lines = cart_lines(cart, item_ids)
    if not lines:
        raise CheckoutError('Cart is empty')
    if item_ids and len(lines) != len(set(item_ids)):
        raise CheckoutError('Some cart items were not found')

    distance = shipping.distance_to(store, address.latitude, address.longitude)
    if not shipping.in_range(distance):
        raise CheckoutError('Address is out of the delivery range of the store')
    total_weight = sum(line['weight'] for line in lines)
    option = shipping.find_option(distance, total_weight, data.get('shippingMethod'))
    if option is None:
        raise CheckoutError('Shipping method is not available for this address')

    stocks = lock_stocks(store, [line['product_id'] for line in lines])
    for line in lines:
        stock = stocks.get(line['product_id'])
        available = stock.quantity if stock else 0
        if line['quantity'] > available:
            raise StockError(
                f"Only {available} item(s) of {line['item'].product.name} available",
                data={'productId': line['product_id'], 'available': available},
            )

    voucher = resolve_voucher(user, data.get('voucherCode'), lock=True)
    breakdown = price_for_store(store, lines, option['cost'], voucher)

    expected = _expected_total(data)
    if expected is not None and expected != breakdown['final_total']:
        logger.info(f"Price mismatch for user {user.id}: expected {expected}, computed {breakdown['final_total']}")
        raise PriceMismatchError(data=breakdown_data(breakdown))

    now = timezone.now()
    order = Order.objects.create(
        user=user,
        store=store,
        address=address,
        recipient_name=address.recipient_name,
        recipient_phone=address.recipient_phone,
        shipping_address=address.full_address,
        shipping_latitude=address.latitude,
        shipping_longitude=address.longitude,
        shipping_method=option['serviceCode'],
        shipping_distance_km=Decimal(str(distance)),
        total_weight=total_weight,
        original_subtotal=breakdown['original_subtotal'],
        item_discount=breakdown['item_discount'],
        subtotal=breakdown['subtotal'],
        store_discount=breakdown['store_discount'],
        voucher_deduction=breakdown['voucher_deduction'],
        shipping_cost=breakdown['shipping_cost'],
        shipping_deduction=breakdown['shipping_deduction'],
        total_discount=breakdown['total_discount'],
        final_total=breakdown['final_total'],
        voucher_code=voucher.code if voucher else '',
        payment_deadline=now + timedelta(hours=settings.STOREFRONT['PAYMENT_DEADLINE_HOURS']),
    )

    usages = []
    for line in breakdown['lines']:
        product = line['item'].product
        OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            quantity=line['quantity'],
            unit_price=line['unit_price'],
            discount_amount=line['discount_amount'],
            line_total=line['final_amount'],
        )
        change_stock(stocks[line['product_id']], -line['quantity'], reason=f"Order #{order.id}", order=order)
        if line['rule'] is not None:
            usages.append(DiscountUsage(discount=line['rule'], user=user, order=order, amount=line['discount_amount']))
    if breakdown['store_rule'] is not None:
        usages.append(DiscountUsage(discount=breakdown['store_rule'], user=user, order=order,
                                    amount=breakdown['store_discount']))
    DiscountUsage.objects.bulk_create(usages)

    if voucher is not None:
        voucher.used_at = now
        voucher.order = order
        voucher.save(update_fields=['used_at', 'order'])

    CartItem.objects.filter(pk__in=[line['item'].pk for line in lines]).delete()
    cart.save(update_fields=['updated_at'])

    create_audit_log(request, 'order_create', 'Order', order.id, user=user, object_name=f"Order #{order.id}",
                     changes={'final_total': str(order.final_total), 'store_id': store.id,
                              'voucher': order.voucher_code or None})
    logger.info(f"Order {order.id} created by user {user.id}: total {order.final_total}")
    return order


def _check_transition(order, new_status, allowed):
    if new_status not in allowed.get(order.status, set()):
        raise OrderStateError(f"Cannot change order status from {order.status} to {new_status}")


@transaction.atomic
def cancel_order(order, reason, actor=None, by_admin=False, request=None):
    """Cancel an order, putting its stock back and releasing its voucher and discounts"""
    order = Order.objects.select_for_update().get(pk=order.pk)
    _check_transition(order, Order.STATUS_CANCELLED, ADMIN_TRANSITIONS if by_admin else USER_TRANSITIONS)

    previous = order.status
    for item in order.items.all():
        stock, _created = Stock.objects.get_or_create(product_id=item.product_id, store_id=order.store_id)
        change_stock(stock, item.quantity, reason=f"Order #{order.id} cancelled", admin=actor if by_admin else None,
                     order=order)

    order.vouchers.update(used_at=None, order=None)
    order.discount_usages.all().delete()

    order.status = Order.STATUS_CANCELLED
    order.cancel_reason = reason or ''
    order.cancelled_at = timezone.now()
    order.save(update_fields=['status', 'cancel_reason', 'cancelled_at', 'updated_at'])

    create_audit_log(request, 'order_cancel', 'Order', order.id, user=actor, object_name=f"Order #{order.id}",
                     changes={'from': previous, 'reason': order.cancel_reason, 'by_admin': by_admin})
    logger.info(f"Order {order.id} cancelled ({previous} -> CANCELLED): {order.cancel_reason}")
    return order


def _validate_proof(upload):
    config = settings.STOREFRONT
    extension = upload.name.rsplit('.', 1)[-1].lower() if '.' in upload.name else ''
    if extension not in config['PAYMENT_PROOF_EXTENSIONS']:
        raise CheckoutError(f"Payment proof must be one of: {', '.join(config['PAYMENT_PROOF_EXTENSIONS'])}")
    if upload.size > config['PAYMENT_PROOF_MAX_BYTES']:
        raise CheckoutError('Payment proof must not exceed 1 MB')


@transaction.atomic
def upload_payment_proof(order, upload, request=None):
    _validate_proof(upload)
    order = Order.objects.select_for_update().get(pk=order.pk)
    _check_transition(order, Order.STATUS_PENDING_CONFIRMATION, USER_TRANSITIONS)
    if order.payment_deadline and order.payment_deadline < timezone.now():
        raise OrderStateError('Payment deadline has passed')

    order.payment_proof = upload
    order.payment_proof_uploaded_at = timezone.now()
    order.status = Order.STATUS_PENDING_CONFIRMATION
    order.save()
    create_audit_log(request, 'payment_proof', 'Order', order.id, object_name=f"Order #{order.id}")
    logger.info(f"Payment proof uploaded for order {order.id}")
    return order


@transaction.atomic
def confirm_received(order, request=None, automatic=False):
    order = Order.objects.select_for_update().get(pk=order.pk)
    _check_transition(order, Order.STATUS_CONFIRMED, USER_TRANSITIONS)
    previous = order.status
    order.status = Order.STATUS_CONFIRMED
    order.confirmed_at = timezone.now()
    order.save(update_fields=['status', 'confirmed_at', 'updated_at'])
    create_audit_log(request, 'order_status', 'Order', order.id, user=None if automatic else order.user,
                     object_name=f"Order #{order.id}",
                     changes={'from': previous, 'to': order.status, 'automatic': automatic})
    return order


@transaction.atomic
def admin_update_status(order, new_status, actor, reason='', request=None):
    """Admin status change; cancelling goes through cancel_order()"""
    if new_status == Order.STATUS_CANCELLED:
        return cancel_order(order, reason, actor=actor, by_admin=True, request=request)

    order = Order.objects.select_for_update().get(pk=order.pk)
    _check_transition(order, new_status, ADMIN_TRANSITIONS)
    previous = order.status
    order.status = new_status
    fields = ['status', 'updated_at']

    if previous == Order.STATUS_PENDING_CONFIRMATION and new_status == Order.STATUS_PENDING_PAYMENT:
        # Payment rejected: the buyer uploads a new proof before a fresh deadline
        order.payment_proof = None
        order.payment_proof_uploaded_at = None
        order.payment_deadline = timezone.now() + timedelta(hours=settings.STOREFRONT['PAYMENT_DEADLINE_HOURS'])
        fields += ['payment_proof', 'payment_proof_uploaded_at', 'payment_deadline']
    elif new_status == Order.STATUS_SHIPPED:
        order.shipped_at = timezone.now()
        fields.append('shipped_at')

    order.save(update_fields=fields)
    create_audit_log(request, 'order_status', 'Order', order.id, user=actor, object_name=f"Order #{order.id}",
                     changes={'from': previous, 'to': new_status})
    logger.info(f"Order {order.id} status {previous} -> {new_status} by {actor.email}")
    return order


def expire_unpaid_orders(now=None):
    """Cancel orders still waiting for payment after their deadline"""
    now = now or timezone.now()
    expired = Order.objects.filter(status=Order.STATUS_PENDING_PAYMENT, payment_deadline__lt=now)
    count = 0
    for order in expired:
        try:
            cancel_order(order, 'Payment deadline passed')
            count += 1
        except OrderStateError:
            # Paid or cancelled by someone else in the meantime
            continue
    return count


def auto_confirm_shipped_orders(now=None):
    """Confirm shipped orders the buyer has not confirmed within the window"""
    now = now or timezone.now()
    cutoff = now - timedelta(days=settings.STOREFRONT['AUTO_CONFIRM_DAYS'])
    shipped = Order.objects.filter(status=Order.STATUS_SHIPPED, shipped_at__lt=cutoff)
    count = 0
    for order in shipped:
        try:
            confirm_received(order, automatic=True)
            count += 1
        except OrderStateError:
            continue
    return count
