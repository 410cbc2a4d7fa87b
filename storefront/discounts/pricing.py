"""
Checkout pricing.

Everything here works on Decimal amounts and plain objects exposing the
DiscountRule / Voucher attributes, so the same code prices the cart page,
the checkout preview and the order that is finally written.

    finalTotal = max(0, subtotal - storeDiscount - voucherDeduction)
               + max(0, shippingCost - shippingDeduction)
"""
from decimal import Decimal, ROUND_HALF_UP

from storefront.core.exceptions import VoucherError

ZERO = Decimal('0')
HUNDRED = Decimal('100')
TWO_PLACES = Decimal('0.01')

TYPE_PERCENTAGE = 'DIRECT_PERCENTAGE'
TYPE_NOMINAL = 'DIRECT_NOMINAL'
TYPE_BOGO = 'BOGO'

VOUCHER_NOMINAL = 'NOMINAL'
VOUCHER_PERCENTAGE = 'PERCENTAGE'
TARGET_TRANSACTION = 'TRANSACTION'
TARGET_SHIPPING = 'SHIPPING'


def money(value):
    """Round to 2 decimal places, half up"""
    if value is None:
        return ZERO.quantize(TWO_PLACES)
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _cap(amount, cap):
    if cap is not None and cap > 0:
        return min(amount, Decimal(cap))
    return amount


def line_rule_discount(rule, unit_price, quantity):
    """Discount one product rule gives on a cart line"""
    unit_price = Decimal(unit_price)
    line_amount = unit_price * quantity
    if rule.min_purchase and line_amount < rule.min_purchase:
        return ZERO
    value = Decimal(rule.value or 0)

    if rule.type == TYPE_PERCENTAGE:
        amount = _cap(line_amount * value / HUNDRED, rule.max_discount_amount)
    elif rule.type == TYPE_NOMINAL:
        amount = value * quantity
    elif rule.type == TYPE_BOGO:
        amount = (quantity // 2) * unit_price
    else:
        return ZERO
    return money(max(ZERO, min(amount, line_amount)))


def best_line_discount(unit_price, quantity, rules):
    """Pick the rule giving the largest discount on a line. Returns (amount, rule)"""
    best_amount, best_rule = ZERO, None
    for rule in rules:
        amount = line_rule_discount(rule, unit_price, quantity)
        if amount > best_amount:
            best_amount, best_rule = amount, rule
    return money(best_amount), best_rule


def store_rule_discount(rule, subtotal):
    """Discount a store-wide rule gives on the discounted subtotal"""
    subtotal = Decimal(subtotal)
    if subtotal <= 0:
        return ZERO
    if rule.min_purchase and subtotal < rule.min_purchase:
        return ZERO
    value = Decimal(rule.value or 0)

    if rule.type == TYPE_PERCENTAGE:
        amount = _cap(subtotal * value / HUNDRED, rule.max_discount_amount)
    elif rule.type == TYPE_NOMINAL:
        amount = _cap(value, rule.max_discount_amount)
    else:
        # BOGO only makes sense per product
        return ZERO
    return money(max(ZERO, min(amount, subtotal)))


def best_store_discount(subtotal, rules):
    best_amount, best_rule = ZERO, None
    for rule in rules:
        amount = store_rule_discount(rule, subtotal)
        if amount > best_amount:
            best_amount, best_rule = amount, rule
    return money(best_amount), best_rule


def voucher_deductions(voucher, subtotal, store_discount, shipping_cost):
    """
    Return (voucherDeduction, shippingDeduction) for a voucher.

    Raises VoucherError when the subtotal does not reach the voucher's
    minimum purchase.
    """
    if voucher is None:
        return money(ZERO), money(ZERO)

    subtotal = Decimal(subtotal)
    if voucher.min_purchase and subtotal < voucher.min_purchase:
        raise VoucherError(f"Minimum purchase for voucher {voucher.code} is {money(voucher.min_purchase)}")

    value = Decimal(voucher.value or 0)
    if voucher.target == TARGET_SHIPPING:
        base = max(ZERO, Decimal(shipping_cost))
    else:
        base = max(ZERO, subtotal - Decimal(store_discount))

    if voucher.type == VOUCHER_PERCENTAGE:
        amount = base * value / HUNDRED
    else:
        amount = value
    amount = money(max(ZERO, min(_cap(amount, voucher.max_discount), base)))

    if voucher.target == TARGET_SHIPPING:
        return money(ZERO), amount
    return amount, money(ZERO)


def price_lines(lines, product_rules):
    """
    Price cart lines.

    lines: iterable of dicts with product_id, unit_price, quantity
    product_rules: {product_id: [rules]}

    Each returned line gains original_amount, discount_amount,
    final_amount and the applied rule.
    """
    priced = []
    for line in lines:
        unit_price = Decimal(line['unit_price'])
        quantity = int(line['quantity'])
        original = money(unit_price * quantity)
        discount, rule = best_line_discount(unit_price, quantity, product_rules.get(line['product_id'], []))
        priced.append({
            **line,
            'unit_price': money(unit_price),
            'original_amount': original,
            'discount_amount': discount,
            'final_amount': money(original - discount),
            'rule': rule,
        })
    return priced


def price_order(lines, product_rules, store_rules, shipping_cost=ZERO, voucher=None):
    """Full price breakdown for a set of cart lines"""
    priced = price_lines(lines, product_rules)
    original_subtotal = money(sum((line['original_amount'] for line in priced), ZERO))
    item_discount = money(sum((line['discount_amount'] for line in priced), ZERO))
    subtotal = money(original_subtotal - item_discount)

    store_discount, store_rule = best_store_discount(subtotal, store_rules)
    shipping_cost = money(shipping_cost)
    voucher_deduction, shipping_deduction = voucher_deductions(voucher, subtotal, store_discount, shipping_cost)

    goods_total = max(ZERO, subtotal - store_discount - voucher_deduction)
    shipping_total = max(ZERO, shipping_cost - shipping_deduction)

    return {
        'lines': priced,
        'original_subtotal': original_subtotal,
        'item_discount': item_discount,
        'subtotal': subtotal,
        'store_discount': store_discount,
        'store_rule': store_rule,
        'voucher': voucher,
        'voucher_deduction': voucher_deduction,
        'shipping_cost': shipping_cost,
        'shipping_deduction': shipping_deduction,
        'total_discount': money(item_discount + store_discount + voucher_deduction + shipping_deduction),
        'final_total': money(goods_total + shipping_total),
    }
