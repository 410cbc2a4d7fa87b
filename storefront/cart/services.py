"""Priced view of a cart, shared by the cart page and checkout"""
from storefront.discounts import pricing
from storefront.discounts.services import active_rules
from storefront.inventory.models import Stock


def cart_lines(cart, item_ids=None):
    """Cart items with product, stock and pricing input, oldest first"""
    items = cart.items.select_related('product', 'product__category').prefetch_related('product__images')
    if item_ids:
        items = items.filter(pk__in=item_ids)
    items = [item for item in items if not item.product.is_deleted]
    stock_map = dict(
        Stock.objects.alive().filter(store_id=cart.store_id, product_id__in=[item.product_id for item in items])
        .values_list('product_id', 'quantity')
    )
    return [
        {
            'item': item,
            'product_id': item.product_id,
            'unit_price': item.product.price,
            'quantity': item.quantity,
            'weight': item.product.weight * item.quantity,
            'stock': stock_map.get(item.product_id, 0),
        }
        for item in items
    ]


def serialize_line(line, cart_id):
    item = line['item']
    product = item.product
    rule = line['rule']
    return {
        'id': item.id,
        'cartId': cart_id,
        'productId': product.id,
        'quantity': item.quantity,
        'stockAvailable': line['stock'],
        'product': {
            'id': product.id,
            'name': product.name,
            'defaultPrice': pricing.money(product.price),
            'weight': product.weight,
            'category': {'id': product.category_id, 'name': product.category.name},
            'productImages': [{'imageUrl': image.image_url} for image in product.images.all()],
        },
        'unitPrice': line['unit_price'],
        'originalPrice': line['original_amount'],
        'finalPrice': line['final_amount'],
        'discountAmount': line['discount_amount'],
        'appliedDiscount': {'id': rule.id, 'type': rule.type, 'name': rule.description} if rule else None,
    }


def summarize_cart(cart, item_ids=None):
    """Cart payload with item-level discounts applied"""
    if cart is None:
        return {
            'id': None, 'userId': None, 'storeId': None, 'cartItems': [],
            'totalItems': 0, 'subtotal': pricing.money(0), 'originalSubtotal': pricing.money(0),
        }
    lines = cart_lines(cart, item_ids)
    product_rules, _store_rules = active_rules(cart.store, {line['product_id'] for line in lines})
    priced = pricing.price_lines(lines, product_rules)
    return {
        'id': cart.id,
        'userId': cart.user_id,
        'storeId': cart.store_id,
        'storeName': cart.store.name,
        'cartItems': [serialize_line(line, cart.id) for line in priced],
        'totalItems': sum(line['quantity'] for line in priced),
        'subtotal': pricing.money(sum((line['final_amount'] for line in priced), pricing.ZERO)),
        'originalSubtotal': pricing.money(sum((line['original_amount'] for line in priced), pricing.ZERO)),
    }
