import logging

from django.db import transaction
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from storefront.catalog.models import Product
from storefront.core.exceptions import StockError, NotFoundError
from storefront.core.permissions import IsVerifiedUser
from storefront.core.utils import api_response, parse_int
from storefront.inventory.models import Stock
from storefront.stores.models import Store
from .models import Cart, CartItem
from .services import summarize_cart

logger = logging.getLogger('storefront.cart')


class AddItemSerializer(serializers.Serializer):
    productId = serializers.PrimaryKeyRelatedField(queryset=Product.objects.alive())
    storeId = serializers.PrimaryKeyRelatedField(queryset=Store.objects.alive().filter(is_active=True))
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)


def _available(product_id, store_id):
    stock = Stock.objects.alive().filter(product_id=product_id, store_id=store_id).first()
    return stock.quantity if stock else 0


def _user_cart(request):
    carts = Cart.objects.filter(user=request.user).select_related('store')
    store_id = parse_int(request.query_params.get('storeId'))
    if store_id:
        return carts.filter(store_id=store_id).first()
    return carts.order_by('-updated_at').first()


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_view(request):
    """Current cart (per store) or clear carts"""
    if request.method == 'GET':
        return api_response(summarize_cart(_user_cart(request)))

    if not request.user.is_verified:
        raise PermissionDenied(IsVerifiedUser.message)
    carts = Cart.objects.filter(user=request.user)
    store_id = parse_int(request.query_params.get('storeId'))
    if store_id:
        carts = carts.filter(store_id=store_id)
    deleted, _ = CartItem.objects.filter(cart__in=carts).delete()
    logger.info(f"User {request.user.id} cleared {deleted} cart item(s)")
    return api_response(None, 'Cart cleared')


@api_view(['POST'])
@permission_classes([IsVerifiedUser])
def add_item(request):
    serializer = AddItemSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    product = serializer.validated_data['productId']
    store = serializer.validated_data['storeId']
    quantity = serializer.validated_data['quantity']

    with transaction.atomic():
        cart, _created = Cart.objects.get_or_create(user=request.user, store=store)
        item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
        new_quantity = quantity + (item.quantity if item else 0)
        available = _available(product.id, store.id)
        if new_quantity > available:
            raise StockError(f"Only {available} item(s) of {product.name} available",
                             data={'productId': product.id, 'available': available})
        if item is None:
            item = CartItem.objects.create(cart=cart, product=product, quantity=new_quantity)
        else:
            item.quantity = new_quantity
            item.save(update_fields=['quantity', 'updated_at'])
        cart.save(update_fields=['updated_at'])

    return api_response(summarize_cart(cart), 'Item added to cart', status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsVerifiedUser])
def item_detail(request, pk):
    item = CartItem.objects.select_related('cart', 'cart__store', 'product').filter(pk=pk, cart__user=request.user).first()
    if item is None:
        raise NotFoundError('Cart item not found')
    cart = item.cart

    if request.method == 'PATCH':
        serializer = UpdateItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quantity = serializer.validated_data['quantity']
        available = _available(item.product_id, cart.store_id)
        if quantity > available:
            raise StockError(f"Only {available} item(s) of {item.product.name} available",
                             data={'productId': item.product_id, 'available': available})
        item.quantity = quantity
        item.save(update_fields=['quantity', 'updated_at'])
        cart.save(update_fields=['updated_at'])
        return api_response(summarize_cart(cart), 'Cart item updated')

    item.delete()
    cart.save(update_fields=['updated_at'])
    return api_response(summarize_cart(cart), 'Item removed from cart')
