from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated

from storefront.core.exceptions import StorefrontError, NotFoundError
from storefront.core.models import UserAddress
from storefront.core.permissions import IsVerifiedUser, IsStoreAdminOrSuperAdmin, scoped_store_id, can_manage_store
from storefront.core.utils import api_response, paginate_queryset, parse_int
from storefront.stores.models import Store
from . import checkout, shipping
from .models import Order
from .serializers import OrderSerializer, OrderDetailSerializer


def _orders():
    return Order.objects.select_related('store', 'user').prefetch_related('items__product__images')


def _filter_orders(request, orders):
    order_status = request.query_params.get('status')
    if order_status:
        orders = orders.filter(status=order_status)
    search = (request.query_params.get('search') or '').strip().lstrip('#')
    if search:
        condition = Q(items__product_name__icontains=search)
        if search.isdigit():
            condition |= Q(pk=int(search))
        orders = orders.filter(condition).distinct()
    return orders


# Shipping and checkout

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def shipping_calculate(request):
    address = UserAddress.objects.filter(pk=parse_int(request.data.get('addressId')), user=request.user).first()
    if address is None:
        raise NotFoundError('Address not found')
    store = None
    store_id = parse_int(request.data.get('storeId'))
    if store_id:
        store = Store.objects.alive().filter(pk=store_id, is_active=True).first()
        if store is None:
            raise NotFoundError('Store not found')
    store, distance = shipping.store_for_address(address, store)
    if store is None:
        raise NotFoundError('No store available')
    weight = parse_int(request.data.get('weight'), 0)
    options = shipping.shipping_options(distance, weight)
    return api_response({
        'store': {'id': store.id, 'name': store.name},
        'distance': distance,
        'inRange': shipping.in_range(distance),
        'weight': weight,
        'services': options,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def checkout_preview(request):
    data = checkout.preview(
        request.user,
        store_id=parse_int(request.query_params.get('storeId')),
        voucher_code=request.query_params.get('voucherCode'),
        shipping_method=request.query_params.get('shippingMethod'),
        address_id=parse_int(request.query_params.get('addressId')),
    )
    return api_response({'preview': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def checkout_validate(request):
    result = checkout.validate(request.user, request.data)
    message = 'Checkout is valid' if result['isValid'] else 'Checkout has problems'
    return api_response(result, message)


@api_view(['POST'])
@permission_classes([IsVerifiedUser])
def order_create(request):
    order = checkout.create_order(request.user, request.data, request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data,
                        'Order created', status.HTTP_201_CREATED)


# Buyer endpoints

def _own_order(request, pk):
    order = _orders().filter(pk=pk, user=request.user).first()
    if order is None:
        raise NotFoundError('Order not found')
    return order


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_list(request):
    orders = _filter_orders(request, _orders().filter(user=request.user))
    return api_response(paginate_queryset(request, orders, OrderSerializer, 'orders'))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    order = _own_order(request, pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def order_payment_proof(request, pk):
    order = _own_order(request, pk)
    upload = request.FILES.get('file') or request.FILES.get('paymentProof')
    if upload is None:
        raise StorefrontError('Payment proof file is required')
    order = checkout.upload_payment_proof(order, upload, request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data, 'Payment proof uploaded')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_cancel(request, pk):
    order = _own_order(request, pk)
    checkout.cancel_order(order, request.data.get('reason') or 'Cancelled by customer', actor=request.user,
                          request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data, 'Order cancelled')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_confirm(request, pk):
    order = _own_order(request, pk)
    checkout.confirm_received(order, request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data, 'Order confirmed')


# Admin endpoints

def _admin_order(request, pk):
    order = _orders().filter(pk=pk).first()
    if order is None:
        raise NotFoundError('Order not found')
    if not can_manage_store(request.user, order.store_id):
        raise PermissionDenied('You can only manage orders of your own store')
    return order


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def admin_order_list(request):
    orders = _orders()
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    if store_id is not None:
        orders = orders.filter(store_id=store_id)
    orders = _filter_orders(request, orders)
    return api_response(paginate_queryset(request, orders, OrderSerializer, 'orders'))


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def admin_order_detail(request, pk):
    order = _admin_order(request, pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data)


@api_view(['PATCH'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def admin_order_status(request, pk):
    order = _admin_order(request, pk)
    new_status = request.data.get('status')
    if new_status not in dict(Order.STATUS_CHOICES):
        raise StorefrontError('Invalid order status')
    checkout.admin_update_status(order, new_status, request.user, reason=request.data.get('reason') or '',
                                 request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data, 'Order status updated')


@api_view(['POST'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def admin_order_cancel(request, pk):
    order = _admin_order(request, pk)
    checkout.cancel_order(order, request.data.get('reason') or 'Cancelled by admin', actor=request.user,
                          by_admin=True, request=request)
    order = _orders().get(pk=order.pk)
    return api_response(OrderDetailSerializer(order, context={'request': request}).data, 'Order cancelled')
