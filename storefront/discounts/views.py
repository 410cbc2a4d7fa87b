import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from storefront.cart.models import Cart
from storefront.core.exceptions import StorefrontError, NotFoundError
from storefront.core.permissions import IsStoreAdminOrSuperAdmin, scoped_store_id, can_manage_store
from storefront.core.utils import api_response, paginate_queryset, create_audit_log, require_confirmation, parse_int
from storefront.orders.models import Order
from .models import DiscountRule
from .serializers import DiscountRuleSerializer, DiscountUsageSerializer
from .services import active_rules
from . import pricing

logger = logging.getLogger('storefront.discounts')

SORT_FIELDS = {
    'description': 'description',
    'createdAt': 'created_at',
    'value': 'value',
    'startDate': 'start_date',
    'endDate': 'end_date',
}


def _scoped_rules(request, queryset):
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    if store_id is not None:
        queryset = queryset.filter(store_id=store_id)
    return queryset


def _get_manageable_rule(request, pk, deleted=False):
    queryset = DiscountRule.objects.deleted() if deleted else DiscountRule.objects.alive()
    rule = queryset.select_related('product', 'store').filter(pk=pk).first()
    if rule is None:
        raise NotFoundError('Discount not found')
    if not can_manage_store(request.user, rule.store_id):
        raise PermissionDenied('You can only manage discounts of your own store')
    return rule


def _audit_snapshot(rule):
    return {
        'type': rule.type,
        'value': str(rule.value),
        'product_id': rule.product_id,
        'store_id': rule.store_id,
        'min_purchase': str(rule.min_purchase) if rule.min_purchase is not None else None,
        'max_discount_amount': str(rule.max_discount_amount) if rule.max_discount_amount is not None else None,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def discount_list_create(request):
    """List discounts (paginated) or create a discount"""
    if request.method == 'GET':
        rules = _scoped_rules(request, DiscountRule.objects.alive().select_related('product', 'store'))
        product_id = parse_int(request.query_params.get('productId'))
        if product_id:
            rules = rules.filter(product_id=product_id)
        rule_type = request.query_params.get('type')
        if rule_type:
            rules = rules.filter(type=rule_type)
        sort_field = SORT_FIELDS.get(request.query_params.get('sortBy'), 'created_at')
        prefix = '' if request.query_params.get('sortOrder') == 'asc' else '-'
        rules = rules.order_by(f'{prefix}{sort_field}', '-id')
        return api_response(paginate_queryset(request, rules, DiscountRuleSerializer, 'discounts'))

    serializer = DiscountRuleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    if request.user.is_store_admin:
        if not request.user.store_id:
            raise PermissionDenied('You are not assigned to a store')
        store_id = request.user.store_id
    else:
        store = serializer.validated_data.get('store')
        if store is None:
            raise StorefrontError('storeId is required')
        store_id = store.id
    serializer.validated_data.pop('store', None)
    rule = serializer.save(store_id=store_id)
    create_audit_log(request, 'create', 'DiscountRule', rule.id, object_name=rule.description,
                     changes=_audit_snapshot(rule))
    logger.info(f"Discount {rule.id} created for store {store_id} by {request.user.email}")
    return api_response(DiscountRuleSerializer(rule).data, 'Discount created', status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def discount_detail(request, pk):
    rule = _get_manageable_rule(request, pk)

    if request.method == 'GET':
        return api_response(DiscountRuleSerializer(rule).data)

    if request.method == 'PUT':
        serializer = DiscountRuleSerializer(rule, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        # A discount never moves between stores
        serializer.validated_data.pop('store', None)
        before = _audit_snapshot(rule)
        rule = serializer.save()
        create_audit_log(request, 'update', 'DiscountRule', rule.id, object_name=rule.description,
                         changes={'before': before, 'after': _audit_snapshot(rule)})
        return api_response(DiscountRuleSerializer(rule).data, 'Discount updated')

    if not require_confirmation(request):
        raise StorefrontError('Add ?confirm=yes to delete this discount')
    rule.soft_delete()
    create_audit_log(request, 'delete', 'DiscountRule', rule.id, object_name=rule.description)
    return api_response(None, 'Discount deleted')


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def discount_deleted_list(request):
    rules = _scoped_rules(request, DiscountRule.objects.deleted().select_related('product', 'store'))
    rules = rules.order_by('-deleted_at')
    return api_response(paginate_queryset(request, rules, DiscountRuleSerializer, 'discounts'))


@api_view(['PUT', 'PATCH'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def discount_restore(request, pk):
    rule = _get_manageable_rule(request, pk, deleted=True)
    rule.restore()
    create_audit_log(request, 'restore', 'DiscountRule', rule.id, object_name=rule.description)
    return api_response(DiscountRuleSerializer(rule).data, 'Discount restored')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def discount_apply(request):
    """
    Compute what one discount gives on the caller's cart in the discount's
    store, or on an existing order when orderId is passed
    """
    discount_id = parse_int(request.data.get('discountId'))
    rule = DiscountRule.objects.alive().select_related('store').filter(pk=discount_id).first()
    if rule is None:
        raise NotFoundError('Discount not found')

    order_id = parse_int(request.data.get('orderId'))
    if order_id:
        order = get_object_or_404(Order, pk=order_id, user=request.user)
        if order.store_id != rule.store_id:
            raise StorefrontError('Discount does not belong to the order store')
        at = order.created_at
        lines = [{'product_id': item.product_id, 'unit_price': item.unit_price, 'quantity': item.quantity}
                 for item in order.items.all()]
    else:
        at = timezone.now()
        cart = Cart.objects.filter(user=request.user, store_id=rule.store_id).first()
        lines = [] if cart is None else [
            {'product_id': item.product_id, 'unit_price': item.product.price, 'quantity': item.quantity}
            for item in cart.items.select_related('product')
        ]

    in_window = DiscountRule.objects.active(rule.store, at=at).filter(pk=rule.pk).exists()
    amount = pricing.ZERO
    if in_window and rule.product_id is not None:
        amount = sum(
            (pricing.line_rule_discount(rule, line['unit_price'], line['quantity'])
             for line in lines if line['product_id'] == rule.product_id),
            pricing.ZERO,
        )
    elif in_window:
        # Store-wide rules apply after the best product discounts, as at checkout
        product_rules, _store_rules = active_rules(rule.store, {line['product_id'] for line in lines}, at=at)
        priced = pricing.price_lines(lines, product_rules)
        subtotal = sum((line['final_amount'] for line in priced), pricing.ZERO)
        amount = pricing.store_rule_discount(rule, subtotal)

    return api_response({
        'discountId': rule.id,
        'orderId': order_id,
        'type': rule.type,
        'discountAmount': pricing.money(amount),
        'applicable': amount > 0,
        'active': in_window,
    })


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def discount_usages(request, pk):
    rule = DiscountRule.objects.filter(pk=pk).first()
    if rule is None:
        raise NotFoundError('Discount not found')
    if not can_manage_store(request.user, rule.store_id):
        raise PermissionDenied('You can only view discounts of your own store')
    usages = rule.usages.select_related('user')
    return api_response(paginate_queryset(request, usages, DiscountUsageSerializer, 'usages'))
