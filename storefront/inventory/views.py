from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied

from storefront.core.exceptions import StorefrontError, NotFoundError
from storefront.core.permissions import IsStoreAdminOrSuperAdmin, IsSuperAdmin, scoped_store_id, can_manage_store
from storefront.core.utils import api_response, paginate_queryset, create_audit_log, require_confirmation, parse_int
from .models import Stock
from .serializers import StockSerializer, StockCreateSerializer, StockUpdateSerializer, StockJournalSerializer
from .services import set_stock_quantity


SORT_FIELDS = {
    'product': 'product__name',
    'quantity': 'quantity',
    'createdAt': 'created_at',
}


def _get_stock(request, pk, deleted=False):
    queryset = Stock.objects.deleted() if deleted else Stock.objects.alive()
    stock = queryset.select_related('product', 'store').filter(pk=pk).first()
    if stock is None:
        raise NotFoundError('Stock not found')
    if not can_manage_store(request.user, stock.store_id):
        raise PermissionDenied('You can only manage stock of your own store')
    return stock


@api_view(['GET', 'POST'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def stock_list_create(request):
    """List stock rows (store admins see their own store) or create one"""
    if request.method == 'GET':
        stocks = Stock.objects.alive().select_related('product', 'store').filter(product__deleted_at__isnull=True)
        store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
        if store_id is not None:
            stocks = stocks.filter(store_id=store_id)
        product_id = parse_int(request.query_params.get('productId'))
        if product_id:
            stocks = stocks.filter(product_id=product_id)
        sort_field = SORT_FIELDS.get(request.query_params.get('sortBy'), 'created_at')
        prefix = '' if request.query_params.get('sortOrder') == 'asc' else '-'
        stocks = stocks.order_by(f'{prefix}{sort_field}', 'id')
        return api_response(paginate_queryset(request, stocks, StockSerializer, 'stocks'))

    if not request.user.is_super_admin:
        raise PermissionDenied('Only super admins can create stock records')
    serializer = StockCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    product = serializer.validated_data['productId']
    store = serializer.validated_data['storeId']
    quantity = serializer.validated_data['quantity']
    reason = serializer.validated_data.get('reason') or 'Initial stock'

    with transaction.atomic():
        stock = Stock.objects.select_for_update().filter(product=product, store=store).first()
        if stock is not None and not stock.is_deleted:
            raise StorefrontError('Stock for this product already exists in this store')
        if stock is None:
            stock = Stock.objects.create(product=product, store=store, quantity=0)
        else:
            stock.restore()
        if quantity != stock.quantity:
            set_stock_quantity(stock, quantity, reason=reason, admin=request.user)
        stock.refresh_from_db()

    create_audit_log(request, 'stock_in', 'Stock', stock.id, object_name=product.name,
                     changes={'store_id': store.id, 'quantity': quantity, 'reason': reason})
    return api_response(StockSerializer(stock).data, 'Stock created', status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def stock_detail(request, pk):
    stock = _get_stock(request, pk)

    if request.method == 'GET':
        return api_response(StockSerializer(stock).data)

    if request.method == 'PUT':
        serializer = StockUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quantity = serializer.validated_data['quantity']
        reason = serializer.validated_data['reason']
        if quantity == stock.quantity:
            raise StorefrontError('New quantity is the same as the current quantity')
        journal = set_stock_quantity(stock, quantity, reason=reason, admin=request.user)
        stock.refresh_from_db()
        create_audit_log(request, 'stock_in' if journal.type == 'IN' else 'stock_out', 'Stock', stock.id,
                         object_name=stock.product.name,
                         changes={'before': journal.quantity_before, 'after': journal.quantity_after, 'reason': reason})
        return api_response(StockSerializer(stock).data, 'Stock updated')

    if not request.user.is_super_admin:
        raise PermissionDenied('Only super admins can delete stock records')
    if not require_confirmation(request):
        raise StorefrontError('Add ?confirm=yes to delete this stock')
    stock.soft_delete()
    create_audit_log(request, 'delete', 'Stock', stock.id, object_name=stock.product.name)
    return api_response(None, 'Stock deleted')


@api_view(['PATCH', 'PUT'])
@permission_classes([IsSuperAdmin])
def stock_restore(request, pk):
    stock = _get_stock(request, pk, deleted=True)
    stock.restore()
    create_audit_log(request, 'restore', 'Stock', stock.id, object_name=stock.product.name)
    return api_response(StockSerializer(stock).data, 'Stock restored')


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def stock_journals(request, pk):
    stock = _get_stock(request, pk)
    journals = stock.journals.select_related('admin')
    journal_type = request.query_params.get('type')
    if journal_type in ('IN', 'OUT'):
        journals = journals.filter(type=journal_type)
    return api_response(paginate_queryset(request, journals, StockJournalSerializer, 'journals'))
