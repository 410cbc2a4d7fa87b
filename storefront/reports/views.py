from datetime import datetime
from decimal import Decimal

from django.db.models import Sum, Count, Q, DecimalField
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes

from storefront.catalog.models import Product
from storefront.core.exceptions import StorefrontError
from storefront.core.models import User
from storefront.core.permissions import IsStoreAdminOrSuperAdmin, scoped_store_id
from storefront.core.utils import api_response, parse_int
from storefront.inventory.models import Stock, StockJournal
from storefront.orders.models import Order, OrderItem
from storefront.stores.models import Store


# Orders that count as sales
SALES_STATUSES = [Order.STATUS_PROCESSING, Order.STATUS_SHIPPED, Order.STATUS_CONFIRMED]


def _period(request):
    """(month, year, start, end) for the requested month, defaulting to the current one"""
    now = timezone.localtime()
    month = parse_int(request.query_params.get('month'), now.month)
    year = parse_int(request.query_params.get('year'), now.year)
    if not 1 <= month <= 12 or not 2000 <= year <= 9999:
        raise StorefrontError('Invalid month or year')
    start = timezone.make_aware(datetime(year, month, 1))
    end = timezone.make_aware(datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1))
    return month, year, start, end


def _report(rows):
    return api_response({'data': rows, 'total': len(rows)})


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def sales_monthly(request):
    """Sales total and transaction count per store for one month"""
    month, year, start, end = _period(request)
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))

    orders = Order.objects.filter(status__in=SALES_STATUSES, created_at__gte=start, created_at__lt=end)
    if store_id is not None:
        orders = orders.filter(store_id=store_id)
    rows = orders.values('store_id', 'store__name').annotate(
        total_sales=Sum('final_total', output_field=DecimalField()),
        transactions=Count('id'),
    ).order_by('store__name')

    data = [{
        'month': month,
        'year': year,
        'storeId': row['store_id'],
        'storeName': row['store__name'],
        'totalSales': row['total_sales'] or Decimal('0.00'),
        'totalTransactions': row['transactions'],
    } for row in rows]
    return _report(data)


def _sold_items(request, start, end):
    items = OrderItem.objects.filter(
        order__status__in=SALES_STATUSES, order__created_at__gte=start, order__created_at__lt=end)
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    if store_id is not None:
        items = items.filter(order__store_id=store_id)
    return items, store_id


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def sales_by_category(request):
    month, year, start, end = _period(request)
    items, store_id = _sold_items(request, start, end)
    rows = items.values('product__category_id', 'product__category__name').annotate(
        total_sales=Sum('line_total', output_field=DecimalField()),
        quantity=Sum('quantity'),
    ).order_by('-total_sales')

    data = [{
        'categoryId': row['product__category_id'],
        'categoryName': row['product__category__name'],
        'totalSales': row['total_sales'] or Decimal('0.00'),
        'quantity': row['quantity'] or 0,
        'month': month,
        'year': year,
        'storeId': store_id,
    } for row in rows]
    return _report(data)


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def sales_by_product(request):
    month, year, start, end = _period(request)
    items, store_id = _sold_items(request, start, end)
    rows = items.values('product_id', 'product_name').annotate(
        total_sales=Sum('line_total', output_field=DecimalField()),
        quantity=Sum('quantity'),
    ).order_by('-total_sales')

    data = [{
        'productId': row['product_id'],
        'productName': row['product_name'],
        'totalSales': row['total_sales'] or Decimal('0.00'),
        'quantity': row['quantity'] or 0,
        'month': month,
        'year': year,
        'storeId': store_id,
    } for row in rows]
    return _report(data)


def _journal_totals(journals):
    totals = journals.aggregate(
        added=Sum('quantity', filter=Q(type=StockJournal.TYPE_IN)),
        removed=Sum('quantity', filter=Q(type=StockJournal.TYPE_OUT)),
    )
    return totals['added'] or 0, totals['removed'] or 0


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def stock_summary(request):
    """
    Per store: stock added and removed during the month, and the stock level
    at month end (current quantity with later movements rolled back)
    """
    month, year, start, end = _period(request)
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    stores = Store.objects.alive()
    if store_id is not None:
        stores = stores.filter(pk=store_id)

    data = []
    for store in stores.order_by('name'):
        journals = StockJournal.objects.filter(stock__store=store)
        added, removed = _journal_totals(journals.filter(created_at__gte=start, created_at__lt=end))
        later_added, later_removed = _journal_totals(journals.filter(created_at__gte=end))
        current = Stock.objects.filter(store=store).aggregate(total=Sum('quantity'))['total'] or 0
        data.append({
            'month': month,
            'year': year,
            'storeId': store.id,
            'storeName': store.name,
            'totalAddition': added,
            'totalReduction': removed,
            'finalStock': current - later_added + later_removed,
        })
    return _report(data)


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def stock_detail(request):
    """Journal rows of the month, newest first"""
    month, year, start, end = _period(request)
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    journals = StockJournal.objects.filter(created_at__gte=start, created_at__lt=end) \
        .select_related('stock__product', 'stock__store')
    if store_id is not None:
        journals = journals.filter(stock__store_id=store_id)
    product_id = parse_int(request.query_params.get('productId'))
    if product_id:
        journals = journals.filter(stock__product_id=product_id)

    data = [{
        'id': journal.id,
        'productId': journal.stock.product_id,
        'productName': journal.stock.product.name,
        'storeId': journal.stock.store_id,
        'storeName': journal.stock.store.name,
        'type': journal.type,
        'quantity': journal.quantity,
        'quantityBefore': journal.quantity_before,
        'quantityAfter': journal.quantity_after,
        'reason': journal.reason,
        'orderId': journal.order_id,
        'date': journal.created_at,
    } for journal in journals.order_by('-created_at', '-id')]
    return _report(data)


@api_view(['GET'])
@permission_classes([IsStoreAdminOrSuperAdmin])
def admin_dashboard(request):
    """Counters for the admin landing page"""
    store_id = scoped_store_id(request.user, parse_int(request.query_params.get('storeId')))
    orders = Order.objects.all()
    if store_id is not None:
        orders = orders.filter(store_id=store_id)

    by_status = {code: 0 for code, _label in Order.STATUS_CHOICES}
    for row in orders.values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    _month, _year, start, end = _period(request)
    revenue = orders.filter(status__in=SALES_STATUSES, created_at__gte=start, created_at__lt=end) \
        .aggregate(total=Sum('final_total'))['total'] or Decimal('0.00')

    low_stock = Stock.objects.alive().filter(quantity__lte=5, product__deleted_at__isnull=True)
    if store_id is not None:
        low_stock = low_stock.filter(store_id=store_id)

    return api_response({
        'storeId': store_id,
        'orders': {'total': sum(by_status.values()), 'byStatus': by_status},
        'monthlyRevenue': revenue,
        'products': Product.objects.alive().count(),
        'users': User.objects.filter(role=User.ROLE_USER, is_active=True).count(),
        'stores': Store.objects.alive().count(),
        'lowStock': low_stock.count(),
    })
