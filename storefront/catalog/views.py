import logging
import math

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from storefront.core.cache import CATALOG_NAMESPACE, cached
from storefront.core.exceptions import StorefrontError, NotFoundError
from storefront.core.permissions import IsSuperAdmin
from storefront.core.utils import (
    api_response, paginate_queryset, create_audit_log, require_confirmation, parse_int, get_pagination_params,
)
from storefront.discounts import pricing
from storefront.discounts.models import DiscountRule
from storefront.inventory.models import Stock
from storefront.stores.geo import find_nearest_active_store
from storefront.stores.models import Store
from .filters import ProductFilter, CategoryFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, ProductWriteSerializer

logger = logging.getLogger('storefront.catalog')

PRODUCT_SORT_FIELDS = {
    'name': 'name',
    'price': 'price',
    'createdAt': 'created_at',
}


def _is_super_admin(request):
    user = request.user
    return bool(user and user.is_authenticated and user.is_super_admin)


def product_context(products, store=None):
    """Stock and best active product discount for a page of products"""
    product_ids = [product.id for product in products]
    stocks = Stock.objects.alive().filter(product_id__in=product_ids)
    if store is not None:
        stocks = stocks.filter(store=store)
        stock_map = dict(stocks.values_list('product_id', 'quantity'))
    else:
        stock_map = {
            row['product_id']: row['total']
            for row in stocks.filter(store__deleted_at__isnull=True).values('product_id').annotate(total=Sum('quantity'))
        }

    discount_map = {}
    if store is not None:
        prices = {product.id: product.price for product in products}
        rules = DiscountRule.objects.active(store).filter(product_id__in=product_ids)
        for rule in rules:
            current = discount_map.get(rule.product_id)
            price = prices[rule.product_id]
            if current is None or (pricing.line_rule_discount(rule, price, 1)
                                   > pricing.line_rule_discount(current, price, 1)):
                discount_map[rule.product_id] = rule
    return {'stock_map': stock_map, 'discount_map': discount_map}


def _get_store_param(request):
    store_id = parse_int(request.query_params.get('storeId'))
    if store_id is None:
        return None
    store = Store.objects.alive().filter(pk=store_id).first()
    if store is None:
        raise NotFoundError('Store not found')
    return store


# Categories

@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def category_list_create(request):
    if request.method == 'GET':
        categories = CategoryFilter(
            request.query_params,
            queryset=Category.objects.alive().annotate(
                product_count=Count('products', filter=Q(products__deleted_at__isnull=True))),
        ).qs
        if request.query_params.get('page') or request.query_params.get('limit'):
            return api_response(paginate_queryset(request, categories, CategorySerializer, 'categories'))

        def build():
            return CategorySerializer(categories, many=True).data

        if request.query_params.get('search'):
            return api_response(build())
        data = cached(CATALOG_NAMESPACE, ['categories'], settings.STOREFRONT['CATEGORY_LIST_CACHE_TTL'], build)
        return api_response(data)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can create categories', status_code=status.HTTP_403_FORBIDDEN)
    serializer = CategorySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    category = serializer.save()
    create_audit_log(request, 'create', 'Category', category.id, object_name=category.name)
    return api_response(CategorySerializer(category).data, 'Category created', status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([AllowAny])
def category_detail(request, pk):
    category = Category.objects.alive().filter(pk=pk).first()
    if category is None:
        raise NotFoundError('Category not found')

    if request.method == 'GET':
        return api_response(CategorySerializer(category).data)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can modify categories', status_code=status.HTTP_403_FORBIDDEN)

    if request.method == 'PUT':
        serializer = CategorySerializer(category, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        old_name = category.name
        category = serializer.save()
        create_audit_log(request, 'update', 'Category', category.id, object_name=category.name,
                         changes={'name': {'old': old_name, 'new': category.name}})
        return api_response(CategorySerializer(category).data, 'Category updated')

    if not require_confirmation(request):
        raise StorefrontError('Add ?confirm=yes to delete this category')
    if category.products.alive().exists():
        raise StorefrontError('Category still has products')
    category.soft_delete()
    create_audit_log(request, 'delete', 'Category', category.id, object_name=category.name)
    return api_response(None, 'Category deleted')


@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def category_deleted_list(request):
    categories = Category.objects.deleted().order_by('-deleted_at')
    return api_response(paginate_queryset(request, categories, CategorySerializer, 'categories'))


@api_view(['PUT', 'PATCH'])
@permission_classes([IsSuperAdmin])
def category_restore(request, pk):
    category = Category.objects.deleted().filter(pk=pk).first()
    if category is None:
        raise NotFoundError('Category not found')
    if Category.objects.alive().filter(name__iexact=category.name).exists():
        raise StorefrontError('An active category with this name already exists')
    category.restore()
    create_audit_log(request, 'restore', 'Category', category.id, object_name=category.name)
    return api_response(CategorySerializer(category).data, 'Category restored')


# Products

def _product_queryset():
    return Product.objects.alive().filter(category__deleted_at__isnull=True) \
        .select_related('category').prefetch_related('images')


def _product_page(request, queryset, store):
    page, limit = get_pagination_params(request)
    total = queryset.count()
    products = list(queryset[(page - 1) * limit:page * limit])
    context = product_context(products, store)
    data = ProductSerializer(products, many=True, context=context).data
    pagination = {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': math.ceil(total / limit) if total else 0,
    }
    return data, total, pagination


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def product_list_create(request):
    if request.method == 'GET':
        store = _get_store_param(request)
        products = ProductFilter(request.query_params, queryset=_product_queryset()).qs
        if store is not None and request.query_params.get('inStock') == 'true':
            products = products.filter(stocks__store=store, stocks__deleted_at__isnull=True, stocks__quantity__gt=0)
        sort_field = PRODUCT_SORT_FIELDS.get(request.query_params.get('sortBy'), 'created_at')
        prefix = '' if request.query_params.get('sortOrder') == 'asc' else '-'
        products = products.order_by(f'{prefix}{sort_field}', 'id')

        data, total, pagination = _product_page(request, products, store)
        return api_response({'products': data, 'total': total}, pagination=pagination)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can create products', status_code=status.HTTP_403_FORBIDDEN)
    serializer = ProductWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        product = serializer.save()
    create_audit_log(request, 'create', 'Product', product.id, object_name=product.name,
                     changes={'price': str(product.price), 'category_id': product.category_id})
    logger.info(f"Product '{product.name}' created by {request.user.email}")
    return api_response(ProductSerializer(product).data, 'Product created', status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([AllowAny])
def product_detail(request, pk):
    product = _product_queryset().filter(pk=pk).first()
    if product is None:
        raise NotFoundError('Product not found')

    if request.method == 'GET':
        store = _get_store_param(request)
        return api_response(ProductSerializer(product, context=product_context([product], store)).data)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can modify products', status_code=status.HTTP_403_FORBIDDEN)

    if request.method == 'PUT':
        serializer = ProductWriteSerializer(product, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        old_price = product.price
        with transaction.atomic():
            product = serializer.save()
        changes = {}
        if old_price != product.price:
            changes['price'] = {'old': str(old_price), 'new': str(product.price)}
        create_audit_log(request, 'update', 'Product', product.id, object_name=product.name, changes=changes)
        product = _product_queryset().get(pk=product.pk)
        return api_response(ProductSerializer(product, context=product_context([product])).data, 'Product updated')

    product.soft_delete()
    create_audit_log(request, 'delete', 'Product', product.id, object_name=product.name)
    logger.info(f"Product '{product.name}' deleted by {request.user.email}")
    return api_response(None, 'Product deleted')


# Homepage

def _carousel(store):
    if store is None:
        return []
    rules = DiscountRule.objects.active(store).select_related('product').prefetch_related('product__images')[:5]
    items = []
    for rule in rules:
        image = None
        if rule.product_id is not None:
            first_image = next(iter(rule.product.images.all()), None)
            image = first_image.image_url if first_image else None
        items.append({
            'id': rule.id,
            'title': rule.product.name if rule.product_id else rule.description,
            'description': rule.description,
            'imageUrl': image,
            'link': f"/products/{rule.product_id}" if rule.product_id else '/promotions',
            'type': rule.type,
        })
    return items


@api_view(['GET'])
@permission_classes([AllowAny])
def homepage(request):
    """
    Landing page payload: navigation, discount carousel and the product list
    of the store nearest to the visitor (or the first active store).
    """
    try:
        lat = float(request.query_params['lat'])
        lng = float(request.query_params['lng'])
    except (KeyError, TypeError, ValueError):
        lat = lng = None

    distance = None
    if lat is not None:
        store, distance = find_nearest_active_store(lat, lng)
    else:
        store = Store.objects.alive().filter(is_active=True).order_by('id').first()
    page, limit = get_pagination_params(request)

    def build():
        categories = Category.objects.alive().order_by('name')
        products, _total, pagination = _product_page(request, _product_queryset().order_by('-created_at', 'id'), store)
        store_data = None
        if store is not None:
            store_data = {
                'id': store.id,
                'name': store.name,
                'address': store.address,
                'distance': round(distance, 2) if distance is not None else None,
            }
        return {
            'navigation': {
                'categories': [{'id': c.id, 'name': c.name} for c in categories],
                'featuredLinks': settings.STOREFRONT['HOMEPAGE_FEATURED_LINKS'],
            },
            'heroSection': {'carousel': _carousel(store)},
            'productList': {'store': store_data, 'products': products, 'pagination': pagination},
            'footer': settings.STOREFRONT['HOMEPAGE_FOOTER'],
        }

    rounded = (round(lat, 2), round(lng, 2)) if lat is not None else ('-', '-')
    data = cached(CATALOG_NAMESPACE, ['homepage', store.id if store else 0, *rounded, page, limit],
                  settings.STOREFRONT['HOMEPAGE_CACHE_TTL'], build)
    return api_response(data)
