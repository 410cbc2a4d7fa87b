import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from storefront.core.exceptions import StorefrontError, NotFoundError
from storefront.core.models import User
from storefront.core.permissions import IsSuperAdmin
from storefront.core.utils import api_response, create_audit_log, require_confirmation, parse_bool, paginate_queryset
from .geo import find_nearest_active_store
from .models import Store
from .serializers import StoreSerializer, StoreAdminSerializer, AssignAdminSerializer

logger = logging.getLogger('storefront.stores')


def _get_store(pk, deleted=False):
    queryset = Store.objects.deleted() if deleted else Store.objects.alive()
    store = queryset.filter(pk=pk).first()
    if store is None:
        raise NotFoundError('Store not found')
    return store


def _is_super_admin(request):
    user = request.user
    return bool(user and user.is_authenticated and user.is_super_admin)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def store_list_create(request):
    """Public list of active stores; super admins can create stores"""
    if request.method == 'GET':
        if _is_super_admin(request):
            stores = Store.objects.all() if parse_bool(request.query_params.get('includeDeleted')) else Store.objects.alive()
        else:
            stores = Store.objects.alive().filter(is_active=True)
        search = request.query_params.get('search')
        if search:
            stores = stores.filter(Q(name__icontains=search) | Q(city__icontains=search) | Q(address__icontains=search))
        if request.query_params.get('page') or request.query_params.get('limit'):
            return api_response(paginate_queryset(request, stores, StoreSerializer, 'stores'))
        return api_response(StoreSerializer(stores, many=True).data)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can create stores', status_code=status.HTTP_403_FORBIDDEN)
    serializer = StoreSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    store = serializer.save()
    create_audit_log(request, 'create', 'Store', store.id, object_name=store.name)
    logger.info(f"Store '{store.name}' created by {request.user.email}")
    return api_response(StoreSerializer(store).data, 'Store created', status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([AllowAny])
def store_detail(request, pk):
    store = _get_store(pk)

    if request.method == 'GET':
        return api_response(StoreSerializer(store).data)

    if not _is_super_admin(request):
        raise StorefrontError('Only super admins can modify stores', status_code=status.HTTP_403_FORBIDDEN)

    if request.method == 'PUT':
        serializer = StoreSerializer(store, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        store = serializer.save()
        create_audit_log(request, 'update', 'Store', store.id, object_name=store.name,
                         changes=dict(request.data))
        return api_response(StoreSerializer(store).data, 'Store updated')

    if not require_confirmation(request):
        raise StorefrontError('Add ?confirm=yes to delete this store')
    with transaction.atomic():
        store.soft_delete()
        # Admins of a deleted store lose their assignment
        User.objects.filter(store=store).update(store=None)
    create_audit_log(request, 'delete', 'Store', store.id, object_name=store.name)
    logger.info(f"Store '{store.name}' deleted by {request.user.email}")
    return api_response(None, 'Store deleted')


@api_view(['PATCH', 'PUT'])
@permission_classes([IsSuperAdmin])
def store_restore(request, pk):
    store = _get_store(pk, deleted=True)
    store.restore()
    create_audit_log(request, 'restore', 'Store', store.id, object_name=store.name)
    return api_response(StoreSerializer(store).data, 'Store restored')


@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def store_admins(request, pk):
    store = _get_store(pk)
    admins = User.objects.filter(store=store, role=User.ROLE_STORE_ADMIN, is_active=True)
    return api_response(StoreAdminSerializer(admins, many=True).data)


@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def available_admins(request):
    """Store admins not yet assigned to any store"""
    admins = User.objects.filter(role=User.ROLE_STORE_ADMIN, is_active=True, store__isnull=True)
    data = [{'id': user.id, 'email': user.email, 'fullName': user.full_name} for user in admins]
    return api_response(data)


@api_view(['POST'])
@permission_classes([IsSuperAdmin])
def assign_admin(request):
    serializer = AssignAdminSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    store = serializer.validated_data['storeId']
    user = serializer.validated_data['userId']

    previous_store_id = user.store_id
    user.role = User.ROLE_STORE_ADMIN
    user.store = store
    user.save(update_fields=['role', 'store'])
    create_audit_log(request, 'admin_assign', 'User', user.id, object_name=user.email,
                     changes={'store_id': store.id, 'previous_store_id': previous_store_id})
    logger.info(f"User {user.email} assigned to store '{store.name}'")
    return api_response(StoreAdminSerializer(user).data, 'Admin assigned to store')


@api_view(['DELETE'])
@permission_classes([IsSuperAdmin])
def remove_admin(request, user_id):
    user = User.objects.filter(pk=user_id, role=User.ROLE_STORE_ADMIN).first()
    if user is None:
        raise NotFoundError('Store admin not found')
    if user.store_id is None:
        raise StorefrontError('User is not assigned to a store')
    previous_store_id = user.store_id
    user.store = None
    user.save(update_fields=['store'])
    create_audit_log(request, 'admin_remove', 'User', user.id, object_name=user.email,
                     changes={'previous_store_id': previous_store_id})
    return api_response(None, 'Admin removed from store')


@api_view(['GET'])
@permission_classes([AllowAny])
def nearest(request):
    """Nearest active store to a coordinate; inRange tells whether it delivers there"""
    try:
        lat = float(request.query_params.get('lat'))
        lng = float(request.query_params.get('lng'))
    except (TypeError, ValueError):
        raise StorefrontError('lat and lng query parameters are required')

    store, distance = find_nearest_active_store(lat, lng)
    if store is None:
        raise NotFoundError('No store available')
    max_distance = settings.STOREFRONT['MAX_DELIVERY_DISTANCE_KM']
    return api_response({
        'store': StoreSerializer(store).data,
        'distance': round(distance, 2),
        'inRange': distance <= max_distance,
        'maxDistance': max_distance,
    })
