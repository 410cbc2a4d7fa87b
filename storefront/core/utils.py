"""Response envelope, pagination and audit logging helpers"""
import logging
import math

from django.conf import settings
from rest_framework import status as http_status
from rest_framework.response import Response

from .models import AuditLog

logger = logging.getLogger('storefront.core')


def api_response(data=None, message='Success', status_code=http_status.HTTP_200_OK, **extra):
    """Wrap a payload in the {status, message, data} envelope"""
    body = {'status': status_code, 'message': message, 'data': data}
    body.update(extra)
    return Response(body, status=status_code)


def parse_int(value, default=None):
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def get_pagination_params(request):
    """Read page/limit query params, clamped to sane bounds"""
    defaults = settings.STOREFRONT
    page = max(parse_int(request.query_params.get('page'), 1), 1)
    limit = parse_int(request.query_params.get('limit'), defaults['DEFAULT_PAGE_SIZE'])
    limit = min(max(limit, 1), defaults['MAX_PAGE_SIZE'])
    return page, limit


def paginate_queryset(request, queryset, serializer_class, key, context=None):
    """
    Slice a queryset by page/limit and serialize the page.

    Returns the list payload used by every admin table:
    {<key>: [...], total, page, limit, totalPages}
    """
    page, limit = get_pagination_params(request)
    total = queryset.count()
    offset = (page - 1) * limit
    items = queryset[offset:offset + limit]
    serializer = serializer_class(items, many=True, context=context or {'request': request})
    return {
        key: serializer.data,
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': math.ceil(total / limit) if total else 0,
    }


def require_confirmation(request):
    """Destructive admin endpoints need ?confirm=yes"""
    return request.query_params.get('confirm', '').lower() == 'yes'


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Create an audit log entry

    Args:
        request: request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, stock_in, order_status, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object
        changes: Dictionary of changes made (values must be JSON serializable)
        user: Optional user override (defaults to request.user)
        object_name: Human-readable name of the object
    """
    if not action or not model_name or object_id is None:
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # The main operation must not fail because of auditing
        logger.error(f"Failed to create audit log: {str(e)}")
        return None
