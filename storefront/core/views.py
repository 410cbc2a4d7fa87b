import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import AuthenticationFailed, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from storefront.discounts.models import Voucher
from storefront.discounts.serializers import VoucherSerializer
from storefront.discounts.services import issue_referral_vouchers
from .emails import send_verification_email, send_password_reset_email
from .exceptions import StorefrontError, NotFoundError
from .models import UserAddress, VerificationToken, AuditLog
from .permissions import IsSuperAdmin
from .serializers import (
    UserSerializer, RegisterSerializer, StorefrontTokenObtainPairSerializer,
    ProfileUpdateSerializer, SetPasswordSerializer, ResetPasswordSerializer,
    UserAddressSerializer, AdminUserSerializer, AuditLogSerializer,
)
from .utils import api_response, paginate_queryset, create_audit_log, require_confirmation

User = get_user_model()
logger = logging.getLogger('storefront.core')


def _token_payload(user):
    token = StorefrontTokenObtainPairSerializer.get_token(user)
    return {
        'user': UserSerializer(user).data,
        'accessToken': str(token.access_token),
        'refreshToken': str(token),
    }


def _usable_token(raw_token, purpose):
    token = VerificationToken.objects.select_related('user').filter(token=raw_token, purpose=purpose).first()
    if token is None or not token.is_usable():
        raise StorefrontError('Token is invalid or has expired')
    return token


# Authentication

@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Register a shopper; a valid referral code earns both sides a voucher"""
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        user = serializer.save()
        if user.referred_by_id:
            issue_referral_vouchers(user, user.referred_by)
    send_verification_email(user)
    logger.info(f"User registered: {user.email}")
    return api_response(_token_payload(user), 'Registration successful, please verify your email',
                        status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    serializer = StorefrontTokenObtainPairSerializer(data={
        'email': (request.data.get('email') or '').lower(),
        'password': request.data.get('password') or '',
    })
    try:
        serializer.is_valid(raise_exception=True)
    except ValidationError:
        raise AuthenticationFailed('Email and password are required')
    user = serializer.user
    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    return api_response({
        'user': UserSerializer(user).data,
        'accessToken': serializer.validated_data['access'],
        'refreshToken': serializer.validated_data['refresh'],
    }, 'Login successful')


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh(request):
    serializer = TokenRefreshSerializer(data={'refresh': request.data.get('refreshToken') or request.data.get('refresh')})
    try:
        serializer.is_valid(raise_exception=True)
    except (InvalidToken, TokenError, User.DoesNotExist):
        raise InvalidToken('Token is invalid or expired.')
    data = {'accessToken': serializer.validated_data['access']}
    if 'refresh' in serializer.validated_data:
        data['refreshToken'] = serializer.validated_data['refresh']
    return api_response(data, 'Token refreshed')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    return api_response(UserSerializer(request.user).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def update_profile(request):
    """Update name, email or photo; a new email must be verified again"""
    user = request.user
    serializer = ProfileUpdateSerializer(data=request.data, context={'request': request})
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    email_changed = 'email' in data and data['email'] != user.email
    if 'fullName' in data:
        user.full_name = data['fullName']
    if 'profilePhoto' in data:
        user.profile_photo = data['profilePhoto']
    if email_changed:
        user.email = data['email']
        user.username = data['email']
        user.is_verified = False
    user.save()

    if email_changed:
        send_verification_email(user)
    message = 'Profile updated, please verify your new email' if email_changed else 'Profile updated'
    return api_response(UserSerializer(user).data, message)


# Verification and password reset

@api_view(['GET'])
@permission_classes([AllowAny])
def activate(request, token):
    with transaction.atomic():
        verification = _usable_token(token, VerificationToken.PURPOSE_EMAIL_VERIFY)
        verification.used_at = timezone.now()
        verification.save(update_fields=['used_at'])
        user = verification.user
        user.is_verified = True
        user.save(update_fields=['is_verified'])
    logger.info(f"Email verified for user {user.id}")
    return api_response(UserSerializer(user).data, 'Email verified')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def request_verification(request):
    if request.user.is_verified:
        raise StorefrontError('Email is already verified')
    send_verification_email(request.user)
    return api_response(None, 'Verification email sent')


@api_view(['POST'])
@permission_classes([AllowAny])
def resend_verification(request):
    email = (request.data.get('email') or '').lower()
    user = User.objects.filter(email__iexact=email).first()
    # Same answer whether or not the account exists
    if user is not None and not user.is_verified:
        send_verification_email(user)
    return api_response(None, 'If the account exists, a verification email has been sent')


@api_view(['POST'])
@permission_classes([AllowAny])
def request_password_reset(request):
    email = (request.data.get('email') or '').lower()
    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is not None:
        send_password_reset_email(user)
    return api_response(None, 'If the account exists, a password reset email has been sent')


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_reset_token(request):
    token = _usable_token(request.data.get('token') or '', VerificationToken.PURPOSE_PASSWORD_RESET)
    return api_response({'valid': True, 'email': token.user.email}, 'Token is valid')


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password(request):
    serializer = ResetPasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        token = _usable_token(serializer.validated_data['token'], VerificationToken.PURPOSE_PASSWORD_RESET)
        token.used_at = timezone.now()
        token.save(update_fields=['used_at'])
        user = token.user
        user.set_password(serializer.validated_data['password'])
        user.save(update_fields=['password'])
    logger.info(f"Password reset for user {user.id}")
    return api_response(None, 'Password has been reset')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def set_password(request):
    serializer = SetPasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = request.user
    if user.has_usable_password() and not user.check_password(serializer.validated_data.get('currentPassword') or ''):
        raise StorefrontError('Current password is incorrect')
    user.set_password(serializer.validated_data['password'])
    user.save(update_fields=['password'])
    return api_response(None, 'Password updated')


# Addresses

def _clear_main(user, keep_id=None):
    UserAddress.objects.filter(user=user, is_main=True).exclude(pk=keep_id).update(is_main=False)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def address_list(request):
    addresses = UserAddress.objects.filter(user=request.user)
    return api_response(UserAddressSerializer(addresses, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def address_create(request):
    serializer = UserAddressSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        has_addresses = UserAddress.objects.filter(user=request.user).exists()
        is_main = serializer.validated_data.get('is_main', False) or not has_addresses
        address = serializer.save(user=request.user, is_main=is_main)
        if is_main:
            _clear_main(request.user, keep_id=address.pk)
    return api_response(UserAddressSerializer(address).data, 'Address created', status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def address_detail(request, pk):
    address = get_object_or_404(UserAddress, pk=pk, user=request.user)

    if request.method == 'PATCH':
        serializer = UserAddressSerializer(address, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            if serializer.validated_data.get('is_main') is False and address.is_main:
                # Unsetting the only main address is not allowed
                serializer.validated_data['is_main'] = True
            address = serializer.save()
            if address.is_main:
                _clear_main(request.user, keep_id=address.pk)
        return api_response(UserAddressSerializer(address).data, 'Address updated')

    with transaction.atomic():
        was_main = address.is_main
        address.delete()
        if was_main:
            replacement = UserAddress.objects.filter(user=request.user).order_by('-created_at').first()
            if replacement is not None:
                replacement.is_main = True
                replacement.save(update_fields=['is_main'])
    return api_response(None, 'Address deleted')


# Vouchers

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_vouchers(request):
    vouchers = Voucher.objects.usable(request.user)
    return api_response(VoucherSerializer(vouchers, many=True).data)


# User management (super admin)

@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def admin_user_list(request):
    users = User.objects.filter(is_active=True).select_related('store')
    role = request.query_params.get('role')
    if role:
        users = users.filter(role=role)
    search = request.query_params.get('search')
    if search:
        users = users.filter(Q(email__icontains=search) | Q(full_name__icontains=search))
    return api_response(paginate_queryset(request, users, UserSerializer, 'users'))


@api_view(['GET', 'POST'])
@permission_classes([IsSuperAdmin])
def store_admin_list_create(request):
    if request.method == 'GET':
        admins = User.objects.filter(role=User.ROLE_STORE_ADMIN, is_active=True).select_related('store')
        store_id = request.query_params.get('storeId')
        if store_id:
            admins = admins.filter(store_id=store_id)
        return api_response(paginate_queryset(request, admins, UserSerializer, 'users'))

    data = request.data.copy()
    data['role'] = User.ROLE_STORE_ADMIN
    serializer = AdminUserSerializer(data=data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    create_audit_log(request, 'create', 'User', user.id, object_name=user.email,
                     changes={'role': user.role, 'store_id': user.store_id})
    logger.info(f"Store admin created: {user.email}")
    return api_response(UserSerializer(user).data, 'Store admin created', status.HTTP_201_CREATED)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsSuperAdmin])
def admin_user_detail(request, pk):
    user = User.objects.filter(pk=pk, is_active=True).first()
    if user is None:
        raise NotFoundError('User not found')

    if request.method == 'PUT':
        serializer = AdminUserSerializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        create_audit_log(request, 'update', 'User', user.id, object_name=user.email,
                         changes={k: v for k, v in request.data.items() if k != 'password'})
        return api_response(UserSerializer(user).data, 'User updated')

    if user.pk == request.user.pk:
        raise StorefrontError('You cannot delete your own account')
    if not require_confirmation(request):
        raise StorefrontError('Add ?confirm=yes to delete this user')
    # Orders keep a reference to the account, so it is deactivated rather than removed
    user.is_active = False
    user.store = None
    user.save(update_fields=['is_active', 'store'])
    create_audit_log(request, 'delete', 'User', user.id, object_name=user.email)
    return api_response(None, 'User deleted')


@api_view(['GET'])
@permission_classes([IsSuperAdmin])
def audit_log_list(request):
    logs = AuditLog.objects.select_related('user')
    for param, field in (('action', 'action'), ('modelName', 'model_name'), ('objectId', 'object_id')):
        value = request.query_params.get(param)
        if value:
            logs = logs.filter(**{field: value})
    return api_response(paginate_queryset(request, logs, AuditLogSerializer, 'logs'))
