from django.urls import path

from . import views

urlpatterns = [
    # Auth
    path('auth/register', views.register, name='register'),
    path('auth/login', views.login, name='login'),
    path('auth/refresh', views.refresh, name='token-refresh'),
    path('auth/me', views.me, name='user-me'),
    path('auth/profile', views.update_profile, name='profile-update'),
    path('auth/activate/<str:token>', views.activate, name='activate'),
    path('auth/profile/request-verification', views.request_verification, name='request-verification'),
    path('auth/resend-verification', views.resend_verification, name='resend-verification'),
    path('auth/request-password-reset', views.request_password_reset, name='request-password-reset'),
    path('auth/verify-reset-token', views.verify_reset_token, name='verify-reset-token'),
    path('auth/reset-password', views.reset_password, name='reset-password'),
    path('auth/set-password', views.set_password, name='set-password'),

    # Addresses
    path('auth/profile/addresses', views.address_list, name='address-list'),
    path('auth/profile/address', views.address_create, name='address-create'),
    path('auth/profile/addresses/<int:pk>', views.address_detail, name='address-detail'),

    # Vouchers
    path('auth/profile/vouchers', views.my_vouchers, name='profile-vouchers'),
    path('vouchers/my-vouchers', views.my_vouchers, name='my-vouchers'),

    # User management
    path('admin/users', views.admin_user_list, name='admin-user-list'),
    path('admin/users/<int:pk>', views.admin_user_detail, name='admin-user-detail'),
    path('admin/store-admins', views.store_admin_list_create, name='store-admin-list-create'),
    path('admin/audit-logs', views.audit_log_list, name='audit-log-list'),
]
