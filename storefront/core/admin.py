from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, UserAddress, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'full_name', 'role', 'store', 'is_verified', 'is_active', 'created_at']
    list_filter = ['role', 'is_verified', 'is_active', 'store']
    search_fields = ['email', 'full_name', 'referral_code']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Storefront', {'fields': ('full_name', 'role', 'store', 'is_verified', 'referral_code', 'referred_by', 'profile_photo')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Storefront', {'fields': ('email', 'full_name', 'role', 'store')}),
    )


@admin.register(UserAddress)
class UserAddressAdmin(admin.ModelAdmin):
    list_display = ['user', 'label', 'recipient_name', 'is_main', 'created_at']
    list_filter = ['is_main']
    search_fields = ['user__email', 'recipient_name', 'full_address']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'model_name', 'object_id', 'ip_address', 'created_at']
    list_filter = ['action', 'model_name', 'created_at']
    search_fields = ['user__email', 'model_name', 'object_id']
    ordering = ['-created_at']
    readonly_fields = ['user', 'action', 'model_name', 'object_id', 'object_name', 'changes', 'ip_address', 'created_at']
