from django.contrib import admin

from .models import DiscountRule, DiscountUsage, Voucher


@admin.register(DiscountRule)
class DiscountRuleAdmin(admin.ModelAdmin):
    list_display = ['description', 'store', 'product', 'type', 'value', 'start_date', 'end_date', 'deleted_at']
    list_filter = ['type', 'store']
    search_fields = ['description', 'product__name']


@admin.register(DiscountUsage)
class DiscountUsageAdmin(admin.ModelAdmin):
    list_display = ['discount', 'user', 'order', 'amount', 'used_at']
    readonly_fields = ['used_at']


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ['code', 'user', 'type', 'target', 'value', 'source', 'expires_at', 'used_at']
    list_filter = ['type', 'target', 'source']
    search_fields = ['code', 'user__email']
