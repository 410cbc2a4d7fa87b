from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'unit_price', 'discount_amount', 'line_total']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'store', 'status', 'final_total', 'payment_deadline', 'created_at']
    list_filter = ['status', 'store', 'shipping_method']
    search_fields = ['id', 'user__email', 'recipient_name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [OrderItemInline]
