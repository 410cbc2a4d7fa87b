from django.contrib import admin

from .models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'store', 'updated_at']
    list_filter = ['store']
    search_fields = ['user__email']
    inlines = [CartItemInline]
