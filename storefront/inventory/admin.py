from django.contrib import admin

from .models import Stock, StockJournal


@admin.register(Stock)
class StockAdmin(admin.ModelAdmin):
    list_display = ['product', 'store', 'quantity', 'updated_at', 'deleted_at']
    list_filter = ['store']
    search_fields = ['product__name']


@admin.register(StockJournal)
class StockJournalAdmin(admin.ModelAdmin):
    list_display = ['stock', 'type', 'quantity', 'quantity_before', 'quantity_after', 'reason', 'admin', 'order', 'created_at']
    list_filter = ['type']
    readonly_fields = ['stock', 'type', 'quantity', 'quantity_before', 'quantity_after', 'reason', 'admin', 'order', 'created_at']
