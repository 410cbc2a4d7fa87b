from django.contrib import admin

from .models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ['name', 'city', 'latitude', 'longitude', 'is_active', 'deleted_at']
    list_filter = ['is_active', 'province']
    search_fields = ['name', 'city', 'address']
