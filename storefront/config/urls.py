"""
URL configuration for the storefront project.

Every app mounts its routes under /api/v1/; uploaded media is only served
by Django itself in DEBUG.
"""
from django.contrib import admin
from django.conf import settings
from django.conf.urls.static import static
from django.urls import path, include

admin.site.site_header = "Storefront Admin Panel"
admin.site.site_title = "Storefront Admin Portal"
admin.site.index_title = "Store management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('storefront.core.urls')),
    path('api/v1/', include('storefront.stores.urls')),
    path('api/v1/', include('storefront.catalog.urls')),
    path('api/v1/', include('storefront.inventory.urls')),
    path('api/v1/', include('storefront.discounts.urls')),
    path('api/v1/', include('storefront.cart.urls')),
    path('api/v1/', include('storefront.orders.urls')),
    path('api/v1/', include('storefront.reports.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
