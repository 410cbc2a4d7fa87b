from django.urls import path

from . import views

urlpatterns = [
    path('reports/sales/monthly', views.sales_monthly, name='report-sales-monthly'),
    path('reports/sales/by-category', views.sales_by_category, name='report-sales-by-category'),
    path('reports/sales/by-product', views.sales_by_product, name='report-sales-by-product'),
    path('reports/stock/summary', views.stock_summary, name='report-stock-summary'),
    path('reports/stock/detail', views.stock_detail, name='report-stock-detail'),
    path('admin/dashboard', views.admin_dashboard, name='admin-dashboard'),
]
