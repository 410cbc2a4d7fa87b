from django.urls import path

from . import views

urlpatterns = [
    path('orders/shipping/calculate', views.shipping_calculate, name='shipping-calculate'),
    path('orders/checkout/preview', views.checkout_preview, name='checkout-preview'),
    path('orders/checkout/validate', views.checkout_validate, name='checkout-validate'),
    path('orders/create', views.order_create, name='order-create'),
    path('orders/admin/all', views.admin_order_list, name='admin-order-list'),
    path('orders/admin/<int:pk>', views.admin_order_detail, name='admin-order-detail'),
    path('orders/admin/<int:pk>/status', views.admin_order_status, name='admin-order-status'),
    path('orders/admin/<int:pk>/cancel', views.admin_order_cancel, name='admin-order-cancel'),
    path('orders', views.order_list, name='order-list'),
    path('orders/<int:pk>', views.order_detail, name='order-detail'),
    path('orders/<int:pk>/payment-proof', views.order_payment_proof, name='order-payment-proof'),
    path('orders/<int:pk>/cancel', views.order_cancel, name='order-cancel'),
    path('orders/<int:pk>/confirm', views.order_confirm, name='order-confirm'),
]
