from django.urls import path

from . import views

urlpatterns = [
    path('cart', views.cart_view, name='cart'),
    path('cart/items', views.add_item, name='cart-add-item'),
    path('cart/items/<int:pk>', views.item_detail, name='cart-item-detail'),
]
