from django.urls import path

from . import views

urlpatterns = [
    path('categories', views.category_list_create, name='category-list-create'),
    path('categories/deleted', views.category_deleted_list, name='category-deleted-list'),
    path('categories/<int:pk>', views.category_detail, name='category-detail'),
    path('categories/<int:pk>/restore', views.category_restore, name='category-restore'),
    path('products', views.product_list_create, name='product-list-create'),
    path('products/<int:pk>', views.product_detail, name='product-detail'),
    path('homepage', views.homepage, name='homepage'),
]
