from django.urls import path

from . import views

urlpatterns = [
    path('discounts', views.discount_list_create, name='discount-list-create'),
    path('discounts/deleted', views.discount_deleted_list, name='discount-deleted-list'),
    path('discounts/apply', views.discount_apply, name='discount-apply'),
    path('discounts/<int:pk>', views.discount_detail, name='discount-detail'),
    path('discounts/<int:pk>/restore', views.discount_restore, name='discount-restore'),
    path('discounts/<int:pk>/usages', views.discount_usages, name='discount-usages'),
]
