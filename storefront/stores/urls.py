from django.urls import path

from . import views

urlpatterns = [
    path('stores', views.store_list_create, name='store-list-create'),
    path('stores/nearest', views.nearest, name='store-nearest'),
    path('stores/available-admins', views.available_admins, name='store-available-admins'),
    path('stores/assign-admin', views.assign_admin, name='store-assign-admin'),
    path('stores/remove-admin/<int:user_id>', views.remove_admin, name='store-remove-admin'),
    path('stores/<int:pk>', views.store_detail, name='store-detail'),
    path('stores/<int:pk>/restore', views.store_restore, name='store-restore'),
    path('stores/<int:pk>/admins', views.store_admins, name='store-admins'),
]
