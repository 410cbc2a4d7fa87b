from django.urls import path

from . import views

urlpatterns = [
    path('stocks', views.stock_list_create, name='stock-list-create'),
    path('stocks/<int:pk>', views.stock_detail, name='stock-detail'),
    path('stocks/<int:pk>/restore', views.stock_restore, name='stock-restore'),
    path('stocks/<int:pk>/journals', views.stock_journals, name='stock-journals'),
]
