import django_filters
from django.db.models import Q

from .models import Product, Category


class ProductFilter(django_filters.FilterSet):
    """Filter for the public product list using django-filter"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    categoryId = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    minPrice = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    maxPrice = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['search', 'categoryId', 'minPrice', 'maxPrice']

    def filter_search(self, queryset, name, value):
        """Every word of the search must appear in the name, description or category"""
        words = (value or '').split()
        for word in words:
            queryset = queryset.filter(
                Q(name__icontains=word) | Q(description__icontains=word) | Q(category__name__icontains=word)
            )
        return queryset


class CategoryFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(field_name='name', lookup_expr='icontains')

    class Meta:
        model = Category
        fields = ['search']
