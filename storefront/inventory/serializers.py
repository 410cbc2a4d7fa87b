from rest_framework import serializers

from storefront.catalog.models import Product
from storefront.stores.models import Store
from .models import Stock, StockJournal


class StockSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source='product_id')
    storeId = serializers.IntegerField(source='store_id')
    product = serializers.SerializerMethodField()
    store = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')
    deletedAt = serializers.DateTimeField(source='deleted_at')

    class Meta:
        model = Stock
        fields = ['id', 'productId', 'storeId', 'quantity', 'product', 'store', 'createdAt', 'updatedAt', 'deletedAt']

    def get_product(self, obj):
        return {'id': obj.product_id, 'name': obj.product.name}

    def get_store(self, obj):
        return {'id': obj.store_id, 'name': obj.store.name}


class StockCreateSerializer(serializers.Serializer):
    productId = serializers.PrimaryKeyRelatedField(queryset=Product.objects.alive())
    storeId = serializers.PrimaryKeyRelatedField(queryset=Store.objects.alive())
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class StockUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(max_length=255)


class StockJournalSerializer(serializers.ModelSerializer):
    stockId = serializers.IntegerField(source='stock_id')
    quantityBefore = serializers.IntegerField(source='quantity_before')
    quantityAfter = serializers.IntegerField(source='quantity_after')
    adminId = serializers.IntegerField(source='admin_id')
    adminEmail = serializers.SerializerMethodField()
    orderId = serializers.IntegerField(source='order_id')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = StockJournal
        fields = ['id', 'stockId', 'type', 'quantity', 'quantityBefore', 'quantityAfter', 'reason',
                  'adminId', 'adminEmail', 'orderId', 'createdAt']

    def get_adminEmail(self, obj):
        return obj.admin.email if obj.admin_id else None
