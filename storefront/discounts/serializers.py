from decimal import Decimal

from rest_framework import serializers

from storefront.catalog.models import Product
from storefront.stores.models import Store
from .models import DiscountRule, DiscountUsage, Voucher


class DiscountRuleSerializer(serializers.ModelSerializer):
    productId = serializers.PrimaryKeyRelatedField(
        source='product', queryset=Product.objects.alive(), required=False, allow_null=True)
    product = serializers.SerializerMethodField()
    storeId = serializers.PrimaryKeyRelatedField(
        source='store', queryset=Store.objects.alive(), required=False)
    value = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal('0'))
    minPurchase = serializers.DecimalField(source='min_purchase', max_digits=12, decimal_places=2,
                                           required=False, allow_null=True, min_value=Decimal('0'))
    maxDiscountAmount = serializers.DecimalField(source='max_discount_amount', max_digits=12, decimal_places=2,
                                                 required=False, allow_null=True, min_value=Decimal('0'))
    startDate = serializers.DateTimeField(source='start_date', required=False, allow_null=True)
    endDate = serializers.DateTimeField(source='end_date', required=False, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    deletedAt = serializers.DateTimeField(source='deleted_at', read_only=True)

    class Meta:
        model = DiscountRule
        fields = ['id', 'productId', 'product', 'storeId', 'description', 'type', 'value', 'minPurchase',
                  'maxDiscountAmount', 'startDate', 'endDate', 'createdAt', 'updatedAt', 'deletedAt']

    def get_product(self, obj):
        if obj.product_id is None:
            return None
        return {'id': obj.product_id, 'name': obj.product.name}

    def validate(self, attrs):
        def current(field):
            if field in attrs:
                return attrs[field]
            return getattr(self.instance, field, None) if self.instance else None

        rule_type = current('type')
        value = current('value') or Decimal('0')
        product = current('product')

        if rule_type == DiscountRule.TYPE_BOGO and product is None:
            raise serializers.ValidationError({'productId': 'Buy one get one discounts need a product'})
        if rule_type == DiscountRule.TYPE_PERCENTAGE and not (Decimal('0') < value <= Decimal('100')):
            raise serializers.ValidationError({'value': 'Percentage must be greater than 0 and at most 100'})
        if rule_type == DiscountRule.TYPE_NOMINAL and value <= 0:
            raise serializers.ValidationError({'value': 'Nominal discount must be greater than 0'})

        start, end = current('start_date'), current('end_date')
        if start and end and end < start:
            raise serializers.ValidationError({'endDate': 'End date must not be before start date'})
        return attrs


class DiscountUsageSerializer(serializers.ModelSerializer):
    discountId = serializers.IntegerField(source='discount_id')
    userId = serializers.IntegerField(source='user_id')
    userEmail = serializers.CharField(source='user.email')
    orderId = serializers.IntegerField(source='order_id')
    usedAt = serializers.DateTimeField(source='used_at')

    class Meta:
        model = DiscountUsage
        fields = ['id', 'discountId', 'userId', 'userEmail', 'orderId', 'amount', 'usedAt']


class VoucherSerializer(serializers.ModelSerializer):
    minPurchase = serializers.DecimalField(source='min_purchase', max_digits=12, decimal_places=2)
    maxDiscount = serializers.DecimalField(source='max_discount', max_digits=12, decimal_places=2)
    expiresAt = serializers.DateTimeField(source='expires_at')
    usedAt = serializers.DateTimeField(source='used_at')

    class Meta:
        model = Voucher
        fields = ['id', 'code', 'description', 'type', 'target', 'value', 'minPurchase', 'maxDiscount',
                  'source', 'expiresAt', 'usedAt']
