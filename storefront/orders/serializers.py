from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    productId = serializers.IntegerField(source='product_id')
    productName = serializers.CharField(source='product_name')
    unitPrice = serializers.DecimalField(source='unit_price', max_digits=12, decimal_places=2)
    discountAmount = serializers.DecimalField(source='discount_amount', max_digits=12, decimal_places=2)
    lineTotal = serializers.DecimalField(source='line_total', max_digits=14, decimal_places=2)
    imageUrl = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'productId', 'productName', 'quantity', 'unitPrice', 'discountAmount', 'lineTotal', 'imageUrl']

    def get_imageUrl(self, obj):
        image = next(iter(obj.product.images.all()), None)
        return image.image_url if image else None


class OrderSerializer(serializers.ModelSerializer):
    """Order list row"""
    userId = serializers.IntegerField(source='user_id')
    storeId = serializers.IntegerField(source='store_id')
    storeName = serializers.CharField(source='store.name')
    finalTotal = serializers.DecimalField(source='final_total', max_digits=14, decimal_places=2)
    itemCount = serializers.SerializerMethodField()
    paymentDeadline = serializers.DateTimeField(source='payment_deadline')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = Order
        fields = ['id', 'userId', 'storeId', 'storeName', 'status', 'finalTotal', 'itemCount',
                  'paymentDeadline', 'createdAt', 'updatedAt']

    def get_itemCount(self, obj):
        return sum(item.quantity for item in obj.items.all())


class OrderDetailSerializer(OrderSerializer):
    userEmail = serializers.CharField(source='user.email')
    items = OrderItemSerializer(many=True)
    shipping = serializers.SerializerMethodField()
    pricing = serializers.SerializerMethodField()
    paymentProof = serializers.SerializerMethodField()
    paymentProofUploadedAt = serializers.DateTimeField(source='payment_proof_uploaded_at')
    shippedAt = serializers.DateTimeField(source='shipped_at')
    confirmedAt = serializers.DateTimeField(source='confirmed_at')
    cancelledAt = serializers.DateTimeField(source='cancelled_at')
    cancelReason = serializers.CharField(source='cancel_reason')

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + [
            'userEmail', 'items', 'shipping', 'pricing', 'paymentProof', 'paymentProofUploadedAt',
            'shippedAt', 'confirmedAt', 'cancelledAt', 'cancelReason',
        ]

    def get_shipping(self, obj):
        return {
            'recipientName': obj.recipient_name,
            'recipientPhone': obj.recipient_phone,
            'address': obj.shipping_address,
            'latitude': obj.shipping_latitude,
            'longitude': obj.shipping_longitude,
            'method': obj.shipping_method,
            'distance': obj.shipping_distance_km,
            'totalWeight': obj.total_weight,
        }

    def get_pricing(self, obj):
        return {
            'originalSubtotal': obj.original_subtotal,
            'discountAmount': obj.item_discount,
            'subtotal': obj.subtotal,
            'storeDiscount': obj.store_discount,
            'voucherCode': obj.voucher_code or None,
            'voucherDeduction': obj.voucher_deduction,
            'shippingCost': obj.shipping_cost,
            'shippingDeduction': obj.shipping_deduction,
            'totalDiscount': obj.total_discount,
            'finalTotal': obj.final_total,
        }

    def get_paymentProof(self, obj):
        if not obj.payment_proof:
            return None
        request = self.context.get('request')
        url = obj.payment_proof.url
        return request.build_absolute_uri(url) if request else url
