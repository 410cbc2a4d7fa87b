from decimal import Decimal

from rest_framework import serializers

from storefront.discounts import pricing
from .models import Category, Product, ProductImage


class CategorySerializer(serializers.ModelSerializer):
    productCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    deletedAt = serializers.DateTimeField(source='deleted_at', read_only=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'productCount', 'createdAt', 'updatedAt', 'deletedAt']

    def validate_name(self, value):
        value = value.strip()
        queryset = Category.objects.filter(name__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Category name already exists')
        return value

    def get_productCount(self, obj):
        count = getattr(obj, 'product_count', None)
        if count is None:
            count = obj.products.alive().count()
        return count


class ProductImageSerializer(serializers.ModelSerializer):
    imageUrl = serializers.URLField(source='image_url')

    class Meta:
        model = ProductImage
        fields = ['id', 'imageUrl', 'position']


class ProductSerializer(serializers.ModelSerializer):
    """
    Product output.

    Context may carry stock_map {product_id: quantity} and
    discount_map {product_id: rule} computed for one store.
    """
    category = serializers.SerializerMethodField()
    images = ProductImageSerializer(many=True, read_only=True)
    stock = serializers.SerializerMethodField()
    canAddToCart = serializers.SerializerMethodField()
    discount = serializers.SerializerMethodField()
    finalPrice = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'price', 'weight', 'category', 'images', 'stock',
                  'canAddToCart', 'discount', 'finalPrice', 'createdAt', 'updatedAt']

    def _stock(self, obj):
        stock_map = self.context.get('stock_map') or {}
        return stock_map.get(obj.id, 0)

    def _rule(self, obj):
        return (self.context.get('discount_map') or {}).get(obj.id)

    def get_category(self, obj):
        return {'id': obj.category_id, 'name': obj.category.name}

    def get_stock(self, obj):
        return self._stock(obj)

    def get_canAddToCart(self, obj):
        return self._stock(obj) > 0

    def get_discount(self, obj):
        rule = self._rule(obj)
        if rule is None:
            return None
        return {
            'id': rule.id,
            'type': rule.type,
            'value': rule.value,
            'description': rule.description,
            'minPurchase': rule.min_purchase,
            'maxDiscountAmount': rule.max_discount_amount,
            'endDate': rule.end_date,
        }

    def get_finalPrice(self, obj):
        rule = self._rule(obj)
        if rule is None:
            return pricing.money(obj.price)
        return pricing.money(obj.price - pricing.line_rule_discount(rule, obj.price, 1))


class ProductWriteSerializer(serializers.ModelSerializer):
    categoryId = serializers.PrimaryKeyRelatedField(source='category', queryset=Category.objects.alive())
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    weight = serializers.IntegerField(min_value=0, required=False)
    imageUrls = serializers.ListField(child=serializers.URLField(), required=False, write_only=True)

    class Meta:
        model = Product
        fields = ['name', 'description', 'price', 'weight', 'categoryId', 'imageUrls']

    def validate_name(self, value):
        value = value.strip()
        queryset = Product.objects.filter(name__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Product name already exists')
        return value

    def _save_images(self, product, urls):
        product.images.all().delete()
        ProductImage.objects.bulk_create([
            ProductImage(product=product, image_url=url, position=index) for index, url in enumerate(urls)
        ])

    def create(self, validated_data):
        urls = validated_data.pop('imageUrls', [])
        product = Product.objects.create(**validated_data)
        self._save_images(product, urls)
        return product

    def update(self, instance, validated_data):
        urls = validated_data.pop('imageUrls', None)
        product = super().update(instance, validated_data)
        if urls is not None:
            self._save_images(product, urls)
        return product
