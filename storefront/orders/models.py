from django.conf import settings
from django.db import models


class Order(models.Model):
    """Placed order with its price breakdown frozen at checkout"""
    STATUS_PENDING_PAYMENT = 'PENDING_PAYMENT'
    STATUS_PENDING_CONFIRMATION = 'PENDING_CONFIRMATION'
    STATUS_PROCESSING = 'PROCESSING'
    STATUS_SHIPPED = 'SHIPPED'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, 'Pending Payment'),
        (STATUS_PENDING_CONFIRMATION, 'Pending Confirmation'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    store = models.ForeignKey('stores.Store', on_delete=models.PROTECT, related_name='orders')
    address = models.ForeignKey('core.UserAddress', on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_PENDING_PAYMENT, db_index=True)

    # Shipping snapshot
    recipient_name = models.CharField(max_length=200)
    recipient_phone = models.CharField(max_length=30, blank=True)
    shipping_address = models.TextField()
    shipping_latitude = models.FloatField()
    shipping_longitude = models.FloatField()
    shipping_method = models.CharField(max_length=10)
    shipping_distance_km = models.DecimalField(max_digits=8, decimal_places=2, default=0)
    total_weight = models.PositiveIntegerField(default=0, help_text='Weight in grams')

    # Price breakdown
    original_subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    item_discount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    store_discount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    voucher_deduction = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    shipping_deduction = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_discount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    final_total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    voucher_code = models.CharField(max_length=50, blank=True)

    payment_deadline = models.DateTimeField(null=True, blank=True)
    payment_proof = models.ImageField(upload_to='payment_proofs/%Y/%m/', null=True, blank=True)
    payment_proof_uploaded_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Order #{self.id} ({self.status})"

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='orders_user_status_idx'),
            models.Index(fields=['store', 'status'], name='orders_store_status_idx'),
            models.Index(fields=['created_at'], name='orders_created_at_idx'),
        ]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='order_items')
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    line_total = models.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']
