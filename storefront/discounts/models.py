from django.conf import settings
from django.db import models
from django.utils import timezone

from storefront.core.models import SoftDeleteModel, SoftDeleteQuerySet


class DiscountRuleQuerySet(SoftDeleteQuerySet):
    def active(self, store, at=None):
        """Rules of a store that apply right now"""
        at = at or timezone.now()
        return self.alive().filter(store=store).filter(
            models.Q(start_date__isnull=True) | models.Q(start_date__lte=at),
            models.Q(end_date__isnull=True) | models.Q(end_date__gte=at),
        )


class DiscountRule(SoftDeleteModel):
    """Product or store-wide discount configured by a store admin"""
    TYPE_PERCENTAGE = 'DIRECT_PERCENTAGE'
    TYPE_NOMINAL = 'DIRECT_NOMINAL'
    TYPE_BOGO = 'BOGO'
    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, 'Percentage'),
        (TYPE_NOMINAL, 'Nominal'),
        (TYPE_BOGO, 'Buy One Get One'),
    ]

    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='discount_rules')
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, null=True, blank=True, related_name='discount_rules')
    description = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    min_purchase = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DiscountRuleQuerySet.as_manager()

    def __str__(self):
        return self.description

    class Meta:
        db_table = 'discount_rules'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'product'], name='discount_store_product_idx'),
        ]


class DiscountUsage(models.Model):
    """A discount rule applied to a placed order"""
    discount = models.ForeignKey(DiscountRule, on_delete=models.CASCADE, related_name='usages')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='discount_usages')
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, null=True, blank=True, related_name='discount_usages')
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'discount_usages'
        ordering = ['-used_at']


class VoucherQuerySet(models.QuerySet):
    def usable(self, user, at=None):
        at = at or timezone.now()
        return self.filter(user=user, used_at__isnull=True, expires_at__gt=at)


class Voucher(models.Model):
    """Single-use, per-user code reducing the transaction or shipping amount"""
    TYPE_NOMINAL = 'NOMINAL'
    TYPE_PERCENTAGE = 'PERCENTAGE'
    TYPE_CHOICES = [
        (TYPE_NOMINAL, 'Nominal'),
        (TYPE_PERCENTAGE, 'Percentage'),
    ]

    TARGET_TRANSACTION = 'TRANSACTION'
    TARGET_SHIPPING = 'SHIPPING'
    TARGET_CHOICES = [
        (TARGET_TRANSACTION, 'Transaction'),
        (TARGET_SHIPPING, 'Shipping'),
    ]

    SOURCE_REFERRAL = 'REFERRAL'
    SOURCE_REFERRAL_REWARD = 'REFERRAL_REWARD'
    SOURCE_MANUAL = 'MANUAL'
    SOURCE_CHOICES = [
        (SOURCE_REFERRAL, 'Referral'),
        (SOURCE_REFERRAL_REWARD, 'Referral Reward'),
        (SOURCE_MANUAL, 'Manual'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='vouchers')
    code = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    target = models.CharField(max_length=20, choices=TARGET_CHOICES, default=TARGET_TRANSACTION)
    value = models.DecimalField(max_digits=12, decimal_places=2)
    min_purchase = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_MANUAL)
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='vouchers')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = VoucherQuerySet.as_manager()

    def __str__(self):
        return self.code

    class Meta:
        db_table = 'vouchers'
        ordering = ['expires_at']

    def is_usable_by(self, user, at=None):
        at = at or timezone.now()
        return self.user_id == user.id and self.used_at is None and self.expires_at > at
