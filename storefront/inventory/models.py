from django.conf import settings
from django.db import models

from storefront.core.models import SoftDeleteModel


class Stock(SoftDeleteModel):
    """Quantity of one product held by one store"""
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='stocks')
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='stocks')
    quantity = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} @ {self.store.name}: {self.quantity}"

    class Meta:
        db_table = 'stocks'
        unique_together = [['product', 'store']]
        ordering = ['-created_at']


class StockJournal(models.Model):
    """Append-only history of stock quantity changes"""
    TYPE_IN = 'IN'
    TYPE_OUT = 'OUT'
    TYPE_CHOICES = [
        (TYPE_IN, 'Stock In'),
        (TYPE_OUT, 'Stock Out'),
    ]

    stock = models.ForeignKey(Stock, on_delete=models.CASCADE, related_name='journals')
    type = models.CharField(max_length=3, choices=TYPE_CHOICES)
    quantity = models.PositiveIntegerField()
    quantity_before = models.PositiveIntegerField()
    quantity_after = models.PositiveIntegerField()
    reason = models.CharField(max_length=255, blank=True)
    admin = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_journals')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_journals')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_journals'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['stock', 'created_at'], name='stock_journal_stock_date_idx'),
        ]
