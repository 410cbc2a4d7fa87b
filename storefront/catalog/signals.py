"""Invalidate cached catalog payloads when the data behind them changes"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from storefront.core.cache import CATALOG_NAMESPACE, invalidate_namespace
from storefront.discounts.models import DiscountRule
from storefront.inventory.models import Stock
from storefront.stores.models import Store
from .models import Category, Product, ProductImage


@receiver([post_save, post_delete], sender=Category)
@receiver([post_save, post_delete], sender=Product)
@receiver([post_save, post_delete], sender=ProductImage)
@receiver([post_save, post_delete], sender=Stock)
@receiver([post_save, post_delete], sender=DiscountRule)
@receiver([post_save, post_delete], sender=Store)
def invalidate_catalog_cache(sender, **kwargs):
    invalidate_namespace(CATALOG_NAMESPACE)
