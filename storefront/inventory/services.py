"""
Stock quantity changes.

Every change of Stock.quantity goes through change_stock(), which locks the
row, refuses to go below zero and writes the matching StockJournal entry in
the same transaction.
"""
import logging

from django.db import transaction

from storefront.core.exceptions import StockError
from .models import Stock, StockJournal

logger = logging.getLogger('storefront.inventory')


def lock_stocks(store, product_ids):
    """Lock the stock rows of a store for the given products, keyed by product id"""
    stocks = Stock.objects.select_for_update().alive().filter(store=store, product_id__in=product_ids)
    return {stock.product_id: stock for stock in stocks}


@transaction.atomic
def change_stock(stock, delta, reason='', admin=None, order=None):
    """
    Apply a signed quantity change and journal it. Returns the journal entry.
    """
    if delta == 0:
        raise StockError('Quantity change must not be zero')

    stock = Stock.objects.select_for_update().get(pk=stock.pk)
    before = stock.quantity
    after = before + delta
    if after < 0:
        raise StockError(
            f"Insufficient stock for {stock.product.name}: {before} available, {-delta} requested",
            data={'productId': stock.product_id, 'available': before, 'requested': -delta},
        )

    stock.quantity = after
    stock.save(update_fields=['quantity', 'updated_at'])
    journal = StockJournal.objects.create(
        stock=stock,
        type=StockJournal.TYPE_IN if delta > 0 else StockJournal.TYPE_OUT,
        quantity=abs(delta),
        quantity_before=before,
        quantity_after=after,
        reason=reason,
        admin=admin,
        order=order,
    )
    logger.info(f"Stock {stock.id} ({stock.product_id}@{stock.store_id}): {before} -> {after} ({reason or 'no reason'})")
    return journal


@transaction.atomic
def set_stock_quantity(stock, quantity, reason='', admin=None):
    """Set an absolute quantity; the journal type follows the sign of the change"""
    current = Stock.objects.select_for_update().get(pk=stock.pk).quantity
    return change_stock(stock, quantity - current, reason=reason, admin=admin)
