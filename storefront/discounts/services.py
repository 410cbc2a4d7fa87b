"""Database side of pricing: rule lookup, voucher resolution, referral vouchers"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from storefront.core.exceptions import VoucherError
from .models import DiscountRule, Voucher
from . import pricing

logger = logging.getLogger('storefront.discounts')


def active_rules(store, product_ids=None, at=None):
    """
    Split a store's active rules into ({product_id: [rules]}, [store-wide rules])
    """
    product_rules = {}
    store_rules = []
    if store is None:
        return product_rules, store_rules
    for rule in DiscountRule.objects.active(store, at=at):
        if rule.product_id is None:
            store_rules.append(rule)
        elif product_ids is None or rule.product_id in product_ids:
            product_rules.setdefault(rule.product_id, []).append(rule)
    return product_rules, store_rules


def resolve_voucher(user, code, lock=False):
    """Look up a voucher code the user may redeem, or raise VoucherError"""
    if not code:
        return None
    queryset = Voucher.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    voucher = queryset.filter(code__iexact=code.strip()).first()
    if voucher is None or voucher.user_id != user.id:
        raise VoucherError('Voucher not found')
    if voucher.used_at is not None:
        raise VoucherError('Voucher has already been used')
    if voucher.expires_at <= timezone.now():
        raise VoucherError('Voucher has expired')
    return voucher


def price_for_store(store, lines, shipping_cost=pricing.ZERO, voucher=None):
    product_ids = {line['product_id'] for line in lines}
    product_rules, store_rules = active_rules(store, product_ids)
    return pricing.price_order(lines, product_rules, store_rules, shipping_cost=shipping_cost, voucher=voucher)


def _unique_voucher_code(prefix):
    code = f"{prefix}-{secrets.token_hex(4).upper()}"
    while Voucher.objects.filter(code=code).exists():
        code = f"{prefix}-{secrets.token_hex(4).upper()}"
    return code


def issue_voucher(user, template, source, prefix):
    """Create a voucher from a STOREFRONT settings template"""
    voucher = Voucher.objects.create(
        user=user,
        code=_unique_voucher_code(prefix),
        description=template.get('description', ''),
        type=template['type'],
        target=template.get('target', Voucher.TARGET_TRANSACTION),
        value=template['value'],
        min_purchase=template.get('min_purchase', 0),
        max_discount=template.get('max_discount'),
        source=source,
        expires_at=timezone.now() + timedelta(days=template.get('valid_days', 30)),
    )
    logger.info(f"Voucher {voucher.code} issued to user {user.id} ({source})")
    return voucher


def issue_referral_vouchers(new_user, referrer):
    """Welcome voucher for the new member and a reward for whoever referred them"""
    config = settings.STOREFRONT
    welcome = issue_voucher(new_user, config['REFERRAL_NEW_MEMBER_VOUCHER'], Voucher.SOURCE_REFERRAL, 'WELCOME')
    reward = issue_voucher(referrer, config['REFERRAL_REWARD_VOUCHER'], Voucher.SOURCE_REFERRAL_REWARD, 'REFERRAL')
    return welcome, reward
