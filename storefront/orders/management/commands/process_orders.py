"""
Management command for the periodic order housekeeping job
"""
from django.core.management.base import BaseCommand

from storefront.orders.checkout import expire_unpaid_orders, auto_confirm_shipped_orders


class Command(BaseCommand):
    help = "Cancels unpaid orders past their deadline and confirms long-shipped orders"

    def add_arguments(self, parser):
        parser.add_argument('--skip-cancel', action='store_true', help='Do not cancel expired unpaid orders')
        parser.add_argument('--skip-confirm', action='store_true', help='Do not auto-confirm shipped orders')

    def handle(self, *args, **options):
        if not options['skip_cancel']:
            cancelled = expire_unpaid_orders()
            self.stdout.write(f"Cancelled {cancelled} unpaid order(s)")
        if not options['skip_confirm']:
            confirmed = auto_confirm_shipped_orders()
            self.stdout.write(f"Confirmed {confirmed} shipped order(s)")
        self.stdout.write(self.style.SUCCESS('Order processing complete'))
