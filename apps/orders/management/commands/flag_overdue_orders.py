import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.billing.services import flag_overdue_invoices
from apps.orders.services import flag_overdue_orders

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark in-use orders past their return time as overdue and notify the customer. Meant to run hourly."

    def handle(self, *args, **options):
        now = timezone.now()
        orders_flagged = flag_overdue_orders(now=now)
        invoices_flagged = flag_overdue_invoices(now=now)
        logger.info("Overdue sweep: %d order(s), %d invoice(s)", orders_flagged, invoices_flagged)
        self.stdout.write(self.style.SUCCESS(f"Overdue orders: {orders_flagged} overdue invoices: {invoices_flagged}"))
