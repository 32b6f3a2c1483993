import logging

from django.core.management.base import BaseCommand

from apps.notifications.services import dispatch_due

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Deliver scheduled notifications whose time has come."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=200)

    def handle(self, *args, **options):
        results = dispatch_due(limit=options["limit"])
        logger.info("Notification dispatch finished: %s", results)
        self.stdout.write(self.style.SUCCESS(f"Notifications sent: {results['sent']} failed: {results['failed']}"))
