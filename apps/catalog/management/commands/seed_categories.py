from django.core.management.base import BaseCommand

from apps.catalog.models import Category


class Command(BaseCommand):
    help = "Seed the base rental categories."

    def add_arguments(self, parser):
        parser.add_argument("names", nargs="*", help="Category names to create instead of the defaults.")

    def handle(self, *args, **options):
        names = options["names"] or ["Cameras", "Camping", "Event Equipment", "Power Tools", "Vehicles"]

        created_count = 0
        for name in names:
            _, created = Category.objects.get_or_create(name=name.strip())
            if created:
                created_count += 1

        self.stdout.write(self.style.SUCCESS(f"Seed categories completed. categories_created={created_count}"))
