from django.core.management.base import BaseCommand
from orders.staging import get_store


class Command(BaseCommand):
    help = "Drop staged gateway orders whose payment window has expired"

    def handle(self, *args, **options):
        count = get_store().purge_expired()
        self.stdout.write(self.style.SUCCESS(f"Purged {count} expired staged orders."))
