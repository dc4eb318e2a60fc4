from django.core.management.base import BaseCommand
from django.db.models import Q
from django.utils import timezone
from orders.models import IdempotencyKey


class Command(BaseCommand):
    help = "Delete idempotency keys past their expiry, or left without a stored response"

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report how many keys would be deleted")

    def handle(self, *args, **options):
        now = timezone.now()
        qs = IdempotencyKey.objects.filter(Q(expires_at__lt=now) | Q(expires_at__isnull=True, response_code__isnull=True))
        count = qs.count()
        if options["dry_run"]:
            self.stdout.write(f"{count} idempotency keys would be deleted.")
            return
        qs.delete()
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} expired idempotency keys."))
