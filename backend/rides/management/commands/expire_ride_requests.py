from django.core.management.base import BaseCommand

from services.ride_management import expire_stale_requests


class Command(BaseCommand):
    help = "Cancel ride requests that no driver accepted before their deadline."

    def handle(self, *args, **options):
        expired_count = expire_stale_requests()

        self.stdout.write(
            self.style.SUCCESS(f"Expired {expired_count} ride request(s).")
        )
