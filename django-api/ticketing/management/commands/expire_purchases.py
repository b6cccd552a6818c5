"""Cancel pending purchases that were never paid.

Usage:
    python manage.py expire_purchases [--minutes N]
"""

import typing as t
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from ticketing.services import PurchaseService
from ticketing.stores import DjangoTicketingStore


class Command(BaseCommand):
    help = "Cancel pending purchases older than the reservation TTL and return their tickets to stock."

    def add_arguments(self, parser: t.Any) -> None:
        parser.add_argument(
            "--minutes",
            type=int,
            default=settings.TICKETING_PENDING_PURCHASE_TTL_MINUTES,
            help="Age in minutes after which an unpaid purchase expires",
        )

    def handle(self, *args: t.Any, **options: t.Any) -> None:
        minutes = options["minutes"]
        if minutes < 1:
            raise CommandError("--minutes must be at least 1")

        cutoff = timezone.now() - timedelta(minutes=minutes)
        expired = PurchaseService(DjangoTicketingStore()).expire_stale(cutoff)

        if not expired:
            self.stdout.write("No pending purchases to expire")
            return
        self.stdout.write(self.style.SUCCESS(f"Expired {len(expired)} purchase(s)"))
