"""Run one event lifecycle sweep.

Completes approved events whose scheduled end has passed. Intended for
operators, or for system cron where no Celery beat process runs.

Usage:
    python manage.py sweep_events
"""

import typing as t

from django.core.management.base import BaseCommand, CommandError

from ticketing.domain.errors import SweepInProgressError
from ticketing.services.sweeper import get_sweeper


class Command(BaseCommand):
    help = "Mark approved events whose end time has passed as completed."

    def handle(self, *args: t.Any, **options: t.Any) -> None:
        try:
            result = get_sweeper().trigger()
        except SweepInProgressError as exc:
            raise CommandError(exc.message) from exc

        if not result.count:
            self.stdout.write("No events need status update")
            return
        for event in result.events:
            end = event.end_time.isoformat() if event.end_time else "no end time"
            self.stdout.write(f"  - {event.name} ({event.event_date.isoformat()} {end})")
        self.stdout.write(self.style.SUCCESS(f"Marked {result.count} event(s) as completed"))
