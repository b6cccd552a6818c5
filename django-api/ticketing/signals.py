"""Signal receivers for the ticketing app."""

import typing as t

from django.apps import AppConfig
from django.conf import settings
from django.db.models.signals import post_migrate
from django.dispatch import receiver

from ticketing import schedules


@receiver(post_migrate, dispatch_uid="ticketing.register_periodic_jobs")
def register_periodic_jobs(sender: AppConfig, **kwargs: t.Any) -> None:
    """Enable the periodic jobs whose autostart setting is on.

    Runs once ``migrate`` has created the beat tables. A job that is already
    enabled keeps the interval an operator gave it.
    """
    if sender.name != "ticketing":
        return
    if settings.TICKETING_SWEEPER_AUTOSTART:
        schedules.enable(schedules.SWEEP_JOB)
    if settings.TICKETING_PURCHASE_EXPIRY_AUTOSTART:
        schedules.enable(schedules.EXPIRY_JOB)
