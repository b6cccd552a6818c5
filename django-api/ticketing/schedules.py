"""Periodic jobs registered with the Celery beat database scheduler.

A job is one ``PeriodicTask`` row. Enabling and disabling go through
``save()`` so the beat process notices the change on its next tick.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from django.conf import settings
from django.db import transaction
from django_celery_beat.models import IntervalSchedule, PeriodicTask

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PeriodicJob:
    """A Celery task run on a fixed interval."""

    name: str
    task: str
    interval_setting: str
    description: str = ""

    @property
    def default_interval_minutes(self) -> int:
        return getattr(settings, self.interval_setting)


@dataclass(frozen=True)
class JobState:
    enabled: bool
    interval_minutes: float
    last_run_at: datetime | None


SWEEP_JOB = PeriodicJob(
    name="ticketing: complete ended events",
    task="ticketing.sweep_ended_events",
    interval_setting="TICKETING_SWEEP_INTERVAL_MINUTES",
    description="Marks approved events whose scheduled end has passed as completed.",
)

EXPIRY_JOB = PeriodicJob(
    name="ticketing: expire stale purchases",
    task="ticketing.expire_stale_purchases",
    interval_setting="TICKETING_PURCHASE_EXPIRY_INTERVAL_MINUTES",
    description="Cancels pending purchases left unpaid past the reservation TTL.",
)


def _minutes(schedule: IntervalSchedule) -> float:
    return timedelta(**{schedule.period: schedule.every}).total_seconds() / 60


def enable(job: PeriodicJob, interval_minutes: int | None = None) -> bool:
    """Enable the job, creating its task row on first use.

    Without ``interval_minutes`` an existing row keeps its interval and a new
    row uses the job's default. Returns False if nothing changed.

    Raises:
        ValueError: If the interval is shorter than one minute.
    """
    if interval_minutes is not None and interval_minutes < 1:
        raise ValueError("Interval must be at least one minute")

    with transaction.atomic():
        task = PeriodicTask.objects.select_for_update().filter(name=job.name).first()
        if task is not None and task.enabled:
            current = _minutes(task.interval) if task.interval is not None else None
            if interval_minutes is None or current == interval_minutes:
                logger.info("periodic_job_already_enabled", job=job.name, interval_minutes=current)
                return False

        if interval_minutes is None:
            if task is not None and task.interval is not None:
                schedule = task.interval
            else:
                schedule, _ = IntervalSchedule.objects.get_or_create(
                    every=job.default_interval_minutes, period=IntervalSchedule.MINUTES
                )
        else:
            schedule, _ = IntervalSchedule.objects.get_or_create(
                every=interval_minutes, period=IntervalSchedule.MINUTES
            )

        if task is None:
            PeriodicTask.objects.create(
                name=job.name, task=job.task, interval=schedule, description=job.description, enabled=True
            )
        else:
            task.interval = schedule
            task.enabled = True
            task.save()

    logger.info("periodic_job_enabled", job=job.name, interval_minutes=_minutes(schedule))
    return True


def disable(job: PeriodicJob) -> bool:
    """Disable the job. Returns False if it was not enabled."""
    with transaction.atomic():
        task = PeriodicTask.objects.select_for_update().filter(name=job.name, enabled=True).first()
        if task is None:
            logger.info("periodic_job_not_enabled", job=job.name)
            return False
        task.enabled = False
        task.save()
    logger.info("periodic_job_disabled", job=job.name)
    return True


def job_state(job: PeriodicJob) -> JobState:
    task = PeriodicTask.objects.select_related("interval").filter(name=job.name).first()
    if task is None or task.interval is None:
        return JobState(enabled=False, interval_minutes=job.default_interval_minutes, last_run_at=None)
    return JobState(enabled=task.enabled, interval_minutes=_minutes(task.interval), last_run_at=task.last_run_at)
