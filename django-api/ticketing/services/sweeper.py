"""Event lifecycle sweeper.

Moves approved events whose scheduled end has passed to ``completed``. A
sweep never touches purchases, payments or stock. Sweeps are mutually
exclusive within a process; across processes the batch update re-checks the
status, so overlapping sweeps never complete an event twice. Scheduled runs
come from the Celery beat task in ``ticketing.tasks``.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from django.utils import timezone

from ticketing import schedules
from ticketing.domain import SweepRecord, SweepResult, SweepTrigger
from ticketing.domain.errors import SweepInProgressError
from ticketing.stores.interfaces import TicketingStore

logger = structlog.get_logger(__name__)


class EventLifecycleSweeper:
    """Runs single sweeps under a non-blocking execution lock."""

    def __init__(self, store: TicketingStore, clock: Callable[[], datetime] = timezone.now) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def store(self) -> TicketingStore:
        return self._store

    @property
    def clock(self) -> Callable[[], datetime]:
        return self._clock

    @property
    def is_sweeping(self) -> bool:
        return self._lock.locked()

    def run_once(self) -> SweepResult:
        """Complete every approved event that has ended.

        Raises:
            SweepInProgressError: If another sweep holds the lock.
        """
        if not self._lock.acquire(blocking=False):
            raise SweepInProgressError()
        try:
            now = self._clock()
            local_now = timezone.localtime(now) if timezone.is_aware(now) else now
            completed = self._store.complete_ended_events(local_now)
        finally:
            self._lock.release()

        result = SweepResult(ran_at=now, events=tuple(completed))
        if result.count:
            logger.info(
                "event_sweep_completed_events",
                count=result.count,
                event_ids=[str(event.id) for event in result.events],
            )
        else:
            logger.info("event_sweep_no_matches")
        return result


@dataclass(frozen=True)
class SweeperStatus:
    """Snapshot of the scheduled sweeper."""

    running: bool
    interval_minutes: float
    last_run_at: datetime | None
    last_result: SweepResult | None
    last_error: str | None


class ScheduledSweeper:
    """Runs sweeps on the beat schedule and on demand, recording every run.

    ``start`` and ``stop`` enable and disable the periodic task, so they are
    idempotent and apply to every worker. ``trigger`` runs a sweep on the
    caller's thread through the same lock as scheduled runs in this process.
    """

    def __init__(self, sweeper: EventLifecycleSweeper, job: schedules.PeriodicJob = schedules.SWEEP_JOB) -> None:
        self._sweeper = sweeper
        self._job = job

    def start(self, interval_minutes: int | None = None) -> bool:
        """Enable the periodic sweep. Returns False if it was already enabled at that interval.

        Raises:
            ValueError: If the interval is shorter than one minute.
        """
        return schedules.enable(self._job, interval_minutes)

    def stop(self) -> bool:
        """Disable the periodic sweep. Returns False if it was not enabled."""
        return schedules.disable(self._job)

    def trigger(self) -> SweepResult:
        """Run one sweep now.

        Raises:
            SweepInProgressError: If a sweep is already running.
        """
        logger.info("event_sweep_manual_trigger")
        return self._run(SweepTrigger.MANUAL)

    def run_scheduled(self) -> SweepResult | None:
        """Run the sweep for a beat tick. Returns None if another sweep held the lock."""
        try:
            return self._run(SweepTrigger.SCHEDULED)
        except SweepInProgressError:
            logger.info("event_sweep_skipped_in_progress")
            return None

    def status(self) -> SweeperStatus:
        state = schedules.job_state(self._job)
        store = self._sweeper.store
        last = store.last_sweep()
        last_success = last if last is None or last.succeeded else store.last_sweep(succeeded_only=True)
        return SweeperStatus(
            running=state.enabled,
            interval_minutes=state.interval_minutes,
            last_run_at=last.ran_at if last else None,
            last_result=last_success.result if last_success else None,
            last_error=(last.error or None) if last else None,
        )

    def _run(self, trigger: SweepTrigger) -> SweepResult:
        try:
            result = self._sweeper.run_once()
        except SweepInProgressError:
            raise
        except Exception as exc:
            logger.exception("event_sweep_failed", trigger=trigger.value)
            self._sweeper.store.record_sweep(
                SweepRecord(trigger=trigger, ran_at=self._sweeper.clock(), error=str(exc) or type(exc).__name__)
            )
            raise
        self._sweeper.store.record_sweep(SweepRecord(trigger=trigger, ran_at=result.ran_at, result=result))
        return result


_instance: ScheduledSweeper | None = None
_instance_lock = threading.Lock()


def get_sweeper() -> ScheduledSweeper:
    """Return the process-wide scheduled sweeper backed by the database."""
    global _instance
    with _instance_lock:
        if _instance is None:
            from ticketing.stores.django_store import DjangoTicketingStore

            _instance = ScheduledSweeper(EventLifecycleSweeper(DjangoTicketingStore()))
        return _instance
