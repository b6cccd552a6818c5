"""Tests for the event lifecycle sweeper, its beat schedule and the periodic tasks."""

import threading
from datetime import UTC, date, datetime, time, timedelta
from io import StringIO

import pytest
from django.apps import apps
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone
from django_celery_beat.models import PeriodicTask

from ticketing import schedules
from ticketing.domain import EventStatus, PurchaseStatus, SweepTrigger
from ticketing.domain.errors import SweepInProgressError
from ticketing.models import Event as EventRow
from ticketing.models import Purchase as PurchaseRow
from ticketing.models import SweepRun
from ticketing.models import TicketClass as TicketClassRow
from ticketing.services import EventLifecycleSweeper, PurchaseService, ScheduledSweeper, get_sweeper
from ticketing.services import sweeper as sweeper_module
from ticketing.signals import register_periodic_jobs
from ticketing.stores import DjangoTicketingStore, InMemoryTicketingStore
from ticketing.tasks import expire_stale_purchases, sweep_ended_events

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
TODAY = date(2026, 10, 19)


def fixed_clock() -> datetime:
    return NOW


def _status(store, event) -> EventStatus:
    return store.get_event(event.id).status


class BlockingStore(InMemoryTicketingStore):
    """Holds every sweep until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete_ended_events(self, now):
        self.entered.set()
        self.release.wait(5)
        return super().complete_ended_events(now)


class FlakyStore(InMemoryTicketingStore):
    """Fails every sweep while ``broken`` is set."""

    broken = False

    def complete_ended_events(self, now):
        if self.broken:
            raise RuntimeError("database unavailable")
        return super().complete_ended_events(now)


class TestRunOnce:
    """Tests for EventLifecycleSweeper.run_once."""

    def test_completes_event_that_ended_yesterday(self, store):
        """An approved event dated yesterday is completed."""
        event = store.add_event(event_date=TODAY - timedelta(days=1), end_time=time(22, 0), name="Gala")

        result = EventLifecycleSweeper(store, clock=fixed_clock).run_once()

        assert result.count == 1
        assert result.events[0].name == "Gala"
        assert result.ran_at == NOW
        assert _status(store, event) is EventStatus.COMPLETED

    def test_second_run_finds_nothing(self, store):
        """A completed event is not matched again."""
        store.add_event(event_date=TODAY - timedelta(days=1))
        sweeper = EventLifecycleSweeper(store, clock=fixed_clock)
        sweeper.run_once()

        assert sweeper.run_once().count == 0

    def test_end_time_today(self, store):
        """Today's events complete only once their end time has passed."""
        finished = store.add_event(event_date=TODAY, end_time=time(11, 0))
        running = store.add_event(event_date=TODAY, end_time=time(18, 0))
        open_ended = store.add_event(event_date=TODAY)

        EventLifecycleSweeper(store, clock=fixed_clock).run_once()

        assert _status(store, finished) is EventStatus.COMPLETED
        assert _status(store, running) is EventStatus.APPROVED
        assert _status(store, open_ended) is EventStatus.APPROVED

    @pytest.mark.parametrize("status", [EventStatus.PENDING, EventStatus.CANCELLED, EventStatus.REJECTED])
    def test_only_approved_events_are_completed(self, store, status):
        """Events in any other status are left alone."""
        event = store.add_event(event_date=TODAY - timedelta(days=3), status=status)

        assert EventLifecycleSweeper(store, clock=fixed_clock).run_once().count == 0
        assert _status(store, event) is status

    def test_purchases_are_untouched(self, store, buyer):
        """Completing an event leaves its purchases and stock as they were."""
        event = store.add_event(event_date=TODAY + timedelta(days=1))
        ticket_class = store.add_ticket_class(event.id, unit_price="10.00", total_quantity=5)
        purchase = PurchaseService(store).create(event.id, ticket_class.id, 2, buyer)
        day_after = datetime(2026, 10, 21, 9, 0, tzinfo=UTC)

        result = EventLifecycleSweeper(store, clock=lambda: day_after).run_once()

        assert result.count == 1
        assert store.get_purchase(purchase.id).status is PurchaseStatus.PENDING
        assert store.get_ticket_class(ticket_class.id).remaining_quantity.value == 3

    def test_concurrent_sweep_is_rejected(self):
        """A second sweep while one holds the lock raises SweepInProgressError."""
        store = BlockingStore()
        store.add_event(event_date=TODAY - timedelta(days=1))
        sweeper = EventLifecycleSweeper(store, clock=fixed_clock)
        results = []
        worker = threading.Thread(target=lambda: results.append(sweeper.run_once()))
        worker.start()
        assert store.entered.wait(5)

        assert sweeper.is_sweeping
        with pytest.raises(SweepInProgressError):
            sweeper.run_once()

        store.release.set()
        worker.join(5)
        assert results[0].count == 1
        assert not sweeper.is_sweeping


class TestScheduledRuns:
    """Recording of scheduled and manual runs. No database involved."""

    def test_scheduled_run_records_result(self, store):
        """A beat tick sweeps and records the outcome as a scheduled run."""
        store.add_event(event_date=TODAY - timedelta(days=1))
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))

        result = scheduled.run_scheduled()

        assert result.count == 1
        record = store.last_sweep()
        assert record.trigger is SweepTrigger.SCHEDULED
        assert record.result == result
        assert record.ran_at == NOW

    def test_trigger_records_manual_run(self, store):
        """A manual trigger is recorded with its own trigger kind."""
        store.add_event(event_date=TODAY - timedelta(days=2))
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))

        result = scheduled.trigger()

        assert result.count == 1
        assert store.last_sweep().trigger is SweepTrigger.MANUAL

    def test_failed_run_is_recorded_and_raised(self):
        """A failing sweep records its error and still propagates to the worker."""
        store = FlakyStore()
        store.broken = True
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))

        with pytest.raises(RuntimeError):
            scheduled.run_scheduled()

        record = store.last_sweep()
        assert not record.succeeded
        assert record.error == "database unavailable"
        assert record.ran_at == NOW

    def test_tick_during_running_sweep_is_skipped(self):
        """A beat tick that finds a sweep in progress returns None without recording."""
        store = BlockingStore()
        store.add_event(event_date=TODAY - timedelta(days=1))
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))
        results = []
        worker = threading.Thread(target=lambda: results.append(scheduled.run_scheduled()))
        worker.start()
        assert store.entered.wait(5)

        try:
            assert scheduled.run_scheduled() is None
            with pytest.raises(SweepInProgressError):
                scheduled.trigger()
        finally:
            store.release.set()
            worker.join(5)

        assert results[0].count == 1
        assert store.last_sweep().result == results[0]


@pytest.mark.django_db
class TestSchedule:
    """start, stop and status against the beat tables."""

    @pytest.fixture
    def scheduled(self, store) -> ScheduledSweeper:
        return ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))

    def test_start_and_stop_are_idempotent(self, scheduled):
        """Repeated start and stop calls report whether anything changed."""
        assert scheduled.start() is True
        assert scheduled.start() is False
        assert scheduled.status().running

        assert scheduled.stop() is True
        assert scheduled.stop() is False
        assert not scheduled.status().running

    def test_start_enables_the_beat_task(self, scheduled, settings):
        """Starting writes an enabled periodic task at the configured interval."""
        settings.TICKETING_SWEEP_INTERVAL_MINUTES = 45

        scheduled.start()

        task = PeriodicTask.objects.get(name=schedules.SWEEP_JOB.name)
        assert task.task == "ticketing.sweep_ended_events"
        assert task.enabled
        assert task.interval.every == 45
        assert scheduled.status().interval_minutes == 45

    def test_stop_disables_without_deleting(self, scheduled):
        """Stopping keeps the task row so its interval survives a restart."""
        scheduled.start(interval_minutes=15)
        scheduled.stop()

        assert not PeriodicTask.objects.get(name=schedules.SWEEP_JOB.name).enabled
        scheduled.start()
        assert scheduled.status().interval_minutes == 15

    def test_start_with_new_interval(self, scheduled):
        """A different interval reschedules a running sweeper; the same one is a no-op."""
        assert scheduled.start(interval_minutes=5) is True
        assert scheduled.start(interval_minutes=5) is False
        assert scheduled.start(interval_minutes=10) is True
        assert scheduled.status().interval_minutes == 10

    @pytest.mark.parametrize("interval", [0, -5])
    def test_rejects_interval_below_one_minute(self, scheduled, interval):
        """Intervals under a minute are refused and nothing is scheduled."""
        with pytest.raises(ValueError):
            scheduled.start(interval_minutes=interval)
        assert not PeriodicTask.objects.filter(name=schedules.SWEEP_JOB.name).exists()
        assert not scheduled.status().running

    def test_status_reports_last_result_and_error(self):
        """A failure after a success keeps the last result and reports the error."""
        store = FlakyStore()
        store.add_event(event_date=TODAY - timedelta(days=1))
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))
        first = scheduled.run_scheduled()
        store.broken = True
        with pytest.raises(RuntimeError):
            scheduled.run_scheduled()

        status = scheduled.status()

        assert status.last_result == first
        assert status.last_error == "database unavailable"
        assert status.last_run_at == NOW

    def test_success_clears_last_error(self):
        """The error is cleared once a later run succeeds."""
        store = FlakyStore()
        store.broken = True
        scheduled = ScheduledSweeper(EventLifecycleSweeper(store, clock=fixed_clock))
        with pytest.raises(RuntimeError):
            scheduled.trigger()
        store.broken = False

        scheduled.trigger()

        assert scheduled.status().last_error is None

    def test_history_is_shared_between_processes(self, organizer):
        """A run recorded by one sweeper instance is visible to another."""
        EventRow.objects.create(
            organizer=organizer,
            name="Old Show",
            venue="Hall B",
            event_date=TODAY - timedelta(days=1),
            status=EventRow.Status.APPROVED,
        )
        ScheduledSweeper(EventLifecycleSweeper(DjangoTicketingStore(), clock=fixed_clock)).trigger()

        status = ScheduledSweeper(EventLifecycleSweeper(DjangoTicketingStore())).status()

        assert status.last_run_at == NOW
        assert status.last_result.count == 1
        assert status.last_result.events[0].name == "Old Show"
        run = SweepRun.objects.get()
        assert run.trigger == SweepRun.Trigger.MANUAL
        assert run.completed_count == 1


@pytest.mark.django_db
class TestPeriodicTasks:
    """The Celery tasks beat runs."""

    def test_sweep_task_completes_ended_events(self, organizer):
        """The sweep task completes ended events and records a scheduled run."""
        event = EventRow.objects.create(
            organizer=organizer,
            name="Yesterday",
            venue="Hall C",
            event_date=timezone.localdate() - timedelta(days=1),
            status=EventRow.Status.APPROVED,
        )

        assert sweep_ended_events() == 1

        event.refresh_from_db()
        assert event.status == EventRow.Status.COMPLETED
        assert SweepRun.objects.get().trigger == SweepRun.Trigger.SCHEDULED

    def test_sweep_task_skips_busy_worker(self, monkeypatch):
        """The sweep task returns 0 when a sweep is already running."""

        class BusySweeper:
            store = InMemoryTicketingStore()
            clock = staticmethod(fixed_clock)

            def run_once(self):
                raise SweepInProgressError()

        monkeypatch.setattr(sweeper_module, "_instance", ScheduledSweeper(BusySweeper()))

        assert sweep_ended_events() == 0
        assert not SweepRun.objects.exists()

    def test_expiry_task_cancels_stale_purchases(self, ticket_class, buyer):
        """Unpaid purchases older than the TTL are cancelled and their stock returned."""
        service = PurchaseService(DjangoTicketingStore())
        stale = service.create(ticket_class.event_id, ticket_class.id, 3, buyer)
        fresh = service.create(ticket_class.event_id, ticket_class.id, 1, buyer)
        PurchaseRow.objects.filter(pk=stale.id.value).update(created_at=timezone.now() - timedelta(hours=2))

        assert expire_stale_purchases() == 1

        assert PurchaseRow.objects.get(pk=stale.id.value).status == PurchaseRow.Status.CANCELLED
        assert PurchaseRow.objects.get(pk=fresh.id.value).status == PurchaseRow.Status.PENDING
        assert TicketClassRow.objects.get(pk=ticket_class.id).remaining_quantity == 9

    def test_expiry_task_honours_ttl(self, ticket_class, buyer):
        """A longer TTL keeps younger purchases alive."""
        purchase = PurchaseService(DjangoTicketingStore()).create(
            ticket_class.event_id, ticket_class.id, 1, buyer
        )
        PurchaseRow.objects.filter(pk=purchase.id.value).update(created_at=timezone.now() - timedelta(hours=2))

        assert expire_stale_purchases(ttl_minutes=180) == 0
        assert PurchaseRow.objects.get(pk=purchase.id.value).status == PurchaseRow.Status.PENDING


@pytest.mark.django_db
class TestJobRegistration:
    """Periodic jobs are registered after migrate, never at import time."""

    def test_ready_starts_nothing(self, settings):
        """App loading neither spawns a thread nor writes a schedule."""
        settings.TICKETING_SWEEPER_AUTOSTART = True
        threads_before = set(threading.enumerate())

        apps.get_app_config("ticketing").ready()

        assert set(threading.enumerate()) <= threads_before
        assert not PeriodicTask.objects.exists()

    def test_post_migrate_enables_autostart_jobs(self, settings):
        """Both jobs are enabled at their configured intervals when autostart is on."""
        settings.TICKETING_SWEEPER_AUTOSTART = True
        settings.TICKETING_PURCHASE_EXPIRY_AUTOSTART = True
        settings.TICKETING_PURCHASE_EXPIRY_INTERVAL_MINUTES = 5

        register_periodic_jobs(sender=apps.get_app_config("ticketing"))

        tasks = {task.task: task for task in PeriodicTask.objects.select_related("interval")}
        assert tasks["ticketing.sweep_ended_events"].enabled
        assert tasks["ticketing.expire_stale_purchases"].enabled
        assert tasks["ticketing.expire_stale_purchases"].interval.every == 5

    def test_post_migrate_without_autostart(self, settings):
        """Nothing is registered while autostart is off."""
        settings.TICKETING_SWEEPER_AUTOSTART = False
        settings.TICKETING_PURCHASE_EXPIRY_AUTOSTART = False

        register_periodic_jobs(sender=apps.get_app_config("ticketing"))

        assert not PeriodicTask.objects.exists()

    def test_post_migrate_for_other_apps_is_ignored(self, settings):
        """Only the ticketing app's post_migrate registers jobs."""
        settings.TICKETING_SWEEPER_AUTOSTART = True

        register_periodic_jobs(sender=apps.get_app_config("auth"))

        assert not PeriodicTask.objects.exists()

    def test_post_migrate_keeps_operator_interval(self, settings):
        """Re-running migrate does not reset an interval set by an operator."""
        settings.TICKETING_SWEEPER_AUTOSTART = True
        get_sweeper().start(interval_minutes=15)

        register_periodic_jobs(sender=apps.get_app_config("ticketing"))

        assert PeriodicTask.objects.get(name=schedules.SWEEP_JOB.name).interval.every == 15


@pytest.mark.django_db
class TestDatabaseSweep:
    """The batch update against the ORM store."""

    def _event(self, organizer, event_date, end_time=None, status=EventRow.Status.APPROVED):
        return EventRow.objects.create(
            organizer=organizer,
            name=f"Show {event_date}",
            venue="Main Stage",
            event_date=event_date,
            end_time=end_time,
            status=status,
        )

    def test_completes_only_ended_approved_events(self, organizer):
        """Only approved events past their end are updated."""
        ended = self._event(organizer, TODAY - timedelta(days=1))
        ended_today = self._event(organizer, TODAY, end_time=time(9, 30))
        later_today = self._event(organizer, TODAY, end_time=time(20, 0))
        tomorrow = self._event(organizer, TODAY + timedelta(days=1))
        pending = self._event(organizer, TODAY - timedelta(days=1), status=EventRow.Status.PENDING)

        result = EventLifecycleSweeper(DjangoTicketingStore(), clock=fixed_clock).run_once()

        assert {event.id.value for event in result.events} == {ended.id, ended_today.id}
        statuses = dict(EventRow.objects.values_list("id", "status"))
        assert statuses[ended.id] == EventRow.Status.COMPLETED
        assert statuses[ended_today.id] == EventRow.Status.COMPLETED
        assert statuses[later_today.id] == EventRow.Status.APPROVED
        assert statuses[tomorrow.id] == EventRow.Status.APPROVED
        assert statuses[pending.id] == EventRow.Status.PENDING

    def test_rerun_is_empty(self, organizer):
        """A second run against the database finds nothing."""
        self._event(organizer, TODAY - timedelta(days=1))
        sweeper = EventLifecycleSweeper(DjangoTicketingStore(), clock=fixed_clock)
        sweeper.run_once()
        assert sweeper.run_once().count == 0


@pytest.mark.django_db
class TestSweepEventsCommand:
    """Tests for the sweep_events management command."""

    def test_reports_completed_events(self, organizer, monkeypatch):
        """The command lists each completed event."""
        EventRow.objects.create(
            organizer=organizer,
            name="Closing Party",
            venue="Rooftop",
            event_date=TODAY - timedelta(days=1),
            status=EventRow.Status.APPROVED,
        )
        scheduled = ScheduledSweeper(EventLifecycleSweeper(DjangoTicketingStore(), clock=fixed_clock))
        monkeypatch.setattr(sweeper_module, "_instance", scheduled)
        out = StringIO()

        call_command("sweep_events", stdout=out)

        assert "Closing Party" in out.getvalue()
        assert "Marked 1 event(s) as completed" in out.getvalue()

    def test_reports_nothing_to_do(self):
        """An empty sweep says so."""
        out = StringIO()
        call_command("sweep_events", stdout=out)
        assert "No events need status update" in out.getvalue()

    def test_sweep_in_progress_is_command_error(self, monkeypatch):
        """A busy sweeper turns into a CommandError."""

        class BusySweeper:
            def trigger(self):
                raise SweepInProgressError()

        monkeypatch.setattr("ticketing.management.commands.sweep_events.get_sweeper", BusySweeper)

        with pytest.raises(CommandError):
            call_command("sweep_events", stdout=StringIO())
