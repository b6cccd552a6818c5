"""Django ORM implementation of the TicketingStore.

Stock changes are conditional UPDATE statements, so the check and the write
happen in one statement under the database's row lock. Purchase and payment
reads that precede a state change lock their rows with ``select_for_update``.
"""

from contextlib import AbstractContextManager
from datetime import date, datetime, time

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from ticketing import models as orm
from ticketing.domain import (
    BuyerInfo,
    Capacity,
    CompletedEvent,
    Event,
    EventId,
    EventStatus,
    Money,
    Payment,
    PaymentId,
    PaymentStatus,
    Purchase,
    PurchaseId,
    PurchaseStatus,
    SweepRecord,
    SweepResult,
    SweepTrigger,
    TicketClass,
    TicketClassId,
)
from ticketing.domain.errors import EventNotFoundError
from ticketing.domain.value_objects import CommissionRate
from ticketing.stores.interfaces import TicketingStore


def _event(row: orm.Event) -> Event:
    return Event(
        id=EventId(row.id),
        organizer_id=row.organizer_id,
        name=row.name,
        venue=row.venue,
        status=EventStatus(row.status),
        event_date=row.event_date,
        start_time=row.start_time,
        end_time=row.end_time,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _ticket_class(row: orm.TicketClass) -> TicketClass:
    return TicketClass(
        id=TicketClassId(row.id),
        event_id=EventId(row.event_id),
        name=row.name,
        unit_price=Money(row.unit_price),
        total_quantity=Capacity(row.total_quantity),
        remaining_quantity=Capacity(row.remaining_quantity),
        created_at=row.created_at,
    )


def _purchase(row: orm.Purchase) -> Purchase:
    return Purchase(
        id=PurchaseId(row.id),
        event_id=EventId(row.event_id),
        ticket_class_id=TicketClassId(row.ticket_class_id),
        quantity=row.quantity,
        gross_amount=Money(row.gross_amount),
        buyer=BuyerInfo(name=row.buyer_name, email=row.buyer_email, phone=row.buyer_phone),
        status=PurchaseStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _payment(row: orm.Payment) -> Payment:
    return Payment(
        id=PaymentId(row.id),
        purchase_id=PurchaseId(row.purchase_id),
        amount=Money(row.amount),
        status=PaymentStatus(row.status),
        created_at=row.created_at,
        external_reference=row.external_reference,
        platform_share=Money(row.platform_share) if row.platform_share is not None else None,
        organizer_share=Money(row.organizer_share) if row.organizer_share is not None else None,
        failure_reason=row.failure_reason,
        flagged_for_review=row.flagged_for_review,
        review_note=row.review_note,
        completed_at=row.completed_at,
    )


def _sweep(row: orm.SweepRun) -> SweepRecord:
    result = None
    if not row.error:
        result = SweepResult(
            ran_at=row.ran_at,
            events=tuple(
                CompletedEvent(
                    id=EventId.from_string(item["id"]),
                    name=item["name"],
                    event_date=date.fromisoformat(item["event_date"]),
                    end_time=time.fromisoformat(item["end_time"]) if item["end_time"] else None,
                )
                for item in row.completed_events
            ),
        )
    return SweepRecord(trigger=SweepTrigger(row.trigger), ran_at=row.ran_at, result=result, error=row.error)


class DjangoTicketingStore(TicketingStore):
    """Relational store backed by the Django ORM."""

    def atomic(self) -> AbstractContextManager[None]:
        return transaction.atomic()

    def get_event(self, event_id: EventId) -> Event | None:
        row = orm.Event.objects.filter(pk=event_id.value).first()
        return _event(row) if row else None

    def transition_event(self, event_id: EventId, source: EventStatus, target: EventStatus) -> Event | None:
        updated = orm.Event.objects.filter(pk=event_id.value, status=source.value).update(
            status=target.value, updated_at=timezone.now()
        )
        if not updated:
            return None
        return self.get_event(event_id)

    def complete_ended_events(self, now: datetime) -> list[CompletedEvent]:
        today = now.date()
        ended = Q(event_date__lt=today) | Q(event_date=today, end_time__isnull=False, end_time__lte=now.time())
        with transaction.atomic():
            rows = list(
                orm.Event.objects.select_for_update()
                .filter(ended, status=orm.Event.Status.APPROVED)
                .order_by("event_date")
                .values("id", "name", "event_date", "end_time")
            )
            if not rows:
                return []
            orm.Event.objects.filter(
                pk__in=[row["id"] for row in rows], status=orm.Event.Status.APPROVED
            ).update(status=orm.Event.Status.COMPLETED, updated_at=timezone.now())
        return [
            CompletedEvent(
                id=EventId(row["id"]),
                name=row["name"],
                event_date=row["event_date"],
                end_time=row["end_time"],
            )
            for row in rows
        ]

    def get_commission_rate(self, event_id: EventId) -> CommissionRate:
        row = orm.Event.objects.select_related("organizer").filter(pk=event_id.value).first()
        if row is None:
            raise EventNotFoundError(str(event_id))
        return CommissionRate(row.organizer.commission_rate)

    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        row = orm.TicketClass.objects.filter(pk=ticket_class_id.value).first()
        return _ticket_class(row) if row else None

    def decrement_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        updated = orm.TicketClass.objects.filter(
            pk=ticket_class_id.value, remaining_quantity__gte=quantity
        ).update(remaining_quantity=F("remaining_quantity") - quantity)
        if not updated:
            return None
        return self.get_ticket_class(ticket_class_id)

    def increment_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        updated = orm.TicketClass.objects.filter(
            pk=ticket_class_id.value, remaining_quantity__lte=F("total_quantity") - quantity
        ).update(remaining_quantity=F("remaining_quantity") + quantity)
        if not updated:
            return None
        return self.get_ticket_class(ticket_class_id)

    def create_purchase(
        self,
        event_id: EventId,
        ticket_class_id: TicketClassId,
        quantity: int,
        gross_amount: Money,
        buyer: BuyerInfo,
    ) -> Purchase:
        row = orm.Purchase.objects.create(
            event_id=event_id.value,
            ticket_class_id=ticket_class_id.value,
            quantity=quantity,
            gross_amount=gross_amount.amount,
            buyer_name=buyer.name,
            buyer_email=buyer.email,
            buyer_phone=buyer.phone,
            status=orm.Purchase.Status.PENDING,
        )
        return _purchase(row)

    def get_purchase(self, purchase_id: PurchaseId, for_update: bool = False) -> Purchase | None:
        queryset = orm.Purchase.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        row = queryset.filter(pk=purchase_id.value).first()
        return _purchase(row) if row else None

    def set_purchase_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> Purchase:
        row = orm.Purchase.objects.get(pk=purchase_id.value)
        row.status = status.value
        row.save(update_fields=["status", "updated_at"])
        return _purchase(row)

    def delete_purchase(self, purchase_id: PurchaseId) -> None:
        orm.Purchase.objects.filter(pk=purchase_id.value).delete()

    def list_stale_pending_purchases(self, created_before: datetime) -> list[Purchase]:
        rows = (
            orm.Purchase.objects.filter(status=orm.Purchase.Status.PENDING, created_at__lt=created_before)
            .exclude(payment__status=orm.Payment.Status.COMPLETED)
            .order_by("created_at")
        )
        return [_purchase(row) for row in rows]

    def list_purchases(
        self,
        status: PurchaseStatus | None = None,
        event_id: EventId | None = None,
        buyer_email: str | None = None,
    ) -> list[Purchase]:
        rows = orm.Purchase.objects.all()
        if status is not None:
            rows = rows.filter(status=status.value)
        if event_id is not None:
            rows = rows.filter(event_id=event_id.value)
        if buyer_email is not None:
            rows = rows.filter(buyer_email__iexact=buyer_email)
        return [_purchase(row) for row in rows.order_by("-created_at")]

    def create_payment(self, purchase_id: PurchaseId, amount: Money) -> Payment:
        row = orm.Payment.objects.create(purchase_id=purchase_id.value, amount=amount.amount)
        return _payment(row)

    def get_payment(self, payment_id: PaymentId, for_update: bool = False) -> Payment | None:
        queryset = orm.Payment.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        row = queryset.filter(pk=payment_id.value).first()
        return _payment(row) if row else None

    def get_payment_for_purchase(self, purchase_id: PurchaseId) -> Payment | None:
        row = orm.Payment.objects.filter(purchase_id=purchase_id.value).first()
        return _payment(row) if row else None

    def get_payment_by_reference(self, external_reference: str) -> Payment | None:
        row = orm.Payment.objects.filter(external_reference=external_reference).first()
        return _payment(row) if row else None

    def complete_payment(
        self,
        payment_id: PaymentId,
        external_reference: str,
        platform_share: Money,
        organizer_share: Money,
        completed_at: datetime,
    ) -> Payment:
        row = orm.Payment.objects.get(pk=payment_id.value)
        row.status = orm.Payment.Status.COMPLETED
        row.external_reference = external_reference
        row.platform_share = platform_share.amount
        row.organizer_share = organizer_share.amount
        row.completed_at = completed_at
        row.save(
            update_fields=["status", "external_reference", "platform_share", "organizer_share", "completed_at"]
        )
        return _payment(row)

    def fail_payment(self, payment_id: PaymentId, reason: str) -> Payment:
        row = orm.Payment.objects.get(pk=payment_id.value)
        row.status = orm.Payment.Status.FAILED
        row.failure_reason = reason
        row.save(update_fields=["status", "failure_reason"])
        return _payment(row)

    def flag_payment(self, payment_id: PaymentId, note: str) -> Payment:
        row = orm.Payment.objects.get(pk=payment_id.value)
        row.flagged_for_review = True
        row.review_note = note
        row.save(update_fields=["flagged_for_review", "review_note"])
        return _payment(row)

    def record_sweep(self, record: SweepRecord) -> None:
        events = record.result.events if record.result is not None else ()
        orm.SweepRun.objects.create(
            trigger=record.trigger.value,
            ran_at=record.ran_at,
            completed_count=len(events),
            completed_events=[
                {
                    "id": str(event.id),
                    "name": event.name,
                    "event_date": event.event_date.isoformat(),
                    "end_time": event.end_time.isoformat() if event.end_time else None,
                }
                for event in events
            ],
            error=record.error,
        )

    def last_sweep(self, succeeded_only: bool = False) -> SweepRecord | None:
        rows = orm.SweepRun.objects.order_by("-ran_at")
        if succeeded_only:
            rows = rows.filter(error="")
        row = rows.first()
        return _sweep(row) if row else None
