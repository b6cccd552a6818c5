"""In-process implementation of the TicketingStore.

All state lives in dictionaries of frozen domain objects guarded by one
re-entrant lock. ``atomic()`` holds the lock for the whole unit of work and
restores a snapshot when the block raises, so nested blocks act as savepoints.
"""

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, date, datetime, time
from decimal import Decimal

from ticketing.domain import (
    BuyerInfo,
    Capacity,
    CommissionRate,
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
    TicketClass,
    TicketClassId,
)
from ticketing.domain.errors import EventNotFoundError
from ticketing.domain.schedule import has_ended
from ticketing.stores.interfaces import TicketingStore


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryTicketingStore(TicketingStore):
    """Thread-safe dictionary store with all-or-nothing units of work."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._events: dict[EventId, Event] = {}
        self._ticket_classes: dict[TicketClassId, TicketClass] = {}
        self._purchases: dict[PurchaseId, Purchase] = {}
        self._payments: dict[PaymentId, Payment] = {}
        self._commission_rates: dict[uuid.UUID, CommissionRate] = {}
        self._sweeps: list[SweepRecord] = []

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise

    def _snapshot(self) -> tuple[dict, ...]:
        return (
            dict(self._events),
            dict(self._ticket_classes),
            dict(self._purchases),
            dict(self._payments),
            dict(self._commission_rates),
        )

    def _restore(self, snapshot: tuple[dict, ...]) -> None:
        (
            self._events,
            self._ticket_classes,
            self._purchases,
            self._payments,
            self._commission_rates,
        ) = snapshot

    # Seeding

    def add_event(
        self,
        event_date: date,
        status: EventStatus = EventStatus.APPROVED,
        end_time: time | None = None,
        start_time: time | None = None,
        name: str = "Event",
        venue: str = "Venue",
        organizer_id: uuid.UUID | None = None,
        commission_rate: Decimal | str = "0.10",
    ) -> Event:
        organizer_id = organizer_id or uuid.uuid4()
        now = _now()
        event = Event(
            id=EventId(uuid.uuid4()),
            organizer_id=organizer_id,
            name=name,
            venue=venue,
            status=status,
            event_date=event_date,
            start_time=start_time,
            end_time=end_time,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._commission_rates.setdefault(organizer_id, CommissionRate(Decimal(commission_rate)))
            self._events[event.id] = event
        return event

    def add_ticket_class(
        self,
        event_id: EventId,
        unit_price: Decimal | str,
        total_quantity: int,
        remaining_quantity: int | None = None,
        name: str = "General Admission",
    ) -> TicketClass:
        ticket_class = TicketClass(
            id=TicketClassId(uuid.uuid4()),
            event_id=event_id,
            name=name,
            unit_price=Money(Decimal(unit_price)),
            total_quantity=Capacity(total_quantity),
            remaining_quantity=Capacity(total_quantity if remaining_quantity is None else remaining_quantity),
            created_at=_now(),
        )
        with self._lock:
            self._ticket_classes[ticket_class.id] = ticket_class
        return ticket_class

    def set_unit_price(self, ticket_class_id: TicketClassId, unit_price: Decimal | str) -> None:
        with self._lock:
            current = self._ticket_classes[ticket_class_id]
            self._ticket_classes[ticket_class_id] = replace(current, unit_price=Money(Decimal(unit_price)))

    def backdate_purchase(self, purchase_id: PurchaseId, created_at: datetime) -> None:
        with self._lock:
            self._purchases[purchase_id] = replace(self._purchases[purchase_id], created_at=created_at)

    # Events

    def get_event(self, event_id: EventId) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def transition_event(self, event_id: EventId, source: EventStatus, target: EventStatus) -> Event | None:
        with self._lock:
            event = self._events.get(event_id)
            if event is None or event.status is not source:
                return None
            event = replace(event, status=target, updated_at=_now())
            self._events[event_id] = event
            return event

    def complete_ended_events(self, now: datetime) -> list[CompletedEvent]:
        with self.atomic():
            matches = sorted(
                (
                    event
                    for event in self._events.values()
                    if event.status is EventStatus.APPROVED and has_ended(event.event_date, event.end_time, now)
                ),
                key=lambda event: event.event_date,
            )
            stamp = _now()
            for event in matches:
                self._events[event.id] = replace(event, status=EventStatus.COMPLETED, updated_at=stamp)
        return [
            CompletedEvent(id=event.id, name=event.name, event_date=event.event_date, end_time=event.end_time)
            for event in matches
        ]

    def get_commission_rate(self, event_id: EventId) -> CommissionRate:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise EventNotFoundError(str(event_id))
            return self._commission_rates[event.organizer_id]

    # Ticket classes

    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        with self._lock:
            return self._ticket_classes.get(ticket_class_id)

    def decrement_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        with self._lock:
            current = self._ticket_classes.get(ticket_class_id)
            if current is None or current.remaining_quantity.value < quantity:
                return None
            updated = replace(current, remaining_quantity=Capacity(current.remaining_quantity.value - quantity))
            self._ticket_classes[ticket_class_id] = updated
            return updated

    def increment_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        with self._lock:
            current = self._ticket_classes.get(ticket_class_id)
            if current is None:
                return None
            if current.remaining_quantity.value + quantity > current.total_quantity.value:
                return None
            updated = replace(current, remaining_quantity=Capacity(current.remaining_quantity.value + quantity))
            self._ticket_classes[ticket_class_id] = updated
            return updated

    # Purchases

    def create_purchase(
        self,
        event_id: EventId,
        ticket_class_id: TicketClassId,
        quantity: int,
        gross_amount: Money,
        buyer: BuyerInfo,
    ) -> Purchase:
        now = _now()
        purchase = Purchase(
            id=PurchaseId(uuid.uuid4()),
            event_id=event_id,
            ticket_class_id=ticket_class_id,
            quantity=quantity,
            gross_amount=gross_amount,
            buyer=buyer,
            status=PurchaseStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._purchases[purchase.id] = purchase
        return purchase

    def get_purchase(self, purchase_id: PurchaseId, for_update: bool = False) -> Purchase | None:
        with self._lock:
            return self._purchases.get(purchase_id)

    def set_purchase_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> Purchase:
        with self._lock:
            purchase = replace(self._purchases[purchase_id], status=status, updated_at=_now())
            self._purchases[purchase_id] = purchase
            return purchase

    def delete_purchase(self, purchase_id: PurchaseId) -> None:
        with self._lock:
            self._purchases.pop(purchase_id, None)
            for payment in list(self._payments.values()):
                if payment.purchase_id == purchase_id:
                    del self._payments[payment.id]

    def list_stale_pending_purchases(self, created_before: datetime) -> list[Purchase]:
        with self._lock:
            settled = {
                payment.purchase_id
                for payment in self._payments.values()
                if payment.status is PaymentStatus.COMPLETED
            }
            return sorted(
                (
                    purchase
                    for purchase in self._purchases.values()
                    if purchase.status is PurchaseStatus.PENDING
                    and purchase.created_at < created_before
                    and purchase.id not in settled
                ),
                key=lambda purchase: purchase.created_at,
            )

    def list_purchases(
        self,
        status: PurchaseStatus | None = None,
        event_id: EventId | None = None,
        buyer_email: str | None = None,
    ) -> list[Purchase]:
        with self._lock:
            return sorted(
                (
                    purchase
                    for purchase in self._purchases.values()
                    if (status is None or purchase.status is status)
                    and (event_id is None or purchase.event_id == event_id)
                    and (buyer_email is None or purchase.buyer.email.lower() == buyer_email.lower())
                ),
                key=lambda purchase: purchase.created_at,
                reverse=True,
            )

    # Payments

    def create_payment(self, purchase_id: PurchaseId, amount: Money) -> Payment:
        payment = Payment(
            id=PaymentId(uuid.uuid4()),
            purchase_id=purchase_id,
            amount=amount,
            status=PaymentStatus.INITIATED,
            created_at=_now(),
        )
        with self._lock:
            if self.get_payment_for_purchase(purchase_id) is not None:
                raise ValueError("Purchase already has a payment")
            self._payments[payment.id] = payment
        return payment

    def get_payment(self, payment_id: PaymentId, for_update: bool = False) -> Payment | None:
        with self._lock:
            return self._payments.get(payment_id)

    def get_payment_for_purchase(self, purchase_id: PurchaseId) -> Payment | None:
        with self._lock:
            return next((p for p in self._payments.values() if p.purchase_id == purchase_id), None)

    def get_payment_by_reference(self, external_reference: str) -> Payment | None:
        with self._lock:
            return next(
                (p for p in self._payments.values() if p.external_reference == external_reference),
                None,
            )

    def complete_payment(
        self,
        payment_id: PaymentId,
        external_reference: str,
        platform_share: Money,
        organizer_share: Money,
        completed_at: datetime,
    ) -> Payment:
        with self._lock:
            payment = replace(
                self._payments[payment_id],
                status=PaymentStatus.COMPLETED,
                external_reference=external_reference,
                platform_share=platform_share,
                organizer_share=organizer_share,
                completed_at=completed_at,
            )
            self._payments[payment_id] = payment
            return payment

    def fail_payment(self, payment_id: PaymentId, reason: str) -> Payment:
        with self._lock:
            payment = replace(self._payments[payment_id], status=PaymentStatus.FAILED, failure_reason=reason)
            self._payments[payment_id] = payment
            return payment

    def flag_payment(self, payment_id: PaymentId, note: str) -> Payment:
        with self._lock:
            payment = replace(self._payments[payment_id], flagged_for_review=True, review_note=note)
            self._payments[payment_id] = payment
            return payment

    # Sweep history

    def record_sweep(self, record: SweepRecord) -> None:
        with self._lock:
            self._sweeps.append(record)

    def last_sweep(self, succeeded_only: bool = False) -> SweepRecord | None:
        with self._lock:
            for record in reversed(self._sweeps):
                if record.succeeded or not succeeded_only:
                    return record
            return None
