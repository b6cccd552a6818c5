"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. A store also owns the
unit-of-work boundary: every mutation the services perform as a group runs
inside ``store.atomic()`` and is applied all-or-nothing.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime

from ticketing.domain import (
    BuyerInfo,
    CompletedEvent,
    Event,
    EventId,
    EventStatus,
    Money,
    Payment,
    PaymentId,
    Purchase,
    PurchaseId,
    PurchaseStatus,
    SweepRecord,
    TicketClass,
    TicketClassId,
)
from ticketing.domain.value_objects import CommissionRate


class TicketingStore(ABC):
    """Interface for ticketing persistence operations."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Return a context manager that commits on success and rolls back on error.

        Nested blocks behave like savepoints.
        """
        ...

    # Events

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def transition_event(self, event_id: EventId, source: EventStatus, target: EventStatus) -> Event | None:
        """Move an event from ``source`` to ``target``.

        Returns the updated event, or None when the event is no longer in ``source``.
        """
        ...

    @abstractmethod
    def complete_ended_events(self, now: datetime) -> list[CompletedEvent]:
        """Mark every approved event that has ended by ``now`` as completed.

        ``now`` is local wall-clock time. Only rows still approved at update
        time are changed and returned.
        """
        ...

    @abstractmethod
    def get_commission_rate(self, event_id: EventId) -> CommissionRate:
        """Return the commission rate of the organizer owning the event."""
        ...

    # Ticket classes

    @abstractmethod
    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        """Return a ticket class by ID, or None if not found."""
        ...

    @abstractmethod
    def decrement_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        """Take ``quantity`` from stock if at least that much remains.

        The check and the write are one indivisible step. Returns the updated
        ticket class, or None when stock was insufficient (nothing written).
        """
        ...

    @abstractmethod
    def increment_remaining(self, ticket_class_id: TicketClassId, quantity: int) -> TicketClass | None:
        """Return ``quantity`` to stock if the result stays within the total.

        Returns the updated ticket class, or None when the increment would
        exceed ``total_quantity`` (nothing written).
        """
        ...

    # Purchases

    @abstractmethod
    def create_purchase(
        self,
        event_id: EventId,
        ticket_class_id: TicketClassId,
        quantity: int,
        gross_amount: Money,
        buyer: BuyerInfo,
    ) -> Purchase:
        """Persist a new pending purchase."""
        ...

    @abstractmethod
    def get_purchase(self, purchase_id: PurchaseId, for_update: bool = False) -> Purchase | None:
        """Return a purchase by ID, optionally locking its row until the unit of work ends."""
        ...

    @abstractmethod
    def set_purchase_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> Purchase:
        """Overwrite a purchase's status."""
        ...

    @abstractmethod
    def delete_purchase(self, purchase_id: PurchaseId) -> None:
        """Remove a purchase and its payment."""
        ...

    @abstractmethod
    def list_stale_pending_purchases(self, created_before: datetime) -> list[Purchase]:
        """Return pending purchases created before the cutoff without a completed payment."""
        ...

    @abstractmethod
    def list_purchases(
        self,
        status: PurchaseStatus | None = None,
        event_id: EventId | None = None,
        buyer_email: str | None = None,
    ) -> list[Purchase]:
        """Return purchases matching every given filter, newest first. Email matching ignores case."""
        ...

    # Payments

    @abstractmethod
    def create_payment(self, purchase_id: PurchaseId, amount: Money) -> Payment:
        """Persist a new initiated payment for a purchase."""
        ...

    @abstractmethod
    def get_payment(self, payment_id: PaymentId, for_update: bool = False) -> Payment | None:
        """Return a payment by ID, optionally locking its row until the unit of work ends."""
        ...

    @abstractmethod
    def get_payment_for_purchase(self, purchase_id: PurchaseId) -> Payment | None:
        """Return the payment attached to a purchase, if any."""
        ...

    @abstractmethod
    def get_payment_by_reference(self, external_reference: str) -> Payment | None:
        """Return the payment settled under a gateway reference, if any."""
        ...

    @abstractmethod
    def complete_payment(
        self,
        payment_id: PaymentId,
        external_reference: str,
        platform_share: Money,
        organizer_share: Money,
        completed_at: datetime,
    ) -> Payment:
        """Record settlement and mark the payment completed."""
        ...

    @abstractmethod
    def fail_payment(self, payment_id: PaymentId, reason: str) -> Payment:
        """Mark the payment failed."""
        ...

    @abstractmethod
    def flag_payment(self, payment_id: PaymentId, note: str) -> Payment:
        """Flag a payment for manual review without changing its status."""
        ...

    # Sweep history

    @abstractmethod
    def record_sweep(self, record: SweepRecord) -> None:
        """Persist the outcome of one sweep run."""
        ...

    @abstractmethod
    def last_sweep(self, succeeded_only: bool = False) -> SweepRecord | None:
        """Return the most recent sweep run, or the most recent successful one."""
        ...
