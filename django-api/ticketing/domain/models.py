"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in ticketing/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from ticketing.domain.value_objects import (
    BuyerInfo,
    Capacity,
    EventId,
    Money,
    PaymentId,
    PurchaseId,
    TicketClassId,
)


class EventStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"


# Events on sale. "active" is not a status of its own; it was only ever an alias of approved.
PURCHASABLE_EVENT_STATUSES = frozenset({EventStatus.APPROVED})

# Administrative transitions. approved -> completed belongs to the sweeper alone.
ADMIN_EVENT_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.PENDING: frozenset({EventStatus.APPROVED, EventStatus.REJECTED, EventStatus.CANCELLED}),
    EventStatus.APPROVED: frozenset({EventStatus.CANCELLED}),
}


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event."""

    id: EventId
    organizer_id: UUID
    name: str
    venue: str
    status: EventStatus
    event_date: date
    start_time: time | None
    end_time: time | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_purchasable(self) -> bool:
        return self.status in PURCHASABLE_EVENT_STATUSES


@dataclass(frozen=True)
class TicketClass:
    """Domain representation of a TicketClass."""

    id: TicketClassId
    event_id: EventId
    name: str
    unit_price: Money
    total_quantity: Capacity
    remaining_quantity: Capacity
    created_at: datetime

    def __post_init__(self) -> None:
        if self.remaining_quantity.value > self.total_quantity.value:
            raise ValueError("Remaining quantity cannot exceed total quantity")


@dataclass(frozen=True)
class ReservationToken:
    """Proof of a successful stock reservation, priced inside the same unit of work."""

    ticket_class_id: TicketClassId
    quantity: int
    unit_price: Money

    @property
    def gross_amount(self) -> Money:
        return self.unit_price.times(self.quantity)


@dataclass(frozen=True)
class Purchase:
    """Domain representation of a buyer order."""

    id: PurchaseId
    event_id: EventId
    ticket_class_id: TicketClassId
    quantity: int
    gross_amount: Money
    buyer: BuyerInfo
    status: PurchaseStatus
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Payment:
    """Domain representation of the single payment attached to a purchase."""

    id: PaymentId
    purchase_id: PurchaseId
    amount: Money
    status: PaymentStatus
    created_at: datetime
    external_reference: str | None = None
    platform_share: Money | None = None
    organizer_share: Money | None = None
    failure_reason: str = ""
    flagged_for_review: bool = False
    review_note: str = ""
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.status is PaymentStatus.COMPLETED:
            if self.platform_share is None or self.organizer_share is None:
                raise ValueError("Completed payments must carry both shares")
            if self.platform_share + self.organizer_share != self.amount:
                raise ValueError("Shares must add up to the payment amount")


@dataclass(frozen=True)
class CompletedEvent:
    """An event moved to completed by a sweep."""

    id: EventId
    name: str
    event_date: date
    end_time: time | None


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep run."""

    ran_at: datetime
    events: tuple[CompletedEvent, ...] = ()

    @property
    def count(self) -> int:
        return len(self.events)


class SweepTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass(frozen=True)
class SweepRecord:
    """A recorded sweep run. ``result`` is None when the run failed."""

    trigger: SweepTrigger
    ran_at: datetime
    result: SweepResult | None = None
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.result is not None
