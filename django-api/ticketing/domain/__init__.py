from ticketing.domain.models import (
    CompletedEvent,
    Event,
    EventStatus,
    Payment,
    PaymentStatus,
    Purchase,
    PurchaseStatus,
    ReservationToken,
    SweepRecord,
    SweepResult,
    SweepTrigger,
    TicketClass,
)
from ticketing.domain.value_objects import (
    BuyerInfo,
    Capacity,
    CommissionRate,
    EventId,
    Money,
    PaymentId,
    PurchaseId,
    TicketClassId,
)

__all__ = [
    "Event",
    "EventStatus",
    "TicketClass",
    "ReservationToken",
    "Purchase",
    "PurchaseStatus",
    "Payment",
    "PaymentStatus",
    "CompletedEvent",
    "SweepResult",
    "SweepRecord",
    "SweepTrigger",
    "EventId",
    "TicketClassId",
    "PurchaseId",
    "PaymentId",
    "Money",
    "Capacity",
    "CommissionRate",
    "BuyerInfo",
]
