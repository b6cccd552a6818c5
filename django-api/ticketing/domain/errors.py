"""Domain error codes for the ticketing module."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    TICKET_CLASS_NOT_FOUND = "TICKET_CLASS_NOT_FOUND"
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    EVENT_NOT_PURCHASABLE = "EVENT_NOT_PURCHASABLE"
    INVALID_EVENT_TRANSITION = "INVALID_EVENT_TRANSITION"
    TICKET_MISMATCH = "TICKET_MISMATCH"
    ALREADY_PAID = "ALREADY_PAID"
    PURCHASE_NOT_PENDING = "PURCHASE_NOT_PENDING"
    PURCHASE_NOT_PAID = "PURCHASE_NOT_PAID"
    PAYMENT_ALREADY_EXISTS = "PAYMENT_ALREADY_EXISTS"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    SWEEP_IN_PROGRESS = "SWEEP_IN_PROGRESS"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    LOGIC_ERROR = "LOGIC_ERROR"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: Any) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found")
        self.event_id = event_id


class TicketClassNotFoundError(DomainError):
    """Raised when a ticket class is not found."""

    def __init__(self, ticket_class_id: Any) -> None:
        super().__init__(code=ErrorCode.TICKET_CLASS_NOT_FOUND, message="Ticket class not found")
        self.ticket_class_id = ticket_class_id


class PurchaseNotFoundError(DomainError):
    """Raised when a purchase is not found."""

    def __init__(self, purchase_id: Any) -> None:
        super().__init__(code=ErrorCode.PURCHASE_NOT_FOUND, message="Purchase not found")
        self.purchase_id = purchase_id


class PaymentNotFoundError(DomainError):
    """Raised when a payment is not found."""

    def __init__(self, payment_id: Any) -> None:
        super().__init__(code=ErrorCode.PAYMENT_NOT_FOUND, message="Payment not found")
        self.payment_id = payment_id


class InvalidIdentifierError(DomainError):
    """Raised when an identifier is not a valid UUID."""

    def __init__(self, kind: str) -> None:
        super().__init__(code=ErrorCode.INVALID_IDENTIFIER, message=f"Invalid {kind} ID format")
        self.kind = kind


class InvalidQuantityError(DomainError):
    """Raised when a ticket quantity is below one."""

    def __init__(self, quantity: int) -> None:
        super().__init__(code=ErrorCode.INVALID_QUANTITY, message="Quantity must be at least 1")
        self.quantity = quantity


class InsufficientStockError(DomainError):
    """Raised when a ticket class cannot cover the requested quantity."""

    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(
            code=ErrorCode.INSUFFICIENT_STOCK,
            message=f"Only {remaining} tickets available",
        )
        self.requested = requested
        self.remaining = remaining


class EventNotPurchasableError(DomainError):
    """Raised when tickets are requested for an event that is not on sale."""

    def __init__(self, status: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_PURCHASABLE,
            message="Event is not available for ticket purchase",
        )
        self.status = status


class InvalidEventTransitionError(DomainError):
    """Raised when an administrative event transition is not allowed."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT_TRANSITION,
            message=f"Cannot move event from {current} to {target}",
        )
        self.current = current
        self.target = target


class TicketMismatchError(DomainError):
    """Raised when a ticket class does not belong to the requested event."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.TICKET_MISMATCH,
            message="Ticket type does not belong to this event",
        )


class AlreadyPaidError(DomainError):
    """Raised when cancelling a purchase that has already been paid."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_PAID,
            message="Cannot cancel a paid purchase. Request a refund instead.",
        )


class PurchaseNotPendingError(DomainError):
    """Raised when an operation requires a pending purchase."""

    def __init__(self, status: str) -> None:
        super().__init__(code=ErrorCode.PURCHASE_NOT_PENDING, message="Purchase is not pending")
        self.status = status


class PurchaseNotPaidError(DomainError):
    """Raised when refunding a purchase that was never paid."""

    def __init__(self, status: str) -> None:
        super().__init__(code=ErrorCode.PURCHASE_NOT_PAID, message="Only paid purchases can be refunded")
        self.status = status


class PaymentAlreadyExistsError(DomainError):
    """Raised when a purchase already carries a finalized payment."""

    def __init__(self, payment: Any) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_ALREADY_EXISTS,
            message="A payment already exists for this purchase",
        )
        self.payment = payment


class AlreadyFinalizedError(DomainError):
    """Raised when a payment has already reached a terminal state."""

    def __init__(self, payment: Any, message: str = "Payment is already finalized") -> None:
        super().__init__(code=ErrorCode.ALREADY_FINALIZED, message=message)
        self.payment = payment


class AmountMismatchError(DomainError):
    """Raised when the gateway reports a different amount than was charged."""

    def __init__(self, expected: Decimal, observed: Decimal) -> None:
        super().__init__(
            code=ErrorCode.AMOUNT_MISMATCH,
            message="Payment amount does not match the purchase total",
        )
        self.expected = expected
        self.observed = observed


class SweepInProgressError(DomainError):
    """Raised when a sweep is requested while another one holds the lock."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.SWEEP_IN_PROGRESS, message="An event status sweep is already running")


class ConfigurationError(DomainError):
    """Raised for invalid configuration such as an out-of-range commission rate."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.CONFIGURATION_ERROR, message=message)


class LogicError(DomainError):
    """Raised when an internal invariant is violated. Never expected in normal operation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.LOGIC_ERROR, message=message)
