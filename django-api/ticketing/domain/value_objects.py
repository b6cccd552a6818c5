"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Self
from uuid import UUID

from ticketing.domain.errors import ConfigurationError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TicketClassId:
    """Unique identifier for a TicketClass."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PurchaseId:
    """Unique identifier for a Purchase."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PaymentId:
    """Unique identifier for a Payment."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Currency amount held to the smallest unit (cents)."""

    amount: Decimal

    def __post_init__(self) -> None:
        amount = Decimal(self.amount)
        if amount < 0:
            raise ValueError("Money amount cannot be negative")
        object.__setattr__(self, "amount", amount.quantize(CENT, rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls) -> Self:
        return cls(Decimal("0"))

    def __add__(self, other: "Money") -> "Money":
        return Money(self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.amount - other.amount)

    def times(self, quantity: int) -> "Money":
        return Money(self.amount * quantity)

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class CommissionRate:
    """Platform commission as a fraction in [0, 1)."""

    value: Decimal

    def __post_init__(self) -> None:
        value = Decimal(self.value)
        if not Decimal("0") <= value < Decimal("1"):
            raise ConfigurationError(f"Commission rate {value} is outside [0, 1)")
        object.__setattr__(self, "value", value)


@dataclass(frozen=True)
class BuyerInfo:
    """Contact details of an anonymous buyer."""

    name: str
    email: str
    phone: str

    def __post_init__(self) -> None:
        if not (self.name.strip() and self.email.strip() and self.phone.strip()):
            raise ValueError("Buyer name, email, and phone are required")
