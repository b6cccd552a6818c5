"""Inventory Ledger: the only code allowed to move ``remaining_quantity``."""

import structlog

from ticketing.domain import ReservationToken, TicketClassId
from ticketing.domain.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    LogicError,
    TicketClassNotFoundError,
)
from ticketing.stores.interfaces import TicketingStore

logger = structlog.get_logger(__name__)


class InventoryLedger:
    """Atomic reserve/release of ticket stock.

    Knows nothing about purchases or payments. Callers that pair a stock
    change with other writes wrap both in ``store.atomic()``.
    """

    def __init__(self, store: TicketingStore) -> None:
        self._store = store

    def reserve(self, ticket_class_id: TicketClassId, quantity: int) -> ReservationToken:
        """Take ``quantity`` tickets out of stock.

        Raises:
            InvalidQuantityError: If quantity is below one.
            TicketClassNotFoundError: If the ticket class does not exist.
            InsufficientStockError: If less than ``quantity`` remains. Stock is untouched.
        """
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        with self._store.atomic():
            updated = self._store.decrement_remaining(ticket_class_id, quantity)
            if updated is None:
                current = self._store.get_ticket_class(ticket_class_id)
                if current is None:
                    raise TicketClassNotFoundError(str(ticket_class_id))
                logger.info(
                    "inventory_insufficient_stock",
                    ticket_class_id=str(ticket_class_id),
                    requested=quantity,
                    remaining=current.remaining_quantity.value,
                )
                raise InsufficientStockError(requested=quantity, remaining=current.remaining_quantity.value)
        logger.debug(
            "inventory_reserved",
            ticket_class_id=str(ticket_class_id),
            quantity=quantity,
            remaining=updated.remaining_quantity.value,
        )
        return ReservationToken(ticket_class_id=ticket_class_id, quantity=quantity, unit_price=updated.unit_price)

    def release(self, ticket_class_id: TicketClassId, quantity: int) -> None:
        """Return ``quantity`` tickets to stock.

        Raises:
            InvalidQuantityError: If quantity is below one.
            TicketClassNotFoundError: If the ticket class does not exist.
            LogicError: If the release would push stock above the total, which
                means the same tickets were released twice. Nothing is written.
        """
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        with self._store.atomic():
            updated = self._store.increment_remaining(ticket_class_id, quantity)
            if updated is None:
                current = self._store.get_ticket_class(ticket_class_id)
                if current is None:
                    raise TicketClassNotFoundError(str(ticket_class_id))
                logger.error(
                    "inventory_duplicate_release",
                    ticket_class_id=str(ticket_class_id),
                    quantity=quantity,
                    remaining=current.remaining_quantity.value,
                    total=current.total_quantity.value,
                )
                raise LogicError(f"Release of {quantity} would exceed total stock for ticket class {ticket_class_id}")
        logger.debug(
            "inventory_released",
            ticket_class_id=str(ticket_class_id),
            quantity=quantity,
            remaining=updated.remaining_quantity.value,
        )
