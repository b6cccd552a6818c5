"""Purchase service - lifecycle of a single buyer order.

States: pending -> paid | cancelled, paid -> refunded. ``paid`` is only
reached through payment reconciliation. Every transition that moves stock
runs in one unit of work together with the status change.
"""

from datetime import datetime
from uuid import UUID

import structlog

from ticketing.domain import (
    BuyerInfo,
    EventId,
    PaymentStatus,
    Purchase,
    PurchaseId,
    PurchaseStatus,
    TicketClassId,
)
from ticketing.domain.errors import (
    AlreadyPaidError,
    EventNotFoundError,
    EventNotPurchasableError,
    InvalidQuantityError,
    PurchaseNotFoundError,
    PurchaseNotPaidError,
    PurchaseNotPendingError,
    TicketClassNotFoundError,
    TicketMismatchError,
)
from ticketing.services.identifiers import parse_id
from ticketing.services.inventory import InventoryLedger
from ticketing.stores.interfaces import TicketingStore

logger = structlog.get_logger(__name__)


class PurchaseService:
    """Service for creating, cancelling, refunding and deleting purchases."""

    def __init__(self, store: TicketingStore, ledger: InventoryLedger | None = None) -> None:
        self._store = store
        self._ledger = ledger or InventoryLedger(store)

    def create(
        self,
        event_id: EventId | UUID | str,
        ticket_class_id: TicketClassId | UUID | str,
        quantity: int,
        buyer: BuyerInfo,
    ) -> Purchase:
        """Reserve stock and record a pending purchase as one unit of work.

        The event status is read inside the same unit of work as the
        reservation. ``gross_amount`` is frozen from the price read there.

        Raises:
            InvalidIdentifierError: If an ID is malformed.
            InvalidQuantityError: If quantity is below one.
            EventNotFoundError: If the event does not exist.
            EventNotPurchasableError: If the event is not on sale.
            TicketClassNotFoundError: If the ticket class does not exist.
            TicketMismatchError: If the ticket class belongs to another event.
            InsufficientStockError: If not enough tickets remain.
        """
        event_id = parse_id(EventId, event_id, "event")
        ticket_class_id = parse_id(TicketClassId, ticket_class_id, "ticket class")
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        with self._store.atomic():
            event = self._store.get_event(event_id)
            if event is None:
                raise EventNotFoundError(str(event_id))
            if not event.is_purchasable:
                raise EventNotPurchasableError(event.status.value)

            ticket_class = self._store.get_ticket_class(ticket_class_id)
            if ticket_class is None:
                raise TicketClassNotFoundError(str(ticket_class_id))
            if ticket_class.event_id != event.id:
                raise TicketMismatchError()

            token = self._ledger.reserve(ticket_class_id, quantity)
            purchase = self._store.create_purchase(
                event_id=event.id,
                ticket_class_id=ticket_class_id,
                quantity=quantity,
                gross_amount=token.gross_amount,
                buyer=buyer,
            )

        logger.info(
            "purchase_created",
            purchase_id=str(purchase.id),
            event_id=str(event_id),
            ticket_class_id=str(ticket_class_id),
            quantity=quantity,
            gross_amount=str(purchase.gross_amount),
        )
        return purchase

    def get(self, purchase_id: PurchaseId | UUID | str) -> Purchase:
        """Return a purchase by ID.

        Raises:
            InvalidIdentifierError: If the ID is malformed.
            PurchaseNotFoundError: If the purchase does not exist.
        """
        purchase_id = parse_id(PurchaseId, purchase_id, "purchase")
        purchase = self._store.get_purchase(purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError(str(purchase_id))
        return purchase

    def list_purchases(
        self,
        status: PurchaseStatus | str | None = None,
        event_id: EventId | UUID | str | None = None,
        buyer_email: str | None = None,
    ) -> list[Purchase]:
        """Return purchases newest first, narrowed by any filter given.

        Raises:
            InvalidIdentifierError: If the event ID is malformed.
        """
        return self._store.list_purchases(
            status=PurchaseStatus(status) if status is not None else None,
            event_id=parse_id(EventId, event_id, "event") if event_id is not None else None,
            buyer_email=buyer_email.strip() if buyer_email is not None else None,
        )

    def cancel(self, purchase_id: PurchaseId | UUID | str) -> Purchase:
        """Cancel a pending purchase and put its tickets back.

        Cancelling a cancelled purchase is a no-op, so stock is released at
        most once. An initiated payment on the purchase is marked failed.

        Raises:
            PurchaseNotFoundError: If the purchase does not exist.
            AlreadyPaidError: If the purchase is paid (use refund instead).
            PurchaseNotPendingError: If the purchase was refunded.
        """
        purchase_id = parse_id(PurchaseId, purchase_id, "purchase")
        with self._store.atomic():
            purchase = self._locked(purchase_id)
            if purchase.status is PurchaseStatus.CANCELLED:
                logger.info("purchase_cancel_noop", purchase_id=str(purchase_id))
                return purchase
            if purchase.status is PurchaseStatus.PAID:
                raise AlreadyPaidError()
            if purchase.status is not PurchaseStatus.PENDING:
                raise PurchaseNotPendingError(purchase.status.value)

            payment = self._store.get_payment_for_purchase(purchase_id)
            if payment is not None and payment.status is PaymentStatus.INITIATED:
                self._store.fail_payment(payment.id, "purchase cancelled")

            purchase = self._store.set_purchase_status(purchase_id, PurchaseStatus.CANCELLED)
            self._ledger.release(purchase.ticket_class_id, purchase.quantity)

        logger.info("purchase_cancelled", purchase_id=str(purchase_id), quantity=purchase.quantity)
        return purchase

    def refund(self, purchase_id: PurchaseId | UUID | str) -> Purchase:
        """Refund a paid purchase and return its tickets to stock.

        The completed payment is left as it is.

        Raises:
            PurchaseNotFoundError: If the purchase does not exist.
            PurchaseNotPaidError: If the purchase is not paid.
        """
        purchase_id = parse_id(PurchaseId, purchase_id, "purchase")
        with self._store.atomic():
            purchase = self._locked(purchase_id)
            if purchase.status is PurchaseStatus.REFUNDED:
                return purchase
            if purchase.status is not PurchaseStatus.PAID:
                raise PurchaseNotPaidError(purchase.status.value)
            purchase = self._store.set_purchase_status(purchase_id, PurchaseStatus.REFUNDED)
            self._ledger.release(purchase.ticket_class_id, purchase.quantity)

        logger.info(
            "purchase_refunded",
            purchase_id=str(purchase_id),
            quantity=purchase.quantity,
            gross_amount=str(purchase.gross_amount),
        )
        return purchase

    def delete(self, purchase_id: PurchaseId | UUID | str) -> None:
        """Administratively remove a purchase. A pending reservation is released first.

        Raises:
            PurchaseNotFoundError: If the purchase does not exist.
        """
        purchase_id = parse_id(PurchaseId, purchase_id, "purchase")
        with self._store.atomic():
            purchase = self._locked(purchase_id)
            if purchase.status is PurchaseStatus.PENDING:
                self._ledger.release(purchase.ticket_class_id, purchase.quantity)
            self._store.delete_purchase(purchase_id)
        logger.warning("purchase_deleted", purchase_id=str(purchase_id), status=purchase.status.value)

    def expire_stale(self, older_than: datetime) -> list[Purchase]:
        """Cancel pending purchases created before ``older_than`` that were never paid."""
        expired = []
        for stale in self._store.list_stale_pending_purchases(older_than):
            try:
                expired.append(self.cancel(stale.id))
            except (AlreadyPaidError, PurchaseNotPendingError):
                # Settled between the listing and the cancel.
                continue
        if expired:
            logger.info("purchases_expired", count=len(expired), cutoff=older_than.isoformat())
        return expired

    def _locked(self, purchase_id: PurchaseId) -> Purchase:
        purchase = self._store.get_purchase(purchase_id, for_update=True)
        if purchase is None:
            raise PurchaseNotFoundError(str(purchase_id))
        return purchase
