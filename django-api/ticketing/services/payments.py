"""Payment reconciliation - maps gateway outcomes onto purchase state.

Payment states: initiated -> completed | failed, both terminal. Completing a
payment writes the settlement shares, the payment status and the purchase
status in one unit of work. Replays of the same gateway callback are
recognised by the external reference and change nothing.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

import structlog
from django.utils import timezone

from ticketing.domain import Money, Payment, PaymentId, PaymentStatus, PurchaseId, PurchaseStatus
from ticketing.domain.errors import (
    AlreadyFinalizedError,
    AmountMismatchError,
    InvalidIdentifierError,
    PaymentAlreadyExistsError,
    PaymentNotFoundError,
    PurchaseNotFoundError,
    PurchaseNotPendingError,
)
from ticketing.domain.settlement import split
from ticketing.services.identifiers import parse_id
from ticketing.services.purchases import PurchaseService
from ticketing.stores.interfaces import TicketingStore

logger = structlog.get_logger(__name__)


class CallbackOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CallbackAck:
    """Acknowledgement returned to the gateway for every callback."""

    applied: bool
    payment: Payment | None = None


class PaymentReconciliation:
    """Service for initiating, confirming and failing payments."""

    def __init__(self, store: TicketingStore, purchases: PurchaseService | None = None) -> None:
        self._store = store
        self._purchases = purchases or PurchaseService(store)

    def get(self, payment_id: PaymentId | UUID | str) -> Payment:
        """Return a payment by ID.

        Raises:
            InvalidIdentifierError: If the ID is malformed.
            PaymentNotFoundError: If the payment does not exist.
        """
        payment_id = parse_id(PaymentId, payment_id, "payment")
        payment = self._store.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def initiate(self, purchase_id: PurchaseId | UUID | str) -> Payment:
        """Open the payment for a pending purchase.

        Returns the existing payment when one is already initiated.

        Raises:
            PurchaseNotFoundError: If the purchase does not exist.
            PurchaseNotPendingError: If the purchase is no longer pending.
            PaymentAlreadyExistsError: If the purchase already has a finalized payment.
        """
        purchase_id = parse_id(PurchaseId, purchase_id, "purchase")
        with self._store.atomic():
            purchase = self._store.get_purchase(purchase_id, for_update=True)
            if purchase is None:
                raise PurchaseNotFoundError(str(purchase_id))
            if purchase.status is not PurchaseStatus.PENDING:
                raise PurchaseNotPendingError(purchase.status.value)

            existing = self._store.get_payment_for_purchase(purchase_id)
            if existing is not None:
                if existing.status is PaymentStatus.INITIATED:
                    return existing
                raise PaymentAlreadyExistsError(existing)

            payment = self._store.create_payment(purchase_id, purchase.gross_amount)

        logger.info(
            "payment_initiated",
            payment_id=str(payment.id),
            purchase_id=str(purchase_id),
            amount=str(payment.amount),
        )
        return payment

    def confirm(
        self,
        payment_id: PaymentId | UUID | str,
        external_reference: str,
        amount_observed: Decimal | Money,
    ) -> Payment:
        """Settle a payment reported as successful by the gateway.

        A replay with the same external reference returns the completed
        payment unchanged. Rejected callbacks flag the payment for review.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
            AlreadyFinalizedError: If the payment was failed or settled under another reference.
            AmountMismatchError: If the reported amount is not exactly the charge. Sub-cent
                and negative amounts are never rounded into a match.
            PurchaseNotPendingError: If the linked purchase is no longer pending.
        """
        payment_id = parse_id(PaymentId, payment_id, "payment")
        observed = amount_observed.amount if isinstance(amount_observed, Money) else Decimal(amount_observed)
        try:
            with self._store.atomic():
                payment = self._store.get_payment(payment_id, for_update=True)
                if payment is None:
                    raise PaymentNotFoundError(str(payment_id))

                if payment.status is PaymentStatus.COMPLETED:
                    if payment.external_reference == external_reference:
                        logger.info(
                            "payment_callback_replayed",
                            payment_id=str(payment_id),
                            external_reference=external_reference,
                        )
                        return payment
                    raise AlreadyFinalizedError(payment)
                if payment.status is PaymentStatus.FAILED:
                    raise AlreadyFinalizedError(payment)

                settled = self._store.get_payment_by_reference(external_reference)
                if settled is not None and settled.id != payment_id:
                    raise AlreadyFinalizedError(settled, message="External reference already settled")

                if observed != payment.amount.amount:
                    raise AmountMismatchError(expected=payment.amount.amount, observed=observed)

                purchase = self._store.get_purchase(payment.purchase_id, for_update=True)
                if purchase is None:
                    raise PurchaseNotFoundError(str(payment.purchase_id))
                if purchase.status is not PurchaseStatus.PENDING:
                    raise PurchaseNotPendingError(purchase.status.value)

                platform_share, organizer_share = split(
                    payment.amount, self._store.get_commission_rate(purchase.event_id)
                )
                payment = self._store.complete_payment(
                    payment_id,
                    external_reference=external_reference,
                    platform_share=platform_share,
                    organizer_share=organizer_share,
                    completed_at=timezone.now(),
                )
                self._store.set_purchase_status(purchase.id, PurchaseStatus.PAID)
        except (AmountMismatchError, PurchaseNotPendingError) as exc:
            self._flag(payment_id, external_reference, exc)
            raise

        logger.info(
            "payment_completed",
            payment_id=str(payment_id),
            purchase_id=str(payment.purchase_id),
            external_reference=external_reference,
            amount=str(payment.amount),
            platform_share=str(payment.platform_share),
            organizer_share=str(payment.organizer_share),
        )
        return payment

    def fail(self, payment_id: PaymentId | UUID | str, reason: str) -> Payment:
        """Mark a payment failed and cancel its purchase, restoring stock.

        Failing an already failed payment is a no-op.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
            AlreadyFinalizedError: If the payment has been completed.
        """
        payment_id = parse_id(PaymentId, payment_id, "payment")
        with self._store.atomic():
            payment = self._store.get_payment(payment_id, for_update=True)
            if payment is None:
                raise PaymentNotFoundError(str(payment_id))
            if payment.status is PaymentStatus.FAILED:
                return payment
            if payment.status is PaymentStatus.COMPLETED:
                raise AlreadyFinalizedError(payment)

            payment = self._store.fail_payment(payment_id, reason)
            self._purchases.cancel(payment.purchase_id)

        logger.info(
            "payment_failed",
            payment_id=str(payment_id),
            purchase_id=str(payment.purchase_id),
            reason=reason,
        )
        return payment

    def handle_callback(
        self,
        payment_id: PaymentId | UUID | str,
        external_reference: str,
        amount_observed: Decimal | Money,
        outcome: CallbackOutcome | str,
        reason: str = "",
    ) -> CallbackAck:
        """Apply a gateway notification. Delivery is at-least-once.

        Unknown and already finalized payments are acknowledged without any
        state change.

        Raises:
            AmountMismatchError: If the reported amount is not exactly the charge. Sub-cent
                and negative amounts are never rounded into a match.
        """
        outcome = CallbackOutcome(outcome)
        try:
            payment_id = parse_id(PaymentId, payment_id, "payment")
        except InvalidIdentifierError:
            logger.warning("payment_callback_invalid_reference", payment_id=str(payment_id))
            return CallbackAck(applied=False)

        current = self._store.get_payment(payment_id)
        if current is not None and current.status is not PaymentStatus.INITIATED:
            logger.info(
                "payment_callback_already_finalized",
                payment_id=str(payment_id),
                external_reference=external_reference,
                status=current.status.value,
                outcome=outcome.value,
            )
            return CallbackAck(applied=False, payment=current)

        try:
            if outcome is CallbackOutcome.COMPLETED:
                payment = self.confirm(payment_id, external_reference, amount_observed)
            else:
                payment = self.fail(payment_id, reason or "payment failed at gateway")
        except PaymentNotFoundError:
            logger.warning(
                "payment_callback_unknown_payment",
                payment_id=str(payment_id),
                external_reference=external_reference,
            )
            return CallbackAck(applied=False)
        except AlreadyFinalizedError as exc:
            logger.warning(
                "payment_callback_already_finalized",
                payment_id=str(payment_id),
                external_reference=external_reference,
                outcome=outcome.value,
            )
            return CallbackAck(applied=False, payment=exc.payment)
        return CallbackAck(applied=True, payment=payment)

    def _flag(self, payment_id: PaymentId, external_reference: str, exc: Exception) -> None:
        note = f"{exc} (reference {external_reference})"
        with self._store.atomic():
            self._store.flag_payment(payment_id, note)
        logger.warning(
            "payment_flagged_for_review",
            payment_id=str(payment_id),
            external_reference=external_reference,
            reason=str(exc),
        )
