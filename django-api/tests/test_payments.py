"""Tests for payment reconciliation."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from ticketing.domain import Money, PaymentStatus, PurchaseStatus
from ticketing.domain.errors import (
    AlreadyFinalizedError,
    AmountMismatchError,
    PaymentAlreadyExistsError,
    PaymentNotFoundError,
    PurchaseNotPendingError,
)
from ticketing.models import Payment as PaymentRow
from ticketing.models import Purchase as PurchaseRow
from ticketing.services import CallbackOutcome, PaymentReconciliation, PurchaseService
from ticketing.stores import DjangoTicketingStore, InMemoryTicketingStore


@pytest.fixture
def payments(store) -> PaymentReconciliation:
    return PaymentReconciliation(store)


@pytest.fixture
def pending_purchase(store, buyer):
    """Two tickets at 500.00 from an organizer on a 10% commission."""
    event = store.add_event(event_date=timezone.localdate() + timedelta(days=5), commission_rate="0.10")
    ticket_class = store.add_ticket_class(event.id, unit_price="500.00", total_quantity=10)
    return PurchaseService(store).create(event.id, ticket_class.id, 2, buyer)


def _remaining(store, purchase) -> int:
    return store.get_ticket_class(purchase.ticket_class_id).remaining_quantity.value


class TestInitiate:
    """Tests for PaymentReconciliation.initiate."""

    def test_initiate_charges_frozen_total(self, payments, pending_purchase):
        """The payment charges the purchase's frozen total."""
        payment = payments.initiate(pending_purchase.id)

        assert payment.status is PaymentStatus.INITIATED
        assert payment.amount == Money(Decimal("1000.00"))
        assert payment.purchase_id == pending_purchase.id

    def test_initiate_twice_returns_same_payment(self, payments, pending_purchase):
        """A second initiate returns the open payment."""
        first = payments.initiate(pending_purchase.id)
        assert payments.initiate(pending_purchase.id) == first

    def test_initiate_after_payment_completed(self, payments, pending_purchase):
        """A paid purchase cannot be charged again."""
        payment = payments.initiate(pending_purchase.id)
        payments.confirm(payment.id, "TRK-1", Decimal("1000.00"))

        with pytest.raises(PurchaseNotPendingError):
            payments.initiate(pending_purchase.id)

    def test_initiate_after_payment_failed_is_rejected(self, store, pending_purchase):
        """A purchase whose payment failed cannot open another."""
        payments = PaymentReconciliation(store)
        payment = payments.initiate(pending_purchase.id)
        payments.fail(payment.id, "card declined")
        # Purchase put back to pending by an operator.
        store.set_purchase_status(pending_purchase.id, PurchaseStatus.PENDING)

        with pytest.raises(PaymentAlreadyExistsError):
            payments.initiate(pending_purchase.id)


class TestConfirm:
    """Tests for PaymentReconciliation.confirm."""

    def test_confirm_splits_and_marks_paid(self, store, payments, pending_purchase):
        """Confirming settles the shares and marks the purchase paid."""
        payment = payments.initiate(pending_purchase.id)

        completed = payments.confirm(payment.id, "TRK-1000", Decimal("1000.00"))

        assert completed.status is PaymentStatus.COMPLETED
        assert completed.external_reference == "TRK-1000"
        assert completed.platform_share == Money(Decimal("100.00"))
        assert completed.organizer_share == Money(Decimal("900.00"))
        assert completed.completed_at is not None
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PAID
        assert _remaining(store, pending_purchase) == 8

    def test_replayed_confirmation_changes_nothing(self, store, payments, pending_purchase):
        """Replaying the same reference returns the settled payment."""
        payment = payments.initiate(pending_purchase.id)
        first = payments.confirm(payment.id, "TRK-1000", Decimal("1000.00"))

        replay = payments.confirm(payment.id, "TRK-1000", Decimal("1000.00"))

        assert replay == first
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PAID

    def test_confirm_under_different_reference_is_finalized(self, payments, pending_purchase):
        """A settled payment refuses a second reference."""
        payment = payments.initiate(pending_purchase.id)
        payments.confirm(payment.id, "TRK-1000", Decimal("1000.00"))

        with pytest.raises(AlreadyFinalizedError):
            payments.confirm(payment.id, "TRK-2000", Decimal("1000.00"))

    def test_amount_mismatch_flags_and_leaves_state(self, store, payments, pending_purchase):
        """A wrong amount flags the payment and changes nothing else."""
        payment = payments.initiate(pending_purchase.id)

        with pytest.raises(AmountMismatchError) as exc_info:
            payments.confirm(payment.id, "TRK-1000", Decimal("900.00"))

        assert exc_info.value.expected == Decimal("1000.00")
        assert exc_info.value.observed == Decimal("900.00")
        current = store.get_payment(payment.id)
        assert current.status is PaymentStatus.INITIATED
        assert current.flagged_for_review
        assert "TRK-1000" in current.review_note
        assert current.platform_share is None
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PENDING

    @pytest.mark.parametrize("observed", [Decimal("999.995"), Decimal("1000.004"), Decimal("1000.0001")])
    def test_sub_cent_amount_is_not_rounded_into_a_match(self, store, payments, pending_purchase, observed):
        """An amount off by less than a cent is still a mismatch."""
        payment = payments.initiate(pending_purchase.id)

        with pytest.raises(AmountMismatchError) as exc_info:
            payments.confirm(payment.id, "TRK-1000", observed)

        assert exc_info.value.observed == observed
        current = store.get_payment(payment.id)
        assert current.status is PaymentStatus.INITIATED
        assert current.flagged_for_review
        assert current.platform_share is None
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PENDING

    def test_negative_amount_is_a_mismatch(self, store, payments, pending_purchase):
        """A negative reported amount is flagged instead of failing validation."""
        payment = payments.initiate(pending_purchase.id)

        with pytest.raises(AmountMismatchError) as exc_info:
            payments.confirm(payment.id, "TRK-1000", Decimal("-1000.00"))

        assert exc_info.value.observed == Decimal("-1000.00")
        assert store.get_payment(payment.id).flagged_for_review
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PENDING

    def test_amount_without_cents_matches(self, payments, pending_purchase):
        """Equal values compare equal whatever their exponent."""
        payment = payments.initiate(pending_purchase.id)

        completed = payments.confirm(payment.id, "TRK-1000", Decimal("1000"))

        assert completed.status is PaymentStatus.COMPLETED

    def test_confirm_after_purchase_cancelled(self, store, payments, pending_purchase):
        """Cancelling failed the payment, so a late success is refused."""
        payment = payments.initiate(pending_purchase.id)
        PurchaseService(store).cancel(pending_purchase.id)

        with pytest.raises(AlreadyFinalizedError):
            payments.confirm(payment.id, "TRK-1000", Decimal("1000.00"))
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.CANCELLED

    def test_reference_settled_on_another_payment(self, store, payments, pending_purchase, buyer):
        """A reference already settled elsewhere is refused."""
        other_purchase = PurchaseService(store).create(
            pending_purchase.event_id, pending_purchase.ticket_class_id, 1, buyer
        )
        first = payments.initiate(pending_purchase.id)
        second = payments.initiate(other_purchase.id)
        payments.confirm(first.id, "TRK-SHARED", Decimal("1000.00"))

        with pytest.raises(AlreadyFinalizedError):
            payments.confirm(second.id, "TRK-SHARED", Decimal("500.00"))
        assert store.get_payment(second.id).status is PaymentStatus.INITIATED

    def test_unknown_payment(self, payments):
        """Confirming an unknown payment raises PaymentNotFoundError."""
        with pytest.raises(PaymentNotFoundError):
            payments.confirm(uuid.uuid4(), "TRK-1", Decimal("1.00"))

    def test_failed_status_write_rolls_back_settlement(self, buyer):
        """A failed purchase write rolls the settlement back."""
        class BrokenStore(InMemoryTicketingStore):
            def set_purchase_status(self, purchase_id, status):
                if status is PurchaseStatus.PAID:
                    raise RuntimeError("write failed")
                return super().set_purchase_status(purchase_id, status)

        store = BrokenStore()
        event = store.add_event(event_date=timezone.localdate() + timedelta(days=1))
        ticket_class = store.add_ticket_class(event.id, unit_price="20.00", total_quantity=2)
        purchase = PurchaseService(store).create(event.id, ticket_class.id, 1, buyer)
        payments = PaymentReconciliation(store)
        payment = payments.initiate(purchase.id)

        with pytest.raises(RuntimeError):
            payments.confirm(payment.id, "TRK-1", Decimal("20.00"))

        current = store.get_payment(payment.id)
        assert current.status is PaymentStatus.INITIATED
        assert current.external_reference is None


class TestFail:
    """Tests for PaymentReconciliation.fail."""

    def test_fail_cancels_purchase_and_restores_stock(self, store, payments, pending_purchase):
        """Failing a payment cancels its purchase and restores stock."""
        payment = payments.initiate(pending_purchase.id)

        failed = payments.fail(payment.id, "card declined")

        assert failed.status is PaymentStatus.FAILED
        assert failed.failure_reason == "card declined"
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.CANCELLED
        assert _remaining(store, pending_purchase) == 10

    def test_fail_twice_is_noop(self, store, payments, pending_purchase):
        """Failing twice releases stock once."""
        payment = payments.initiate(pending_purchase.id)
        payments.fail(payment.id, "card declined")
        payments.fail(payment.id, "card declined")

        assert _remaining(store, pending_purchase) == 10

    def test_fail_completed_payment_is_rejected(self, store, payments, pending_purchase):
        """A completed payment cannot be failed."""
        payment = payments.initiate(pending_purchase.id)
        payments.confirm(payment.id, "TRK-1", Decimal("1000.00"))

        with pytest.raises(AlreadyFinalizedError):
            payments.fail(payment.id, "late failure")
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PAID


class TestHandleCallback:
    """Gateway callbacks are always acknowledged."""

    def test_completed_callback_applies(self, payments, pending_purchase):
        """A completed callback settles the payment."""
        payment = payments.initiate(pending_purchase.id)

        ack = payments.handle_callback(str(payment.id), "TRK-1", Decimal("1000.00"), "completed")

        assert ack.applied
        assert ack.payment.status is PaymentStatus.COMPLETED

    def test_failed_callback_applies(self, store, payments, pending_purchase):
        """A failed callback fails the payment and restores stock."""
        payment = payments.initiate(pending_purchase.id)

        ack = payments.handle_callback(
            payment.id, "TRK-1", Decimal("1000.00"), CallbackOutcome.FAILED, reason="insufficient funds"
        )

        assert ack.applied
        assert ack.payment.failure_reason == "insufficient funds"
        assert _remaining(store, pending_purchase) == 10

    def test_redelivered_callback_is_acknowledged_without_change(self, payments, pending_purchase):
        """Redelivery is acknowledged but not applied."""
        payment = payments.initiate(pending_purchase.id)
        payments.handle_callback(payment.id, "TRK-1", Decimal("1000.00"), "completed")

        ack = payments.handle_callback(payment.id, "TRK-1", Decimal("1000.00"), "completed")

        assert not ack.applied
        assert ack.payment.status is PaymentStatus.COMPLETED

    def test_failure_after_completion_is_ignored(self, store, payments, pending_purchase):
        """A failure notice after settlement changes nothing."""
        payment = payments.initiate(pending_purchase.id)
        payments.handle_callback(payment.id, "TRK-1", Decimal("1000.00"), "completed")

        ack = payments.handle_callback(payment.id, "TRK-1", Decimal("1000.00"), "failed")

        assert not ack.applied
        assert store.get_purchase(pending_purchase.id).status is PurchaseStatus.PAID

    def test_unknown_payment_is_acknowledged(self, payments):
        """Unknown payments are acknowledged."""
        ack = payments.handle_callback(uuid.uuid4(), "TRK-1", Decimal("1.00"), "completed")
        assert not ack.applied
        assert ack.payment is None

    def test_malformed_reference_is_acknowledged(self, payments):
        """A malformed merchant reference is acknowledged."""
        ack = payments.handle_callback("ORDER-42", "TRK-1", Decimal("1.00"), "completed")
        assert not ack.applied

    def test_amount_mismatch_propagates(self, payments, pending_purchase):
        """A mismatch is raised so the gateway retries."""
        payment = payments.initiate(pending_purchase.id)
        with pytest.raises(AmountMismatchError):
            payments.handle_callback(payment.id, "TRK-1", Decimal("999.99"), "completed")


@pytest.mark.django_db
class TestPaymentsWithDatabase:
    """Settlement against the ORM store."""

    def test_full_settlement(self, ticket_class, buyer):
        """Settlement writes shares and statuses to the database."""
        store = DjangoTicketingStore()
        purchase = PurchaseService(store).create(ticket_class.event_id, ticket_class.id, 2, buyer)
        payments = PaymentReconciliation(store)
        payment = payments.initiate(purchase.id)

        payments.confirm(payment.id, "TRK-DB-1", Decimal("1000.00"))

        row = PaymentRow.objects.get(pk=payment.id.value)
        assert row.status == PaymentRow.Status.COMPLETED
        assert row.platform_share == Decimal("100.00")
        assert row.organizer_share == Decimal("900.00")
        assert PurchaseRow.objects.get(pk=purchase.id.value).status == PurchaseRow.Status.PAID

    def test_mismatch_is_flagged_in_database(self, ticket_class, buyer):
        """The review flag survives the rolled-back confirmation."""
        store = DjangoTicketingStore()
        purchase = PurchaseService(store).create(ticket_class.event_id, ticket_class.id, 2, buyer)
        payments = PaymentReconciliation(store)
        payment = payments.initiate(purchase.id)

        with pytest.raises(AmountMismatchError):
            payments.confirm(payment.id, "TRK-DB-2", Decimal("900.00"))

        row = PaymentRow.objects.get(pk=payment.id.value)
        assert row.status == PaymentRow.Status.INITIATED
        assert row.flagged_for_review
        assert row.external_reference is None
        assert PurchaseRow.objects.get(pk=purchase.id.value).status == PurchaseRow.Status.PENDING

    def test_organizer_rate_drives_split(self, ticket_class, organizer, buyer):
        """The organizer's own rate decides the split."""
        organizer.commission_rate = Decimal("0.15")
        organizer.save()
        store = DjangoTicketingStore()
        purchase = PurchaseService(store).create(ticket_class.event_id, ticket_class.id, 1, buyer)
        payments = PaymentReconciliation(store)
        payment = payments.initiate(purchase.id)

        completed = payments.confirm(payment.id, "TRK-DB-3", Decimal("500.00"))

        assert completed.platform_share == Money(Decimal("75.00"))
        assert completed.organizer_share == Money(Decimal("425.00"))
