"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


def default_commission_rate() -> Decimal:
    return Decimal(str(settings.TICKETING_DEFAULT_COMMISSION_RATE))


class EventOrganizer(models.Model):
    """Persistence model for event organizers."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4, default=default_commission_rate)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(commission_rate__gte=0) & models.Q(commission_rate__lt=1),
                name="organizer_commission_rate_range",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class Event(models.Model):
    """Persistence model for events."""

    class Status(models.TextChoices):
        PENDING = "pending"
        APPROVED = "approved"
        REJECTED = "rejected"
        COMPLETED = "completed"
        CANCELLED = "cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(EventOrganizer, on_delete=models.CASCADE, related_name="events")
    name = models.CharField(max_length=255)
    venue = models.CharField(max_length=255)
    event_date = models.DateField()
    start_time = models.TimeField(blank=True, null=True)
    end_time = models.TimeField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["event_date"]
        indexes = [
            models.Index(fields=["status", "event_date"], name="event_status_date_idx"),
        ]

    def __str__(self) -> str:
        return self.name


class TicketClass(models.Model):
    """Persistence model for priced ticket categories with finite stock."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_classes")
    name = models.CharField(max_length=100)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_quantity = models.PositiveIntegerField()
    remaining_quantity = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "ticket classes"
        indexes = [
            models.Index(fields=["event"], name="ticket_class_event_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(remaining_quantity__gte=0)
                & models.Q(remaining_quantity__lte=models.F("total_quantity")),
                name="ticket_class_remaining_within_total",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name="ticket_class_unit_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.unit_price}"


class Purchase(models.Model):
    """Persistence model for buyer orders."""

    class Status(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"
        CANCELLED = "cancelled"
        REFUNDED = "refunded"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="purchases")
    ticket_class = models.ForeignKey(TicketClass, on_delete=models.PROTECT, related_name="purchases")
    quantity = models.PositiveIntegerField()
    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    buyer_name = models.CharField(max_length=255)
    buyer_email = models.EmailField()
    buyer_phone = models.CharField(max_length=32)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="purchase_status_created_idx"),
            models.Index(fields=["buyer_email"], name="purchase_buyer_email_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="purchase_quantity_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.buyer_email} x{self.quantity} ({self.status})"


class Payment(models.Model):
    """Persistence model for the payment attached to a purchase."""

    class Status(models.TextChoices):
        INITIATED = "initiated"
        COMPLETED = "completed"
        FAILED = "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase = models.OneToOneField(Purchase, on_delete=models.CASCADE, related_name="payment")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.INITIATED)
    external_reference = models.CharField(max_length=255, unique=True, blank=True, null=True)
    platform_share = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    organizer_share = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    failure_reason = models.TextField(blank=True, default="")
    flagged_for_review = models.BooleanField(default=False)
    review_note = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="payment_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.amount} ({self.status})"


class SweepRun(models.Model):
    """Persistence model for one run of the event lifecycle sweep."""

    class Trigger(models.TextChoices):
        SCHEDULED = "scheduled"
        MANUAL = "manual"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    trigger = models.CharField(max_length=20, choices=Trigger.choices)
    ran_at = models.DateTimeField()
    completed_count = models.PositiveIntegerField(default=0)
    # [{"id", "name", "event_date", "end_time"}] for every event the run completed.
    completed_events = models.JSONField(default=list, blank=True)
    error = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-ran_at"]
        indexes = [
            models.Index(fields=["ran_at"], name="sweep_run_ran_at_idx"),
        ]

    def __str__(self) -> str:
        outcome = f"failed: {self.error}" if self.error else f"{self.completed_count} completed"
        return f"{self.trigger} sweep at {self.ran_at:%Y-%m-%d %H:%M} ({outcome})"
