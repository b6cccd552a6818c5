"""Serializers for request validation and for rendering domain models."""

from rest_framework import serializers

from ticketing.domain import PurchaseStatus
from ticketing.services.payments import CallbackOutcome


class PurchaseCreateSerializer(serializers.Serializer):
    """Input for POST /api/purchases"""

    event_id = serializers.UUIDField()
    ticket_class_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    buyer_name = serializers.CharField(max_length=255)
    buyer_email = serializers.EmailField()
    buyer_phone = serializers.CharField(max_length=32)


class PaymentInitiateSerializer(serializers.Serializer):
    """Input for POST /api/payments"""

    purchase_id = serializers.UUIDField()


class PaymentCallbackSerializer(serializers.Serializer):
    """Gateway notification. Only the fields reconciliation needs."""

    merchant_reference = serializers.CharField(max_length=64)
    tracking_id = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(max_digits=20, decimal_places=None)
    outcome = serializers.ChoiceField(choices=[outcome.value for outcome in CallbackOutcome])
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PurchaseListQuerySerializer(serializers.Serializer):
    """Query for GET /api/purchases"""

    status = serializers.ChoiceField(choices=[status.value for status in PurchaseStatus], required=False)
    event_id = serializers.UUIDField(required=False)


class PurchaseLookupSerializer(serializers.Serializer):
    """Query for GET /api/purchases/by-email"""

    email = serializers.EmailField()
    status = serializers.ChoiceField(choices=[status.value for status in PurchaseStatus], required=False)


class SweeperStartSerializer(serializers.Serializer):
    interval_minutes = serializers.IntegerField(required=False, min_value=1)


class EventSerializer(serializers.Serializer):
    """Serializer for Event domain model."""

    id = serializers.CharField(source="id.value")
    name = serializers.CharField()
    venue = serializers.CharField()
    status = serializers.CharField(source="status.value")
    event_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()


class PurchaseSerializer(serializers.Serializer):
    """Serializer for Purchase domain model."""

    id = serializers.CharField(source="id.value")
    event_id = serializers.CharField(source="event_id.value")
    ticket_class_id = serializers.CharField(source="ticket_class_id.value")
    quantity = serializers.IntegerField()
    gross_amount = serializers.CharField()
    buyer_name = serializers.CharField(source="buyer.name")
    buyer_email = serializers.CharField(source="buyer.email")
    status = serializers.CharField(source="status.value")
    created_at = serializers.DateTimeField()


class PaymentSerializer(serializers.Serializer):
    """Serializer for Payment domain model."""

    id = serializers.CharField(source="id.value")
    purchase_id = serializers.CharField(source="purchase_id.value")
    amount = serializers.CharField()
    status = serializers.CharField(source="status.value")
    external_reference = serializers.CharField()
    platform_share = serializers.CharField()
    organizer_share = serializers.CharField()
    completed_at = serializers.DateTimeField()


class CompletedEventSerializer(serializers.Serializer):
    id = serializers.CharField(source="id.value")
    name = serializers.CharField()
    event_date = serializers.DateField()
    end_time = serializers.TimeField()


class SweepResultSerializer(serializers.Serializer):
    ran_at = serializers.DateTimeField()
    count = serializers.IntegerField()
    events = CompletedEventSerializer(many=True)


class SweeperStatusSerializer(serializers.Serializer):
    running = serializers.BooleanField()
    interval_minutes = serializers.FloatField()
    last_run_at = serializers.DateTimeField()
    last_result = SweepResultSerializer()
    last_error = serializers.CharField()
