import uuid

import django.db.models.deletion
from django.db import migrations, models

import ticketing.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="EventOrganizer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254, unique=True)),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4, default=ticketing.models.default_commission_rate, max_digits=5
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("commission_rate__gte", 0), ("commission_rate__lt", 1)),
                        name="organizer_commission_rate_range",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("venue", models.CharField(max_length=255)),
                ("event_date", models.DateField()),
                ("start_time", models.TimeField(blank=True, null=True)),
                ("end_time", models.TimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="ticketing.eventorganizer",
                    ),
                ),
            ],
            options={
                "ordering": ["event_date"],
                "indexes": [models.Index(fields=["status", "event_date"], name="event_status_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="TicketClass",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_quantity", models.PositiveIntegerField()),
                ("remaining_quantity", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ticket_classes",
                        to="ticketing.event",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "ticket classes",
                "indexes": [models.Index(fields=["event"], name="ticket_class_event_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("remaining_quantity__gte", 0),
                            ("remaining_quantity__lte", models.F("total_quantity")),
                        ),
                        name="ticket_class_remaining_within_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_price__gte", 0)),
                        name="ticket_class_unit_price_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("gross_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("buyer_name", models.CharField(max_length=255)),
                ("buyer_email", models.EmailField(max_length=254)),
                ("buyer_phone", models.CharField(max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="ticketing.event",
                    ),
                ),
                (
                    "ticket_class",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="ticketing.ticketclass",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="purchase_status_created_idx"),
                    models.Index(fields=["buyer_email"], name="purchase_buyer_email_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="purchase_quantity_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[("initiated", "Initiated"), ("completed", "Completed"), ("failed", "Failed")],
                        default="initiated",
                        max_length=20,
                    ),
                ),
                ("external_reference", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("platform_share", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("organizer_share", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("flagged_for_review", models.BooleanField(default=False)),
                ("review_note", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "purchase",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment",
                        to="ticketing.purchase",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["status"], name="payment_status_idx")],
            },
        ),
    ]
