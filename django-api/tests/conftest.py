"""Pytest configuration and shared fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.utils import timezone
from rest_framework.test import APIClient

from ticketing.domain import BuyerInfo
from ticketing.models import Event, EventOrganizer, TicketClass
from ticketing.services import sweeper as sweeper_module
from ticketing.stores.memory_store import InMemoryTicketingStore


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def admin_client(db) -> APIClient:
    admin = User.objects.create_superuser(username="admin", email="admin@example.com", password="pass12345")
    client = APIClient()
    client.force_authenticate(user=admin)
    return client


@pytest.fixture(autouse=True)
def reset_sweeper():
    """Drop the process-wide sweeper so each test builds its own."""
    yield
    sweeper_module._instance = None


@pytest.fixture
def store() -> InMemoryTicketingStore:
    return InMemoryTicketingStore()


@pytest.fixture
def buyer() -> BuyerInfo:
    return BuyerInfo(name="Ada Lovelace", email="ada@example.com", phone="+255700000001")


@pytest.fixture
def organizer(db) -> EventOrganizer:
    return EventOrganizer.objects.create(
        name="Acme Events", email="acme@example.com", commission_rate=Decimal("0.10")
    )


@pytest.fixture
def approved_event(organizer: EventOrganizer) -> Event:
    return Event.objects.create(
        organizer=organizer,
        name="Jazz Night",
        venue="Blue Hall",
        event_date=timezone.localdate() + timedelta(days=7),
        status=Event.Status.APPROVED,
    )


@pytest.fixture
def ticket_class(approved_event: Event) -> TicketClass:
    return TicketClass.objects.create(
        event=approved_event,
        name="Standard",
        unit_price=Decimal("500.00"),
        total_quantity=10,
        remaining_quantity=10,
    )
