"""Administrative event transitions (approval, rejection, cancellation)."""

from uuid import UUID

import structlog

from ticketing.domain import Event, EventId, EventStatus
from ticketing.domain.errors import EventNotFoundError, InvalidEventTransitionError
from ticketing.domain.models import ADMIN_EVENT_TRANSITIONS
from ticketing.services.identifiers import parse_id
from ticketing.stores.interfaces import TicketingStore

logger = structlog.get_logger(__name__)


class EventAdministration:
    """Service for admin-driven event status changes.

    Completion is not offered here; only the sweeper completes events.
    """

    def __init__(self, store: TicketingStore) -> None:
        self._store = store

    def approve(self, event_id: EventId | UUID | str) -> Event:
        return self._transition(event_id, EventStatus.APPROVED)

    def reject(self, event_id: EventId | UUID | str) -> Event:
        return self._transition(event_id, EventStatus.REJECTED)

    def cancel(self, event_id: EventId | UUID | str) -> Event:
        return self._transition(event_id, EventStatus.CANCELLED)

    def _transition(self, event_id: EventId | UUID | str, target: EventStatus) -> Event:
        """Apply one administrative transition with a conditional update.

        Raises:
            InvalidIdentifierError: If the ID is malformed.
            EventNotFoundError: If the event does not exist.
            InvalidEventTransitionError: If ``target`` is not reachable from the current status.
        """
        event_id = parse_id(EventId, event_id, "event")
        with self._store.atomic():
            event = self._store.get_event(event_id)
            if event is None:
                raise EventNotFoundError(str(event_id))
            if target not in ADMIN_EVENT_TRANSITIONS.get(event.status, frozenset()):
                raise InvalidEventTransitionError(event.status.value, target.value)
            updated = self._store.transition_event(event_id, event.status, target)
            if updated is None:
                # Status moved under us, e.g. the sweeper completed the event.
                current = self._store.get_event(event_id)
                raise InvalidEventTransitionError(
                    current.status.value if current else event.status.value, target.value
                )
        logger.info(
            "event_status_changed",
            event_id=str(event_id),
            previous=event.status.value,
            status=target.value,
        )
        return updated
