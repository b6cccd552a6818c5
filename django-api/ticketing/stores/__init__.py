from ticketing.stores.django_store import DjangoTicketingStore
from ticketing.stores.interfaces import TicketingStore
from ticketing.stores.memory_store import InMemoryTicketingStore

__all__ = ["TicketingStore", "DjangoTicketingStore", "InMemoryTicketingStore"]
