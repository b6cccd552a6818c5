from ticketing.services.events import EventAdministration
from ticketing.services.inventory import InventoryLedger
from ticketing.services.payments import CallbackAck, CallbackOutcome, PaymentReconciliation
from ticketing.services.purchases import PurchaseService
from ticketing.services.sweeper import EventLifecycleSweeper, ScheduledSweeper, get_sweeper

__all__ = [
    "InventoryLedger",
    "PurchaseService",
    "PaymentReconciliation",
    "CallbackAck",
    "CallbackOutcome",
    "EventAdministration",
    "EventLifecycleSweeper",
    "ScheduledSweeper",
    "get_sweeper",
]
