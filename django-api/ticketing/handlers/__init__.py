from ticketing.handlers.views import (
    EventTransitionView,
    PaymentCallbackView,
    PaymentDetailView,
    PaymentInitiateView,
    PurchaseCancelView,
    PurchaseDetailView,
    PurchaseListCreateView,
    PurchaseLookupView,
    PurchaseRefundView,
    SweeperStartView,
    SweeperStatusView,
    SweeperStopView,
    SweeperTriggerView,
)

__all__ = [
    "PurchaseListCreateView",
    "PurchaseLookupView",
    "PurchaseDetailView",
    "PurchaseCancelView",
    "PurchaseRefundView",
    "PaymentInitiateView",
    "PaymentDetailView",
    "PaymentCallbackView",
    "EventTransitionView",
    "SweeperStatusView",
    "SweeperTriggerView",
    "SweeperStartView",
    "SweeperStopView",
]
