from django.urls import path

from ticketing.handlers import (
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

urlpatterns = [
    path("purchases", PurchaseListCreateView.as_view(), name="purchase-list"),
    path("purchases/by-email", PurchaseLookupView.as_view(), name="purchase-by-email"),
    path("purchases/<str:purchase_id>", PurchaseDetailView.as_view(), name="purchase-detail"),
    path("purchases/<str:purchase_id>/cancel", PurchaseCancelView.as_view(), name="purchase-cancel"),
    path("purchases/<str:purchase_id>/refund", PurchaseRefundView.as_view(), name="purchase-refund"),
    path("payments", PaymentInitiateView.as_view(), name="payment-initiate"),
    path("payments/callback", PaymentCallbackView.as_view(), name="payment-callback"),
    path("payments/<str:payment_id>", PaymentDetailView.as_view(), name="payment-detail"),
    path(
        "events/<str:event_id>/approve",
        EventTransitionView.as_view(transition="approve"),
        name="event-approve",
    ),
    path(
        "events/<str:event_id>/reject",
        EventTransitionView.as_view(transition="reject"),
        name="event-reject",
    ),
    path(
        "events/<str:event_id>/cancel",
        EventTransitionView.as_view(transition="cancel"),
        name="event-cancel",
    ),
    path("sweeper", SweeperStatusView.as_view(), name="sweeper-status"),
    path("sweeper/trigger", SweeperTriggerView.as_view(), name="sweeper-trigger"),
    path("sweeper/start", SweeperStartView.as_view(), name="sweeper-start"),
    path("sweeper/stop", SweeperStopView.as_view(), name="sweeper-stop"),
]
