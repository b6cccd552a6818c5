"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from ticketing.domain import BuyerInfo
from ticketing.domain.errors import DomainError
from ticketing.handlers.errors import error_response
from ticketing.handlers.serializers import (
    EventSerializer,
    PaymentCallbackSerializer,
    PaymentInitiateSerializer,
    PaymentSerializer,
    PurchaseCreateSerializer,
    PurchaseListQuerySerializer,
    PurchaseLookupSerializer,
    PurchaseSerializer,
    SweeperStartSerializer,
    SweeperStatusSerializer,
    SweepResultSerializer,
)
from ticketing.services import EventAdministration, PaymentReconciliation, PurchaseService, get_sweeper
from ticketing.stores.django_store import DjangoTicketingStore


def purchase_service() -> PurchaseService:
    return PurchaseService(DjangoTicketingStore())


def payment_reconciliation() -> PaymentReconciliation:
    return PaymentReconciliation(DjangoTicketingStore())


class PurchasePagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 100


class PurchaseListCreateView(APIView):
    """Handler for GET (admin) and POST /api/purchases"""

    def get_permissions(self):
        if self.request.method == "GET":
            return [IsAdminUser()]
        return [AllowAny()]

    def get(self, request: Request) -> Response:
        query = PurchaseListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            purchases = purchase_service().list_purchases(
                status=query.validated_data.get("status"),
                event_id=query.validated_data.get("event_id"),
            )
        except DomainError as exc:
            return error_response(exc)
        paginator = PurchasePagination()
        page = paginator.paginate_queryset(purchases, request, view=self)
        return paginator.get_paginated_response(PurchaseSerializer(page, many=True).data)

    def post(self, request: Request) -> Response:
        serializer = PurchaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        buyer = BuyerInfo(name=data["buyer_name"], email=data["buyer_email"], phone=data["buyer_phone"])
        try:
            purchase = purchase_service().create(
                data["event_id"], data["ticket_class_id"], data["quantity"], buyer
            )
        except DomainError as exc:
            return error_response(exc)
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)


class PurchaseLookupView(APIView):
    """Handler for GET /api/purchases/by-email"""

    def get(self, request: Request) -> Response:
        query = PurchaseLookupSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        purchases = purchase_service().list_purchases(
            status=query.validated_data.get("status"),
            buyer_email=query.validated_data["email"],
        )
        return Response({"count": len(purchases), "results": PurchaseSerializer(purchases, many=True).data})


class PurchaseDetailView(APIView):
    """Handler for GET and DELETE (admin) /api/purchases/{purchase_id}"""

    def get_permissions(self):
        if self.request.method == "DELETE":
            return [IsAdminUser()]
        return [AllowAny()]

    def get(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = purchase_service().get(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(PurchaseSerializer(purchase).data)

    def delete(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase_service().delete(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PurchaseCancelView(APIView):
    """Handler for POST /api/purchases/{purchase_id}/cancel"""

    def post(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = purchase_service().cancel(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(PurchaseSerializer(purchase).data)


class PurchaseRefundView(APIView):
    """Handler for POST /api/purchases/{purchase_id}/refund"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = purchase_service().refund(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(PurchaseSerializer(purchase).data)


class PaymentInitiateView(APIView):
    """Handler for POST /api/payments"""

    def post(self, request: Request) -> Response:
        serializer = PaymentInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = payment_reconciliation().initiate(serializer.validated_data["purchase_id"])
        except DomainError as exc:
            return error_response(exc)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentDetailView(APIView):
    """Handler for GET /api/payments/{payment_id}"""

    def get(self, request: Request, payment_id: str) -> Response:
        try:
            payment = payment_reconciliation().get(payment_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(PaymentSerializer(payment).data)


class PaymentCallbackView(APIView):
    """Handler for POST /api/payments/callback

    Always acknowledges unknown or already finalized payments so the
    gateway stops redelivering.
    """

    authentication_classes: list = []

    def post(self, request: Request) -> Response:
        serializer = PaymentCallbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            ack = payment_reconciliation().handle_callback(
                data["merchant_reference"],
                external_reference=data["tracking_id"],
                amount_observed=data["amount"],
                outcome=data["outcome"],
                reason=data["reason"],
            )
        except DomainError as exc:
            return error_response(exc)
        body = {"acknowledged": True, "applied": ack.applied}
        if ack.payment is not None:
            body["payment"] = PaymentSerializer(ack.payment).data
        return Response(body)


class EventTransitionView(APIView):
    """Handler for POST /api/events/{event_id}/{approve|reject|cancel}"""

    permission_classes = [IsAdminUser]
    transition = ""

    def post(self, request: Request, event_id: str) -> Response:
        administration = EventAdministration(DjangoTicketingStore())
        try:
            event = getattr(administration, self.transition)(event_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(EventSerializer(event).data)


class SweeperStatusView(APIView):
    """Handler for GET /api/sweeper"""

    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        return Response(SweeperStatusSerializer(get_sweeper().status()).data)


class SweeperTriggerView(APIView):
    """Handler for POST /api/sweeper/trigger"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        try:
            result = get_sweeper().trigger()
        except DomainError as exc:
            return error_response(exc)
        return Response(SweepResultSerializer(result).data)


class SweeperStartView(APIView):
    """Handler for POST /api/sweeper/start"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        serializer = SweeperStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sweeper = get_sweeper()
        started = sweeper.start(serializer.validated_data.get("interval_minutes"))
        body = {"started": started, **SweeperStatusSerializer(sweeper.status()).data}
        return Response(body)


class SweeperStopView(APIView):
    """Handler for POST /api/sweeper/stop"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        sweeper = get_sweeper()
        stopped = sweeper.stop()
        body = {"stopped": stopped, **SweeperStatusSerializer(sweeper.status()).data}
        return Response(body)
