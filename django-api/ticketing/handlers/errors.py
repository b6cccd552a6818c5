"""Mapping of domain errors to HTTP responses."""

import structlog
from rest_framework import status
from rest_framework.response import Response

from ticketing.domain.errors import DomainError, ErrorCode

logger = structlog.get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TICKET_CLASS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PURCHASE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_QUANTITY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ErrorCode.EVENT_NOT_PURCHASABLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EVENT_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.TICKET_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ALREADY_PAID: status.HTTP_409_CONFLICT,
    ErrorCode.PURCHASE_NOT_PENDING: status.HTTP_409_CONFLICT,
    ErrorCode.PURCHASE_NOT_PAID: status.HTTP_409_CONFLICT,
    ErrorCode.PAYMENT_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_FINALIZED: status.HTTP_409_CONFLICT,
    ErrorCode.AMOUNT_MISMATCH: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.SWEEP_IN_PROGRESS: status.HTTP_409_CONFLICT,
    ErrorCode.CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.LOGIC_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(exc: DomainError) -> Response:
    """Render a domain error as ``{"error": code, "message": message}``.

    Internal errors are logged and answered with a generic message.
    """
    http_status = STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)
    message = exc.message
    if http_status >= 500:
        logger.error("internal_domain_error", code=exc.code.value, detail=exc.message)
        message = "Internal error"
    return Response({"error": exc.code.value, "message": message}, status=http_status)
