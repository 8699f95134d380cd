# slotbook/api/errors.py
"""Translate booking engine errors into HTTP responses"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from slotbook.core.exceptions import (
    BookingError,
    ConfigurationError,
    InvalidBookingRequest,
    InvalidStatusTransition,
    NotFound,
    SlotNoLongerAvailable,
    StorageUnavailable,
    Unauthorized,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    SlotNoLongerAvailable: status.HTTP_409_CONFLICT,
    InvalidStatusTransition: status.HTTP_409_CONFLICT,
    InvalidBookingRequest: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}

RETRY_AFTER_SECONDS = 1


def get_status_code(exc: BookingError) -> int:
    for exc_type, code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = get_status_code(exc)
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    if status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path} [{correlation_id}]: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path} [{correlation_id}]: {exc.message}")

    content = {"detail": exc.message, "error": exc.code}
    headers = {}

    if isinstance(exc, SlotNoLongerAvailable) and exc.reason is not None:
        content["reason"] = exc.reason.value
    if isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, StorageUnavailable):
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    return JSONResponse(status_code=status_code, content=content, headers=headers or None)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
