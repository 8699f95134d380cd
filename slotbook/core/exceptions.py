# slotbook/core/exceptions.py
"""
Booking engine errors.
Raised by the services and translated to HTTP responses in slotbook.api.errors.
"""
from contextlib import contextmanager

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


class BookingError(Exception):
    """Base exception for all booking engine errors."""
    code = "booking_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__


class NotFound(BookingError):
    """Business, professional, service or appointment does not exist."""
    code = "not_found"


class Unauthorized(BookingError):
    """Capability token does not match the business's API token."""
    code = "unauthorized"


class SlotNoLongerAvailable(BookingError):
    """The requested interval is not free at commit time."""
    code = "slot_no_longer_available"

    def __init__(self, message: str = "", reason=None):
        super().__init__(message)
        self.reason = reason


class InvalidStatusTransition(BookingError):
    """The appointment cannot move to the requested status."""
    code = "invalid_status_transition"


class InvalidBookingRequest(BookingError):
    """Malformed booking input (time, duration)."""
    code = "invalid_booking_request"


class ConfigurationError(BookingError):
    """Stored business configuration cannot be used."""
    code = "configuration_error"


class StorageUnavailable(BookingError):
    """Transient storage failure; no partial writes happened, safe to retry."""
    code = "storage_unavailable"


TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


@contextmanager
def storage_errors():
    """Re-raise transient SQLAlchemy failures as StorageUnavailable."""
    try:
        yield
    except TRANSIENT_DB_ERRORS as e:
        raise StorageUnavailable(f"Storage unavailable: {e.__class__.__name__}") from e
