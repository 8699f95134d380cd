# slotbook/schemas/__init__.py
from .booking import (
    BookingSettings,
    BufferOverride,
    BookingRequest,
    PublicBookingCreate,
    OperatorBookingCreate,
    StatusUpdateRequest,
    RescheduleRequest,
    AvailabilityResponse,
    SlotCheckResponse,
    AppointmentResponse,
    ApiTokenResponse,
)

__all__ = [
    "BookingSettings",
    "BufferOverride",
    "BookingRequest",
    "PublicBookingCreate",
    "OperatorBookingCreate",
    "StatusUpdateRequest",
    "RescheduleRequest",
    "AvailabilityResponse",
    "SlotCheckResponse",
    "AppointmentResponse",
    "ApiTokenResponse",
]
