# slotbook/models/__init__.py
from .base import Base, UTCDateTime
from .business import Business, BusinessHours
from .professional import Professional
from .service import Service
from .availability import AvailabilityRule
from .time_block import TimeBlock
from .appointment import Appointment, AppointmentStatus, BookingSource

__all__ = [
    "Base",
    "UTCDateTime",
    "Business",
    "BusinessHours",
    "Professional",
    "Service",
    "AvailabilityRule",
    "TimeBlock",
    "Appointment",
    "AppointmentStatus",
    "BookingSource",
]
