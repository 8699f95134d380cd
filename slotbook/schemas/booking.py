"""
Pydantic schemas for booking settings, booking requests and API payloads
"""
import datetime as dt
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from slotbook.models.appointment import AppointmentStatus, BookingSource


# ============================================================================
# Business configuration
# ============================================================================

class BookingSettings(BaseModel):
    """
    Typed view of Business.booking_settings plus the business timezone.
    Built once by the business repository; callers never read the raw JSON.
    """
    buffer_minutes: int = Field(15, ge=0, description="Idle time kept after each appointment")
    slot_interval_minutes: int = Field(60, gt=0, description="Spacing of offered start times")
    api_token: Optional[str] = None
    require_payment: bool = False

    min_advance_hours: int = Field(0, ge=0)
    max_advance_days: int = Field(60, ge=0)
    allow_same_day: bool = True

    timezone: str = "UTC"

    model_config = ConfigDict(extra="ignore")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{v}'")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class BufferOverride(BaseModel):
    custom_buffer: bool = False
    buffer_minutes: Optional[int] = Field(None, ge=0)


# ============================================================================
# Engine input
# ============================================================================

class BookingRequest(BaseModel):
    """Everything the booking transaction needs to reserve one slot"""
    business_id: UUID
    professional_id: UUID
    service_id: UUID
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=40)
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    date: dt.date
    time: str = Field(..., description="Local start time, HH:MM")
    source: BookingSource = BookingSource.PUBLIC_LINK
    idempotency_key: Optional[str] = Field(None, max_length=255)



# ============================================================================
# Request Schemas (HTTP)
# ============================================================================

class PublicBookingCreate(BaseModel):
    """Body sent by the public booking page and the messaging bot"""
    professional_id: UUID
    service_id: UUID
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=40)
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    date: dt.date
    time: str = Field(..., description="Local start time, HH:MM")
    channel: Literal["public_link", "bot"] = "public_link"


class OperatorBookingCreate(BaseModel):
    """Body sent by the operator agenda"""
    professional_id: UUID
    service_id: UUID
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=40)
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    date: dt.date
    time: str = Field(..., description="Local start time, HH:MM")


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = None


class RescheduleRequest(BaseModel):
    date: dt.date
    time: str = Field(..., description="New local start time, HH:MM")
    professional_id: Optional[UUID] = None


# ============================================================================
# Response Schemas
# ============================================================================

class AvailabilityResponse(BaseModel):
    date: dt.date
    professional_id: Optional[UUID] = None
    service_id: UUID
    slots: List[str]


class SlotCheckResponse(BaseModel):
    available: bool


class AppointmentResponse(BaseModel):
    id: UUID
    business_id: UUID
    professional_id: UUID
    service_id: UUID
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    start_datetime: dt.datetime
    end_datetime: dt.datetime
    duration_minutes: int
    price: Optional[Decimal] = None
    status: AppointmentStatus
    source: BookingSource
    cancelled_at: Optional[dt.datetime] = None
    cancellation_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)  # Allows creation from SQLAlchemy models


class ApiTokenResponse(BaseModel):
    api_token: str


class ProfessionalAvailableNow(BaseModel):
    """A professional free right now, and until when"""
    professional_id: UUID
    name: str
    free_from: dt.datetime
    free_until: dt.datetime
    free_minutes: int


class AvailableNowResponse(BaseModel):
    service_id: Optional[UUID] = None
    professionals: List[ProfessionalAvailableNow]
