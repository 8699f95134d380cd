# ============================================================================
# slotbook/api/v1/public/booking.py
# Public booking page and messaging bot - business API token authenticated
# ============================================================================
from fastapi import APIRouter, Depends, Header, Path, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional
from uuid import UUID

from slotbook.config.database import get_db
from slotbook.api.dependencies import get_business_token, require_business_token
from slotbook.models.appointment import BookingSource
from slotbook.schemas.booking import (
    AppointmentResponse,
    AvailabilityResponse,
    BookingRequest,
    PublicBookingCreate,
    SlotCheckResponse,
)
from slotbook.services.availability.availability_service import AvailabilityService

router = APIRouter(prefix="/businesses/{business_id}", tags=["public-booking"])


@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
        professional_id: UUID = Query(..., description="Professional to book"),
        service_id: UUID = Query(..., description="Service to book"),
        day: date = Query(..., alias="date", description="Business-local date (YYYY-MM-DD)"),
        business_id: UUID = Depends(require_business_token),
        db: Session = Depends(get_db)
):
    """Free start times ("HH:MM", business timezone) for one professional."""
    slots = AvailabilityService(db).list_free_slots(business_id, professional_id, service_id, day)
    return AvailabilityResponse(date=day, professional_id=professional_id, service_id=service_id, slots=slots)


@router.get("/availability/any", response_model=AvailabilityResponse)
def get_availability_any(
        service_id: UUID = Query(..., description="Service to book"),
        day: date = Query(..., alias="date", description="Business-local date (YYYY-MM-DD)"),
        professional_ids: Optional[List[UUID]] = Query(None, description="Restrict to these professionals"),
        business_id: UUID = Depends(require_business_token),
        db: Session = Depends(get_db)
):
    """Free start times offered by at least one professional."""
    slots = AvailabilityService(db).list_free_slots_any(business_id, service_id, day, professional_ids)
    return AvailabilityResponse(date=day, service_id=service_id, slots=slots)


@router.get("/availability/check", response_model=SlotCheckResponse)
def check_availability(
        professional_id: UUID = Query(...),
        service_id: UUID = Query(...),
        day: date = Query(..., alias="date"),
        time: str = Query(..., description="Local start time, HH:MM"),
        business_id: UUID = Depends(require_business_token),
        db: Session = Depends(get_db)
):
    available = AvailabilityService(db).check_slot(business_id, professional_id, service_id, day, time)
    return SlotCheckResponse(available=available)


@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
        payload: PublicBookingCreate,
        business_id: UUID = Path(..., description="The business ID"),
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
        token: Optional[str] = Depends(get_business_token),
        db: Session = Depends(get_db)
):
    """
    Book a slot from the public page or the bot.
    Retrying with the same Idempotency-Key returns the original appointment.
    """
    request = BookingRequest(
        business_id=business_id,
        source=BookingSource(payload.channel),
        idempotency_key=idempotency_key,
        **payload.model_dump(exclude={"channel"})
    )
    result = AvailabilityService(db).book(request, api_token=token)
    return result.appointment
