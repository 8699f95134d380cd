# ============================================================================
# slotbook/api/v1/dashboard/appointments.py
# Operator agenda - JWT session authenticated, thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID

from slotbook.config.database import get_db
from slotbook.api.dependencies import get_current_operator_business_id
from slotbook.models.appointment import BookingSource
from slotbook.schemas.booking import (
    ApiTokenResponse,
    AppointmentResponse,
    AvailabilityResponse,
    AvailableNowResponse,
    BookingRequest,
    OperatorBookingCreate,
    RescheduleRequest,
    StatusUpdateRequest,
)
from slotbook.services.availability.availability_service import AvailabilityService
from slotbook.services.booking.booking_service import BookingService

router = APIRouter(tags=["dashboard-appointments"])


@router.get("/availability", response_model=AvailabilityResponse)
def get_agenda_availability(
        service_id: UUID = Query(..., description="Service to book"),
        day: date = Query(..., alias="date", description="Business-local date (YYYY-MM-DD)"),
        professional_id: Optional[UUID] = Query(None, description="Leave empty for any professional"),
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    """
    Free start times for the operator agenda.
    Operators are not bound by the customer booking window.
    """
    service = AvailabilityService(db)
    if professional_id is None:
        slots = service.list_free_slots_any(business_id, service_id, day, enforce_booking_window=False)
    else:
        slots = service.list_free_slots(
            business_id, professional_id, service_id, day, enforce_booking_window=False
        )
    return AvailabilityResponse(date=day, professional_id=professional_id, service_id=service_id, slots=slots)


@router.get("/available-now", response_model=AvailableNowResponse)
def get_available_now(
        service_id: Optional[UUID] = Query(None, description="Only professionals with room for this service"),
        min_duration: int = Query(15, gt=0, description="Minimum free minutes"),
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    """Professionals free right now, longest free stretch first."""
    professionals = AvailabilityService(db).list_available_now(business_id, service_id, min_duration)
    return AvailableNowResponse(service_id=service_id, professionals=professionals)


@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
        payload: OperatorBookingCreate,
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    """Book on behalf of a customer (phone, walk-in)."""
    request = BookingRequest(
        business_id=business_id,
        source=BookingSource.OPERATOR,
        **payload.model_dump()
    )
    return AvailabilityService(db).book(request).appointment


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
        payload: StatusUpdateRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    """Confirm, complete, cancel or mark as no-show."""
    return BookingService(db).update_status(business_id, appointment_id, payload.status, payload.reason)


@router.post("/appointments/{appointment_id}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
        payload: RescheduleRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    return BookingService(db).reschedule(
        business_id,
        appointment_id,
        payload.date,
        payload.time,
        professional_id=payload.professional_id
    )


@router.post("/booking-settings/api-token", response_model=ApiTokenResponse)
def rotate_api_token(
        business_id: UUID = Depends(get_current_operator_business_id),
        db: Session = Depends(get_db)
):
    """
    Issue a new token for the public booking page.
    The previous token stops working immediately.
    """
    return ApiTokenResponse(api_token=BookingService(db).rotate_api_token(business_id))
