# ============================================================================
# slotbook/repositories/booking_repositories.py
# Storage collaborators of the booking engine - SQLAlchemy implementations
# ============================================================================
import logging
from datetime import date, timedelta, tzinfo
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from slotbook.core.exceptions import ConfigurationError, NotFound
from slotbook.models.appointment import Appointment, AppointmentStatus
from slotbook.models.availability import AvailabilityRule
from slotbook.models.business import Business, BusinessHours
from slotbook.models.professional import Professional
from slotbook.models.service import Service
from slotbook.models.time_block import TimeBlock
from slotbook.schemas.booking import BookingSettings, BufferOverride
from slotbook.services.scheduling.conflicts import Interval
from slotbook.services.scheduling.intervals import day_bounds

logger = logging.getLogger(__name__)


class BusinessRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, business_id: UUID) -> Business:
        business = self.db.query(Business).filter(
            Business.id == business_id,
            Business.is_active == True
        ).first()

        if not business:
            raise NotFound(f"Business {business_id} not found")
        return business

    def get_booking_settings(self, business_id: UUID) -> BookingSettings:
        """Validate the stored JSON blob once, here, into a typed settings object."""
        business = self.get(business_id)
        raw = dict(business.booking_settings or {})
        raw["timezone"] = business.timezone or "UTC"

        try:
            return BookingSettings.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Invalid booking settings for business {business_id}: {e}")
            raise ConfigurationError(f"Invalid booking settings for business {business_id}") from e

    def get_business_hours(self, business_id: UUID, day_of_week: int) -> Optional[BusinessHours]:
        return self.db.query(BusinessHours).filter(
            BusinessHours.business_id == business_id,
            BusinessHours.day_of_week == day_of_week
        ).first()

    def set_api_token(self, business_id: UUID, token: str) -> None:
        business = self.get(business_id)
        # Reassign so the JSON column is flagged dirty
        business.booking_settings = {**(business.booking_settings or {}), "api_token": token}


class ProfessionalRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, business_id: UUID, professional_id: UUID) -> Professional:
        professional = self.db.query(Professional).filter(
            Professional.id == professional_id,
            Professional.business_id == business_id,
            Professional.is_active == True
        ).first()

        if not professional:
            raise NotFound(f"Professional {professional_id} not found")
        return professional

    def get_buffer_override(self, business_id: UUID, professional_id: UUID) -> BufferOverride:
        professional = self.get(business_id, professional_id)
        return BufferOverride(
            custom_buffer=bool(professional.custom_buffer),
            buffer_minutes=professional.buffer_minutes
        )

    def lock(self, business_id: UUID, professional_id: UUID) -> Professional:
        """Row-lock the professional for the rest of the transaction (no-op on SQLite)."""
        professional = self.db.query(Professional).filter(
            Professional.id == professional_id,
            Professional.business_id == business_id
        ).with_for_update().first()

        if not professional:
            raise NotFound(f"Professional {professional_id} not found")
        return professional

    def list_active(self, business_id: UUID) -> List[Professional]:
        return self.db.query(Professional).filter(
            Professional.business_id == business_id,
            Professional.is_active == True
        ).order_by(Professional.name.asc()).all()

    def list_active_ids(self, business_id: UUID) -> List[UUID]:
        return [professional.id for professional in self.list_active(business_id)]


class ServiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, business_id: UUID, service_id: UUID) -> Service:
        service = self.db.query(Service).filter(
            Service.id == service_id,
            Service.business_id == business_id,
            Service.is_active == True
        ).first()

        if not service:
            raise NotFound(f"Service {service_id} not found")
        return service

    def get_duration(self, business_id: UUID, service_id: UUID) -> int:
        service = self.get(business_id, service_id)
        if not service.duration or service.duration <= 0:
            raise ConfigurationError(f"Service {service_id} has no valid duration")
        return service.duration

    def get_price(self, business_id: UUID, service_id: UUID) -> Optional[Decimal]:
        return self.get(business_id, service_id).price


class AvailabilityRuleRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_rule(self, professional_id: UUID, day_of_week: int) -> Optional[AvailabilityRule]:
        """Active rule for the weekday, or None when the professional does not work that day."""
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
            AvailabilityRule.day_of_week == day_of_week,
            AvailabilityRule.is_active == True
        ).first()


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_day(
            self,
            professional_id: UUID,
            day: date,
            tz: tzinfo,
            exclude_statuses: Iterable[AppointmentStatus] = (AppointmentStatus.CANCELLED,),
            lookbehind_minutes: int = 0,
            exclude_appointment_id: Optional[UUID] = None
    ) -> List[Interval]:
        """
        Occupied intervals of a professional touching the local `day`.

        `lookbehind_minutes` pulls in appointments ending shortly before
        midnight whose buffer still reaches into the day.
        """
        day_start, day_end = day_bounds(day, tz)
        range_start = day_start - timedelta(minutes=lookbehind_minutes)

        query = self.db.query(Appointment.start_datetime, Appointment.end_datetime).filter(
            Appointment.professional_id == professional_id,
            Appointment.start_datetime < day_end,
            Appointment.end_datetime > range_start,
            Appointment.status.notin_([s.value for s in exclude_statuses])
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        rows = query.order_by(Appointment.start_datetime.asc()).all()
        return [Interval(row.start_datetime, row.end_datetime) for row in rows]

    def insert(self, appointment: Appointment) -> UUID:
        self.db.add(appointment)
        self.db.flush()
        return appointment.id

    def get(self, business_id: UUID, appointment_id: UUID) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.business_id == business_id
        ).first()

        if not appointment:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    def find_by_idempotency_key(self, business_id: UUID, key: str) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.business_id == business_id,
            Appointment.idempotency_key == key
        ).first()


class TimeBlockRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_day(self, business_id: UUID, professional_id: UUID, day: date, tz: tzinfo) -> List[Interval]:
        """Blocks of the business on `day` that apply to everyone or to this professional."""
        day_start, day_end = day_bounds(day, tz)

        rows = self.db.query(TimeBlock.start_datetime, TimeBlock.end_datetime).filter(
            TimeBlock.business_id == business_id,
            or_(
                TimeBlock.professional_id.is_(None),
                TimeBlock.professional_id == professional_id
            ),
            TimeBlock.start_datetime < day_end,
            TimeBlock.end_datetime > day_start
        ).order_by(TimeBlock.start_datetime.asc()).all()

        return [Interval(row.start_datetime, row.end_datetime) for row in rows]
