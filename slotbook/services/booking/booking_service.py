# ============================================================================
# slotbook/services/booking/booking_service.py
# Booking transaction: validate, re-check and reserve a slot atomically
# ============================================================================
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotbook.config.settings import get_settings
from slotbook.core.exceptions import (
    ConfigurationError,
    InvalidBookingRequest,
    InvalidStatusTransition,
    SlotNoLongerAvailable,
    Unauthorized,
    storage_errors,
)
from slotbook.models.appointment import Appointment, AppointmentStatus, BookingSource
from slotbook.repositories.booking_repositories import (
    AppointmentRepository,
    AvailabilityRuleRepository,
    BusinessRepository,
    ProfessionalRepository,
    ServiceRepository,
    TimeBlockRepository,
)
from slotbook.schemas.booking import BookingRequest, BookingSettings
from slotbook.services.availability.day_plan import DayPlanLoader
from slotbook.services.booking.locks import ProfessionalLocks
from slotbook.services.scheduling.conflicts import ConflictReason
from slotbook.services.scheduling.intervals import add_minutes, combine, is_real_local_time

logger = logging.getLogger(__name__)

API_TOKEN_PREFIX = "bk_"

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.NO_SHOW: set(),
}

MOVABLE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

# Shared by every session of this process
professional_locks = ProfessionalLocks(timeout_seconds=get_settings().BOOKING_LOCK_TIMEOUT_SECONDS)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_api_token() -> str:
    return f"{API_TOKEN_PREFIX}{secrets.token_hex(32)}"


def verify_api_token(settings: BookingSettings, token: Optional[str]) -> None:
    """Constant-time comparison against the business token. Unset token means no public access."""
    expected = settings.api_token
    if not expected or not token:
        raise Unauthorized("Invalid API token")
    if not hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8")):
        raise Unauthorized("Invalid API token")


def local_start(day: date, local_time: str, settings: BookingSettings) -> datetime:
    try:
        if not is_real_local_time(day, local_time, settings.tz):
            raise InvalidBookingRequest(f"{local_time} does not exist on {day} in {settings.timezone}")
        return combine(day, local_time, settings.tz)
    except ValueError as e:
        raise InvalidBookingRequest(str(e)) from e


@dataclass
class BookingResult:
    appointment: Appointment
    created: bool = True  # False when an idempotency key replayed an earlier booking


class BookingService:
    """Handles the write path of the agenda: book, reschedule, status changes"""

    def __init__(
            self,
            db: Session,
            locks: Optional[ProfessionalLocks] = None,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.locks = locks or professional_locks
        self.clock = clock or utc_now

        self.businesses = BusinessRepository(db)
        self.professionals = ProfessionalRepository(db)
        self.services = ServiceRepository(db)
        self.appointments = AppointmentRepository(db)
        self.day_plans = DayPlanLoader(
            self.businesses,
            AvailabilityRuleRepository(db),
            self.appointments,
            TimeBlockRepository(db),
        )

    def book(self, request: BookingRequest, api_token: Optional[str] = None) -> BookingResult:
        """
        Reserve the requested slot.

        Public channels must present the business API token; operator
        bookings are authenticated by the dashboard session instead and may
        ignore the customer booking window.

        Raises:
            Unauthorized, NotFound, InvalidBookingRequest,
            SlotNoLongerAvailable, StorageUnavailable
        """
        is_operator = request.source == BookingSource.OPERATOR

        with storage_errors():
            settings = self.businesses.get_booking_settings(request.business_id)
            if not is_operator:
                try:
                    verify_api_token(settings, api_token)
                except Unauthorized:
                    logger.warning(f"Rejected booking for business {request.business_id}: invalid API token")
                    raise

            service = self.services.get(request.business_id, request.service_id)
            if not service.duration or service.duration <= 0:
                raise ConfigurationError(f"Service {service.id} has no valid duration")
            buffer_override = self.professionals.get_buffer_override(
                request.business_id, request.professional_id
            )

            start = local_start(request.date, request.time, settings)
            end = add_minutes(start, service.duration)

            with self.locks.hold(request.professional_id):
                result = self._reserve(request, settings, buffer_override, service, start, end, is_operator)

        appointment = result.appointment
        if result.created:
            logger.info(
                f"Booked appointment {appointment.id} for professional {appointment.professional_id} "
                f"at {appointment.start_datetime.isoformat()} via {appointment.source}"
            )
        else:
            logger.info(f"Replayed booking {appointment.id} for idempotency key {request.idempotency_key}")
        return result

    def _reserve(self, request, settings, buffer_override, service, start, end, is_operator) -> BookingResult:
        """Check-then-insert; runs under the professional lock inside one transaction."""
        try:
            self.professionals.lock(request.business_id, request.professional_id)

            if request.idempotency_key:
                existing = self.appointments.find_by_idempotency_key(request.business_id, request.idempotency_key)
                if existing is not None:
                    self.db.commit()
                    return BookingResult(existing, created=False)

            plan = self.day_plans.load(
                request.business_id,
                request.professional_id,
                request.date,
                settings,
                buffer_override,
                now=self.clock()
            )
            reason = plan.check(start, end, enforce_booking_window=not is_operator)
            if reason is not None:
                logger.info(
                    f"Slot {start.isoformat()} for professional {request.professional_id} "
                    f"not available: {reason.value}"
                )
                raise SlotNoLongerAvailable("The requested time is no longer available", reason=reason)

            appointment = Appointment(
                business_id=request.business_id,
                professional_id=request.professional_id,
                service_id=service.id,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                customer_email=request.customer_email,
                notes=request.notes,
                start_datetime=start,
                end_datetime=end,
                duration_minutes=service.duration,
                price=service.price,
                status=(AppointmentStatus.PENDING if settings.require_payment else AppointmentStatus.CONFIRMED).value,
                source=request.source.value,
                idempotency_key=request.idempotency_key,
            )
            self.appointments.insert(appointment)
            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            # Lost the race on the idempotency key: the winner's row is the answer
            if request.idempotency_key:
                existing = self.appointments.find_by_idempotency_key(request.business_id, request.idempotency_key)
                if existing is not None:
                    return BookingResult(existing, created=False)
            raise SlotNoLongerAvailable(
                "The requested time is no longer available",
                reason=ConflictReason.APPOINTMENT
            ) from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return BookingResult(appointment)

    def reschedule(
            self,
            business_id: UUID,
            appointment_id: UUID,
            day: date,
            local_time: str,
            professional_id: Optional[UUID] = None
    ) -> Appointment:
        """Move an appointment in place, keeping its identity and snapshotted duration."""
        with storage_errors():
            settings = self.businesses.get_booking_settings(business_id)
            appointment = self.appointments.get(business_id, appointment_id)
            target_id = professional_id or appointment.professional_id
            buffer_override = self.professionals.get_buffer_override(business_id, target_id)

            start = local_start(day, local_time, settings)
            end = add_minutes(start, appointment.duration_minutes)

            with self.locks.hold(target_id):
                try:
                    self.professionals.lock(business_id, target_id)
                    self.db.refresh(appointment)
                    if appointment.status not in MOVABLE_STATUSES:
                        raise InvalidStatusTransition(
                            f"Cannot reschedule an appointment with status '{appointment.status}'"
                        )

                    plan = self.day_plans.load(
                        business_id,
                        target_id,
                        day,
                        settings,
                        buffer_override,
                        now=self.clock(),
                        exclude_appointment_id=appointment.id
                    )
                    reason = plan.check(start, end, enforce_booking_window=False)
                    if reason is not None:
                        raise SlotNoLongerAvailable("The requested time is not available", reason=reason)

                    appointment.professional_id = target_id
                    appointment.start_datetime = start
                    appointment.end_datetime = end
                    self.db.commit()
                except Exception:
                    self.db.rollback()
                    raise

            self.db.refresh(appointment)

        logger.info(
            f"Rescheduled appointment {appointment.id} to {start.isoformat()} "
            f"with professional {target_id}"
        )
        return appointment

    def update_status(
            self,
            business_id: UUID,
            appointment_id: UUID,
            status: AppointmentStatus,
            reason: Optional[str] = None
    ) -> Appointment:
        with storage_errors():
            appointment = self.appointments.get(business_id, appointment_id)
            current = AppointmentStatus(appointment.status)
            target = AppointmentStatus(status)

            if target == current:
                return appointment
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransition(
                    f"Cannot change appointment status from '{current.value}' to '{target.value}'"
                )

            try:
                appointment.status = target.value
                if target == AppointmentStatus.CANCELLED:
                    appointment.cancelled_at = self.clock()
                    appointment.cancellation_reason = reason
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

            self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} status {current.value} -> {target.value}")
        return appointment

    def rotate_api_token(self, business_id: UUID) -> str:
        """Issue a new public booking token; the previous one stops working immediately."""
        token = generate_api_token()
        with storage_errors():
            try:
                self.businesses.set_api_token(business_id, token)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"Rotated API token for business {business_id}")
        return token
