# ===== slotbook/services/availability/availability_service.py =====
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from slotbook.core.exceptions import InvalidBookingRequest, storage_errors
from slotbook.repositories.booking_repositories import (
    AppointmentRepository,
    AvailabilityRuleRepository,
    BusinessRepository,
    ProfessionalRepository,
    ServiceRepository,
    TimeBlockRepository,
)
from slotbook.schemas.booking import BookingRequest, ProfessionalAvailableNow
from slotbook.services.availability.day_plan import DayPlanLoader
from slotbook.services.booking.booking_service import (
    BookingResult,
    BookingService,
    local_start,
    utc_now,
)
from slotbook.services.booking.locks import ProfessionalLocks
from slotbook.services.scheduling.intervals import add_minutes, format_time, to_utc

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Single entry point used by the operator agenda, the public booking page and the bot"""

    def __init__(
            self,
            db: Session,
            locks: Optional[ProfessionalLocks] = None,
            clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.clock = clock or utc_now

        self.businesses = BusinessRepository(db)
        self.professionals = ProfessionalRepository(db)
        self.services = ServiceRepository(db)
        self.day_plans = DayPlanLoader(
            self.businesses,
            AvailabilityRuleRepository(db),
            AppointmentRepository(db),
            TimeBlockRepository(db),
        )
        self.bookings = BookingService(db, locks=locks, clock=self.clock)

    def list_free_slots(
            self,
            business_id: UUID,
            professional_id: UUID,
            service_id: UUID,
            day: date,
            enforce_booking_window: bool = True
    ) -> List[str]:
        """
        Free start times of a professional for a service on a business-local date.

        Returns:
            Ascending "HH:MM" strings in the business timezone; empty when
            the professional does not work that day or everything is taken.

        Raises:
            NotFound: unknown business, professional or service
        """
        with storage_errors():
            settings = self.businesses.get_booking_settings(business_id)
            duration = self.services.get_duration(business_id, service_id)
            buffer_override = self.professionals.get_buffer_override(business_id, professional_id)

            plan = self.day_plans.load(
                business_id,
                professional_id,
                day,
                settings,
                buffer_override,
                now=self.clock()
            )
            slots = plan.free_slots(duration, settings.slot_interval_minutes, enforce_booking_window)

        logger.debug(
            f"{len(slots)} free slots for professional {professional_id} on {day.isoformat()}"
        )
        # a fall-back night repeats a wall-clock hour; show it once
        return list(dict.fromkeys(format_time(slot, settings.tz) for slot in slots))

    def list_free_slots_any(
            self,
            business_id: UUID,
            service_id: UUID,
            day: date,
            professional_ids: Optional[Iterable[UUID]] = None,
            enforce_booking_window: bool = True
    ) -> List[str]:
        """Union of free start times across professionals ("any professional")."""
        if professional_ids is None:
            with storage_errors():
                professional_ids = self.professionals.list_active_ids(business_id)

        union = set()
        for professional_id in professional_ids:
            union.update(
                self.list_free_slots(business_id, professional_id, service_id, day, enforce_booking_window)
            )
        return sorted(union)

    def is_free(
            self,
            business_id: UUID,
            professional_id: UUID,
            start: datetime,
            duration_minutes: int,
            enforce_booking_window: bool = True
    ) -> bool:
        """Same rules as list_free_slots, for one arbitrary start instant."""
        if duration_minutes <= 0:
            raise InvalidBookingRequest("Duration must be positive")
        if start.tzinfo is None:
            raise InvalidBookingRequest("Start must be timezone-aware")
        start = to_utc(start)

        with storage_errors():
            settings = self.businesses.get_booking_settings(business_id)
            buffer_override = self.professionals.get_buffer_override(business_id, professional_id)
            day = start.astimezone(settings.tz).date()

            plan = self.day_plans.load(
                business_id,
                professional_id,
                day,
                settings,
                buffer_override,
                now=self.clock()
            )
            reason = plan.check(start, add_minutes(start, duration_minutes), enforce_booking_window)

        return reason is None

    def check_slot(
            self,
            business_id: UUID,
            professional_id: UUID,
            service_id: UUID,
            day: date,
            local_time: str
    ) -> bool:
        """is_free for a local date/time and a service, as asked by the booking page."""
        with storage_errors():
            settings = self.businesses.get_booking_settings(business_id)
            duration = self.services.get_duration(business_id, service_id)
        start = local_start(day, local_time, settings)
        return self.is_free(business_id, professional_id, start, duration)

    def list_available_now(
            self,
            business_id: UUID,
            service_id: Optional[UUID] = None,
            min_duration_minutes: int = 15
    ) -> List[ProfessionalAvailableNow]:
        """
        Active professionals free at this instant, for walk-ins.

        Each entry runs from now until the next appointment (buffer included),
        time block, break or end of the working window. Entries shorter than
        `min_duration_minutes`, or than the service when one is given, are left
        out. The longest free stretch comes first.
        """
        if min_duration_minutes <= 0:
            raise InvalidBookingRequest("Minimum duration must be positive")

        now = to_utc(self.clock())
        available = []

        with storage_errors():
            settings = self.businesses.get_booking_settings(business_id)
            if service_id is not None:
                min_duration_minutes = max(
                    min_duration_minutes, self.services.get_duration(business_id, service_id)
                )
            day = now.astimezone(settings.tz).date()

            for professional in self.professionals.list_active(business_id):
                buffer_override = self.professionals.get_buffer_override(business_id, professional.id)
                plan = self.day_plans.load(
                    business_id,
                    professional.id,
                    day,
                    settings,
                    buffer_override,
                    now=now
                )
                window = plan.free_window_at(now)
                if window is None:
                    continue

                free_minutes = int((window.end - window.start).total_seconds() // 60)
                if free_minutes < min_duration_minutes:
                    continue

                available.append(ProfessionalAvailableNow(
                    professional_id=professional.id,
                    name=professional.name,
                    free_from=window.start,
                    free_until=window.end,
                    free_minutes=free_minutes,
                ))

        logger.debug(f"{len(available)} professionals available now for business {business_id}")
        return sorted(available, key=lambda entry: entry.free_minutes, reverse=True)

    def book(self, request: BookingRequest, api_token: Optional[str] = None) -> BookingResult:
        return self.bookings.book(request, api_token=api_token)
