"""
Day plan: everything needed to decide whether an interval is bookable for
one professional on one business-local date.

Listing and booking both build a DayPlan, so the list shown to customers
and the check made at commit time cannot drift apart.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional
from uuid import UUID

from slotbook.repositories.booking_repositories import (
    AppointmentRepository,
    AvailabilityRuleRepository,
    BusinessRepository,
    TimeBlockRepository,
)
from slotbook.schemas.booking import BookingSettings, BufferOverride
from slotbook.services.scheduling.conflicts import (
    ConflictReason,
    ConflictResolver,
    ConflictSources,
    Interval,
    resolve_effective_buffer,
)
from slotbook.services.scheduling.intervals import working_window
from slotbook.services.scheduling.slots import CandidateSlots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingWindow:
    """How far ahead, and how soon, customers may book."""
    earliest_start: datetime
    first_day: date
    last_day: date

    @classmethod
    def from_settings(cls, settings: BookingSettings, now: datetime) -> "BookingWindow":
        today = now.astimezone(settings.tz).date()
        first_day = today if settings.allow_same_day else today + timedelta(days=1)
        return cls(
            earliest_start=now + timedelta(hours=settings.min_advance_hours),
            first_day=first_day,
            last_day=today + timedelta(days=settings.max_advance_days),
        )

    def allows_day(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def allows(self, start: datetime, tz: tzinfo) -> bool:
        return self.allows_day(start.astimezone(tz).date()) and start >= self.earliest_start


@dataclass
class DayPlan:
    day: date
    tz: tzinfo
    work_window: Optional[Interval]
    resolver: ConflictResolver
    booking_window: BookingWindow

    def check(self, start: datetime, end: datetime, enforce_booking_window: bool = True) -> Optional[ConflictReason]:
        """Reason why [start, end) cannot be booked, or None when it can."""
        window = self.work_window
        if window is None or start < window.start or end > window.end:
            return ConflictReason.OUTSIDE_WORKING_HOURS
        if enforce_booking_window and not self.booking_window.allows(start, self.tz):
            return ConflictReason.OUTSIDE_BOOKING_WINDOW
        return self.resolver.find_conflict(start, end)

    def free_slots(
            self,
            duration_minutes: int,
            interval_minutes: int,
            enforce_booking_window: bool = True
    ) -> List[datetime]:
        if self.work_window is None:
            return []
        if enforce_booking_window and not self.booking_window.allows_day(self.day):
            return []

        candidates = CandidateSlots(
            self.work_window.start,
            self.work_window.end,
            duration_minutes,
            interval_minutes
        )
        if enforce_booking_window:
            candidates = (s for s in candidates if self.booking_window.allows(s, self.tz))

        return self.resolver.filter_free(candidates, duration_minutes)

    def free_window_at(self, instant: datetime) -> Optional[Interval]:
        """Free stretch starting at `instant` inside working hours, or None when busy or off duty."""
        window = self.work_window
        if window is None or not window.start <= instant < window.end:
            return None
        until = self.resolver.free_until(instant, window.end)
        if until is None:
            return None
        return Interval(instant, until)


class DayPlanLoader:
    """Reads the rule, business hours, appointments and blocks that shape one day."""

    def __init__(
            self,
            businesses: BusinessRepository,
            rules: AvailabilityRuleRepository,
            appointments: AppointmentRepository,
            time_blocks: TimeBlockRepository
    ):
        self.businesses = businesses
        self.rules = rules
        self.appointments = appointments
        self.time_blocks = time_blocks

    def load(
            self,
            business_id: UUID,
            professional_id: UUID,
            day: date,
            settings: BookingSettings,
            buffer_override: BufferOverride,
            now: datetime,
            exclude_appointment_id: Optional[UUID] = None
    ) -> DayPlan:
        tz = settings.tz
        buffer_minutes = resolve_effective_buffer(
            settings.buffer_minutes,
            buffer_override.custom_buffer,
            buffer_override.buffer_minutes
        )
        booking_window = BookingWindow.from_settings(settings, now)

        work_window, break_window = self._working_hours(business_id, professional_id, day, tz)
        if work_window is None:
            logger.debug(f"Professional {professional_id} does not work on {day.isoformat()}")
            return DayPlan(day, tz, None, ConflictResolver(ConflictSources()), booking_window)

        sources = ConflictSources(
            appointments=self.appointments.list_for_day(
                professional_id,
                day,
                tz,
                lookbehind_minutes=buffer_minutes,
                exclude_appointment_id=exclude_appointment_id
            ),
            time_blocks=self.time_blocks.list_for_day(business_id, professional_id, day, tz),
            break_window=break_window,
            buffer_minutes=buffer_minutes,
        )
        return DayPlan(day, tz, work_window, ConflictResolver(sources), booking_window)

    def _working_hours(self, business_id: UUID, professional_id: UUID, day: date, tz: tzinfo):
        """Professional rule window, narrowed by business hours when the business has them."""
        day_of_week = day.weekday()

        rule = self.rules.get_rule(professional_id, day_of_week)
        if rule is None:
            return None, None

        start, end = working_window(day, rule.start_time, rule.end_time, tz)

        hours = self.businesses.get_business_hours(business_id, day_of_week)
        if hours is not None:
            if hours.is_closed or hours.open_time is None or hours.close_time is None:
                return None, None
            open_at, close_at = working_window(day, hours.open_time, hours.close_time, tz)
            start, end = max(start, open_at), min(end, close_at)

        if start >= end:
            return None, None

        break_window = None
        if rule.has_break:
            break_start, break_end = working_window(day, rule.break_start, rule.break_end, tz)
            break_window = Interval(break_start, break_end)

        return Interval(start, end), break_window