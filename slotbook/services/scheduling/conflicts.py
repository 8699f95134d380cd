"""
Conflict Resolution

Filters candidate slots against the three conflict sources of a
professional's day: existing appointments (extended by the trailing
buffer), manual time blocks and the break window of the weekly rule.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from slotbook.services.scheduling.intervals import add_minutes, overlaps


class ConflictReason(str, enum.Enum):
    """Why an interval cannot be booked"""
    APPOINTMENT = "appointment"
    TIME_BLOCK = "time_block"
    BREAK = "break"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    OUTSIDE_BOOKING_WINDOW = "outside_booking_window"


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime


def resolve_effective_buffer(
        business_buffer_minutes: int,
        custom_buffer: bool = False,
        professional_buffer_minutes: Optional[int] = None
) -> int:
    """Professional override wins when custom_buffer is set, otherwise the business default applies."""
    if custom_buffer and professional_buffer_minutes is not None:
        return professional_buffer_minutes
    return business_buffer_minutes


@dataclass
class ConflictSources:
    appointments: Sequence[Interval] = field(default_factory=list)
    time_blocks: Sequence[Interval] = field(default_factory=list)
    break_window: Optional[Interval] = None
    buffer_minutes: int = 0


class ConflictResolver:
    """
    Pure, repeatable conflict checks for one professional and one day.

    The buffer is one-sided: an appointment occupies
    [start, end + buffer), modelling cleanup time after it. A candidate
    ending exactly where an occupied interval starts is accepted.

    Only appointments already on the agenda carry the buffer, the candidate
    does not. The guarantee therefore holds in booking order: every new
    appointment stays clear of [start, end + buffer) of those committed
    before it, while an earlier slot booked later may end right where an
    existing appointment starts.
    """

    def __init__(self, sources: ConflictSources):
        self.sources = sources
        self._occupied = [
            Interval(appt.start, add_minutes(appt.end, sources.buffer_minutes))
            for appt in sources.appointments
        ]

    def find_conflict(self, start: datetime, end: datetime) -> Optional[ConflictReason]:
        """First conflict found for [start, end), or None when the interval is free."""
        for occupied in self._occupied:
            if overlaps(start, end, occupied.start, occupied.end):
                return ConflictReason.APPOINTMENT

        for block in self.sources.time_blocks:
            if overlaps(start, end, block.start, block.end):
                return ConflictReason.TIME_BLOCK

        brk = self.sources.break_window
        if brk is not None and overlaps(start, end, brk.start, brk.end):
            return ConflictReason.BREAK

        return None

    def is_free(self, start: datetime, end: datetime) -> bool:
        return self.find_conflict(start, end) is None

    def busy_intervals(self) -> List[Interval]:
        busy = list(self._occupied) + list(self.sources.time_blocks)
        if self.sources.break_window is not None:
            busy.append(self.sources.break_window)
        return busy

    def free_until(self, instant: datetime, limit: datetime) -> Optional[datetime]:
        """
        End of the free stretch starting at `instant`, capped at `limit`.

        None when `instant` itself falls inside an appointment (buffer
        included), a time block or the break.
        """
        until = limit
        for busy in self.busy_intervals():
            if busy.start <= instant < busy.end:
                return None
            if instant < busy.start < until:
                until = busy.start
        return until

    def filter_free(self, candidates: Iterable[datetime], duration_minutes: int) -> List[datetime]:
        """Keep the candidates whose [s, s + duration) is free, in ascending order."""
        return sorted(
            start for start in candidates
            if self.is_free(start, add_minutes(start, duration_minutes))
        )
