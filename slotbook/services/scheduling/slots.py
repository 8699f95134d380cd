"""
Slot Generation

Produces the empty-day grid of candidate start times for one working window.
It knows nothing about bookings: buffers, appointments, blocks and breaks are
applied afterwards by the conflict resolver.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterator


class CandidateSlots:
    """
    Lazy, finite, restartable sequence of candidate starts.

    Candidates start at `work_start` and are spaced `interval_minutes` apart;
    every candidate satisfies `candidate + duration <= work_end`. The display
    interval is independent from the service duration, so a 45 minute service
    on an hourly grid yields 09:00, 10:00, ... and the last candidate is kept
    as long as the service itself still fits.
    """

    def __init__(
            self,
            work_start: datetime,
            work_end: datetime,
            duration_minutes: int,
            interval_minutes: int
    ):
        if duration_minutes <= 0:
            raise ValueError("Service duration must be positive")
        if interval_minutes <= 0:
            raise ValueError("Slot interval must be positive")

        # stepping in UTC keeps the grid on elapsed time across DST changes
        self.work_start = work_start.astimezone(timezone.utc)
        self.work_end = work_end.astimezone(timezone.utc)
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=interval_minutes)

    def __iter__(self) -> Iterator[datetime]:
        current = self.work_start
        while current + self.duration <= self.work_end:
            yield current
            current += self.step

    def __repr__(self):
        return f"<CandidateSlots({self.work_start.isoformat()} - {self.work_end.isoformat()}, step={self.step})>"
