"""
Interval arithmetic for the booking engine.

All instants handled here are timezone-aware datetimes normalized to UTC.
Local wall-clock values (rule hours, requested start times) only become
instants through `combine`, using the business timezone resolved by the
caller, and only go back to local time through `format_time`. Adding
minutes to an instant in a zone with DST would otherwise follow the wall
clock instead of elapsed time.
"""
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Tuple, Union

TimeLike = Union[time, str]


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test: [a_start, a_end) vs [b_start, b_end). Touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def to_utc(instant: datetime) -> datetime:
    return instant.astimezone(timezone.utc)


def add_minutes(instant: datetime, minutes: int) -> datetime:
    """Elapsed-time addition, done in UTC."""
    return to_utc(instant) + timedelta(minutes=minutes)


def parse_time(value: TimeLike) -> time:
    """
    Parse a local wall-clock time.

    Args:
        value: datetime.time, or string "HH:MM" / "HH:MM:SS"

    Raises:
        ValueError: if the string is not a valid clock time
    """
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert {type(value)} to time")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)


def combine(day: date, local_time: TimeLike, tz: tzinfo) -> datetime:
    """Compose a calendar date and a wall-clock time in `tz` into a UTC instant."""
    return to_utc(datetime.combine(day, parse_time(local_time)).replace(tzinfo=tz))


def is_real_local_time(day: date, local_time: TimeLike, tz: tzinfo) -> bool:
    """False for wall-clock times skipped by a DST jump (02:30 on a spring-forward night)."""
    naive = datetime.combine(day, parse_time(local_time))
    return combine(day, local_time, tz).astimezone(tz).replace(tzinfo=None) == naive


def format_time(instant: datetime, tz: tzinfo) -> str:
    """Render an instant as the business-local "HH:MM" string shown to customers."""
    return instant.astimezone(tz).strftime("%H:%M")


def day_bounds(day: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """[local midnight, next local midnight) of `day` in `tz`."""
    start = combine(day, time(0, 0), tz)
    end = combine(day + timedelta(days=1), time(0, 0), tz)
    return start, end


def working_window(day: date, start_time: TimeLike, end_time: TimeLike, tz: tzinfo) -> Tuple[datetime, datetime]:
    """
    Instants delimiting a working period on `day`.

    A closing time of 00:00, or any closing time not after the opening
    time, means the period runs until the end of the day.
    """
    start_time = parse_time(start_time)
    end_time = parse_time(end_time)

    start = combine(day, start_time, tz)
    if end_time <= start_time:
        end = day_bounds(day, tz)[1]
    else:
        end = combine(day, end_time, tz)
    return start, end
