"""
Wall-clock helpers for the booking engine.

Times of day are plain datetime.time values on a minute grid. Intervals are
half-open [start, end): an appointment ending at 10:30 does not collide with
one starting at 10:30.
"""
import re
from datetime import time

from app.core.errors import InvalidTimeFormat, TimeOutOfRange

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time(value: str) -> time:
    """Parse an "HH:MM" (24-hour) string into a time"""
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Expected an HH:MM string, got {value!r}")
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f"Invalid time format: {value!r} (expected HH:MM)")
    return time(int(match.group(1)), int(match.group(2)))


def ensure_time(value) -> time:
    """Accept either a time or an HH:MM string"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return parse_time(value)


def to_minutes(t: time) -> int:
    """Minutes since midnight"""
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise TimeOutOfRange(f"{minutes} minutes is outside a single day (00:00-23:59)")
    return time(minutes // 60, minutes % 60)


def add_minutes(t: time, minutes: int) -> time:
    """Shift a time of day; never wraps past 23:59 into the next day"""
    total = to_minutes(t) + minutes
    if total < 0 or total >= MINUTES_PER_DAY:
        raise TimeOutOfRange(
            f"{format_time(t)} + {minutes} min falls outside the day (00:00-23:59)"
        )
    return from_minutes(total)


def format_time(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Half-open overlap test on minute offsets.

    Both booking conflict detection and slot generation go through this
    predicate so the two can never disagree.
    """
    return a_start < b_end and b_start < a_end
