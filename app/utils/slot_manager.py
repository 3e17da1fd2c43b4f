"""
Staff availability calendar and slot generation.

Each staff member has at most one availability record per date (working hours,
breaks, day-off flag, slot grid). When no record exists the salon's business
hours are used; resolve_working_window is the only place that fallback is
applied, so every caller sees the same window.
"""
from dataclasses import dataclass, field
from datetime import date, time
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.core.errors import TimeOutOfRange
from app.core.tenant import TenantSettings
from app.models.models import StaffAvailability
from app.services.conflict_detector import select_overlapping
from app.utils.time_grid import from_minutes, intervals_overlap, to_minutes


@dataclass(frozen=True)
class BreakInterval:
    start: time
    end: time
    reason: str = "break"


@dataclass(frozen=True)
class WorkingWindow:
    """Resolved working window for one staff member on one date"""
    staff_id: int
    date: date
    start: time
    end: time
    slot_duration: int
    breaks: Tuple[BreakInterval, ...] = field(default_factory=tuple)
    is_day_off: bool = False
    max_bookings: int = 1
    max_appointments: Optional[int] = None
    record_id: Optional[int] = None  # None when the salon default was used

    @property
    def is_default(self) -> bool:
        return self.record_id is None


@dataclass(frozen=True)
class TimeSlot:
    time: time
    end_time: time
    available: bool = True


def get_working_window(db: Session, salon_id: int, staff_id: int, day: date) -> Optional[StaffAvailability]:
    """Availability record for staff/day, or None if nothing was scheduled"""
    return db.query(StaffAvailability).filter(
        StaffAvailability.salon_id == salon_id,
        StaffAvailability.staff_id == staff_id,
        StaffAvailability.date == day,
    ).first()


def window_from_record(record: StaffAvailability) -> WorkingWindow:
    return WorkingWindow(
        staff_id=record.staff_id,
        date=record.date,
        start=record.working_start,
        end=record.working_end,
        slot_duration=record.slot_duration,
        breaks=tuple(BreakInterval(b.start_time, b.end_time, b.reason or "break") for b in record.breaks),
        is_day_off=bool(record.is_day_off),
        max_bookings=record.max_bookings or 1,
        max_appointments=record.max_appointments,
        record_id=record.id,
    )


def default_window(tenant: TenantSettings, staff_id: int, day: date) -> WorkingWindow:
    return WorkingWindow(
        staff_id=staff_id,
        date=day,
        start=tenant.business_open,
        end=tenant.business_close,
        slot_duration=tenant.slot_duration,
    )


def resolve_working_window(db: Session, tenant: TenantSettings, staff_id: int, day: date) -> WorkingWindow:
    record = get_working_window(db, tenant.salon_id, staff_id, day)
    if record is None:
        return default_window(tenant, staff_id, day)
    return window_from_record(record)


def _break_minutes(window: WorkingWindow) -> List[Tuple[int, int]]:
    return [(to_minutes(b.start), to_minutes(b.end)) for b in window.breaks]


def _daily_cap_reached(window: WorkingWindow, bookings: Sequence) -> bool:
    return window.max_appointments is not None and len(bookings) >= window.max_appointments


def generate_slots(
    window: WorkingWindow,
    duration_minutes: int,
    existing_bookings: Sequence = (),
    include_unavailable: bool = False,
) -> List[TimeSlot]:
    """
    Candidate start times for a service of duration_minutes.

    Candidates step by the window's slot grid (not by the service length) from
    the start of the working day until the service would run past its end. A
    candidate is dropped when [t, t + duration) touches a break or an existing
    booking. With include_unavailable the dropped candidates are returned too,
    flagged available=False.
    """
    if duration_minutes <= 0:
        raise TimeOutOfRange(f"Duration must be positive, got {duration_minutes}")
    if window.is_day_off:
        return []

    work_start = to_minutes(window.start)
    work_end = to_minutes(window.end)
    breaks = _break_minutes(window)
    cap_reached = _daily_cap_reached(window, existing_bookings)

    slots = []
    candidate = work_start
    while candidate + duration_minutes <= work_end:
        end = candidate + duration_minutes
        blocked = (
            cap_reached
            or any(intervals_overlap(candidate, end, b_start, b_end) for b_start, b_end in breaks)
            or bool(select_overlapping(existing_bookings, candidate, end))
        )
        if not blocked or include_unavailable:
            slots.append(TimeSlot(time=from_minutes(candidate), end_time=from_minutes(end), available=not blocked))
        candidate += window.slot_duration

    return slots


def check_interval(
    window: WorkingWindow,
    start: time,
    end: time,
    existing_bookings: Sequence = (),
) -> Optional[str]:
    """Reason the interval cannot be worked, or None when it fits the window"""
    if window.is_day_off:
        return "Staff member is not working on this date"

    start_min, end_min = to_minutes(start), to_minutes(end)
    if start_min < to_minutes(window.start) or end_min > to_minutes(window.end):
        return (
            f"Requested time must fall within working hours "
            f"{window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')}"
        )

    for b in window.breaks:
        if intervals_overlap(start_min, end_min, to_minutes(b.start), to_minutes(b.end)):
            return f"Requested time overlaps a {b.reason} ({b.start.strftime('%H:%M')}-{b.end.strftime('%H:%M')})"

    if _daily_cap_reached(window, existing_bookings):
        return f"Daily booking limit of {window.max_appointments} reached"

    return None


def total_working_minutes(window: WorkingWindow) -> int:
    """Working span minus breaks (0 on a day off)"""
    if window.is_day_off:
        return 0
    total = to_minutes(window.end) - to_minutes(window.start)
    for b_start, b_end in _break_minutes(window):
        total -= b_end - b_start
    return total


def validate_window_layout(start: time, end: time, breaks: Sequence[Tuple[time, time]], slot_duration: int):
    """
    Check an availability record before it is stored.

    Raises ValueError (surfaced as a validation error by the schemas).
    """
    if start >= end:
        raise ValueError("Working hours start must be before end")
    if slot_duration < 15:
        raise ValueError("Slot duration must be at least 15 minutes")

    ordered = sorted(breaks, key=lambda b: b[0])
    previous_end = None
    for b_start, b_end in ordered:
        if b_start >= b_end:
            raise ValueError(f"Break {b_start.strftime('%H:%M')}-{b_end.strftime('%H:%M')} must start before it ends")
        if b_start <= start or b_end >= end:
            raise ValueError(
                f"Break {b_start.strftime('%H:%M')}-{b_end.strftime('%H:%M')} must lie strictly inside working hours"
            )
        if previous_end is not None and b_start < previous_end:
            raise ValueError("Breaks must not overlap")
        previous_end = b_end
