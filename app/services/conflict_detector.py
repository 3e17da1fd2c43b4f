"""
Conflict detection for staff bookings.

The single place that decides whether two bookings collide. Slot generation
reuses select_overlapping so that a slot shown as free is always bookable.
"""
import logging
from datetime import date, time
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.models import Appointment, ACTIVE_STATUSES
from app.utils.time_grid import intervals_overlap, to_minutes

logger = logging.getLogger(__name__)


def select_overlapping(
    bookings: Iterable,
    start_minutes: int,
    end_minutes: int,
    exclude_appointment_id: Optional[int] = None,
) -> List:
    """
    Return the bookings whose [start_time, end_time) overlaps [start_minutes, end_minutes).

    Bookings are anything with start_time/end_time times (and optionally an id).
    """
    overlapping = []
    for booking in bookings:
        if exclude_appointment_id is not None and getattr(booking, "id", None) == exclude_appointment_id:
            continue
        if intervals_overlap(
            start_minutes, end_minutes,
            to_minutes(booking.start_time), to_minutes(booking.end_time),
        ):
            overlapping.append(booking)
    return sorted(overlapping, key=lambda b: to_minutes(b.start_time))


def active_appointments_for_day(db: Session, staff_id: int, day: date) -> List[Appointment]:
    """Non-terminal appointments of a staff member on a date, ordered by start"""
    return db.query(Appointment).filter(
        Appointment.staff_id == staff_id,
        Appointment.date == day,
        Appointment.status.in_(ACTIVE_STATUSES),
    ).order_by(Appointment.start_time).all()


def find_conflicts(
    db: Session,
    staff_id: int,
    day: date,
    proposed_start: time,
    proposed_end: time,
    exclude_appointment_id: Optional[int] = None,
) -> List[Appointment]:
    """
    All non-terminal appointments for staff/day overlapping [proposed_start, proposed_end).

    An empty list means no conflict. Pass exclude_appointment_id when moving an
    existing appointment so it is not compared against itself.
    """
    existing = active_appointments_for_day(db, staff_id, day)
    conflicts = select_overlapping(
        existing,
        to_minutes(proposed_start),
        to_minutes(proposed_end),
        exclude_appointment_id=exclude_appointment_id,
    )
    if conflicts:
        logger.info(
            f"Staff {staff_id} on {day.isoformat()}: "
            f"{proposed_start.strftime('%H:%M')}-{proposed_end.strftime('%H:%M')} "
            f"conflicts with {[c.id for c in conflicts]}"
        )
    return conflicts
