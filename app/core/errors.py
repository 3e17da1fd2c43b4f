"""
Typed failures of the booking engine.

Internals raise these; the booking coordinator catches them at its boundary and
hands them back inside a BookingResult, so callers (the HTTP layer) can map each
type to one status code.
"""
from typing import List, Optional


class BookingError(Exception):
    """Base class for every engine failure"""
    code = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidTimeFormat(BookingError):
    code = "invalid_time_format"


class TimeOutOfRange(BookingError):
    code = "time_out_of_range"


class NotFoundError(BookingError):
    code = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(BookingError):
    """Proposed interval overlaps committed appointments"""
    code = "conflict"

    def __init__(self, message: str, conflicting_appointments: Optional[List] = None):
        super().__init__(message)
        self.conflicting_appointments = list(conflicting_appointments or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflicts"] = [
            {
                "id": apt.id,
                "appointment_code": apt.appointment_code,
                "date": apt.date.isoformat(),
                "start_time": apt.start_time.strftime("%H:%M"),
                "end_time": apt.end_time.strftime("%H:%M"),
                "status": apt.status,
            }
            for apt in self.conflicting_appointments
        ]
        return data


class UnavailableError(ConflictError):
    """Interval falls outside the staff member's working window (day off, hours, break, daily cap)"""
    code = "unavailable"


class InvalidStateError(BookingError):
    code = "invalid_state"
