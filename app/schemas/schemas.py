from __future__ import annotations
from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, field_validator, model_validator
from datetime import date, datetime, time
from typing import Annotated, List, Optional

from app.core.config import settings
from app.core.errors import InvalidTimeFormat
from app.utils.slot_manager import validate_window_layout
from app.utils.time_grid import format_time, parse_time


def _parse_time_of_day(value):
    if isinstance(value, time):
        return value
    try:
        return parse_time(value)
    except InvalidTimeFormat as e:
        raise ValueError(e.message)


# Wall-clock time exchanged as "HH:MM" in JSON; model_dump() keeps time objects for the ORM
TimeOfDay = Annotated[time, BeforeValidator(_parse_time_of_day), PlainSerializer(format_time, return_type=str, when_used="json")]


# Availability schemas
class BreakCreate(BaseModel):
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: str = "break"  # break, lunch, meeting, training, personal, other


class BreakResponse(BaseModel):
    id: int
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class AvailabilityTemplate(BaseModel):
    """Working day layout shared by single and bulk creation"""
    is_day_off: bool = False
    day_off_reason: Optional[str] = None
    working_start: TimeOfDay = parse_time(settings.DEFAULT_WORKING_START)
    working_end: TimeOfDay = parse_time(settings.DEFAULT_WORKING_END)
    slot_duration: int = Field(60, ge=15)
    max_bookings: int = Field(1, ge=1)
    max_appointments: Optional[int] = Field(None, ge=1)  # Daily cap, None = unlimited
    breaks: List[BreakCreate] = []
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_layout(self):
        validate_window_layout(
            self.working_start,
            self.working_end,
            [(b.start_time, b.end_time) for b in self.breaks],
            self.slot_duration,
        )
        return self


class StaffAvailabilityCreate(AvailabilityTemplate):
    staff_id: int
    date: date


class StaffAvailabilityUpdate(BaseModel):
    """Partial update; the merged record is re-validated before saving"""
    is_day_off: Optional[bool] = None
    day_off_reason: Optional[str] = None
    working_start: Optional[TimeOfDay] = None
    working_end: Optional[TimeOfDay] = None
    slot_duration: Optional[int] = Field(None, ge=15)
    max_bookings: Optional[int] = Field(None, ge=1)
    max_appointments: Optional[int] = Field(None, ge=1)
    breaks: Optional[List[BreakCreate]] = None  # None = keep the current breaks
    notes: Optional[str] = None

    @field_validator("is_day_off", "working_start", "working_end", "slot_duration", "max_bookings")
    @classmethod
    def reject_null(cls, v, info):
        # Omit a field to leave it unchanged; only the nullable columns may be cleared
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class BulkAvailabilityCreate(BaseModel):
    """Copy one template onto every date in a range (existing dates are left alone)"""
    staff_id: int
    start_date: date
    end_date: date
    template: AvailabilityTemplate
    exclude_dates: List[date] = []
    weekdays: Optional[List[int]] = None  # 0 = Monday ... 6 = Sunday; None = every day

    @field_validator("weekdays")
    @classmethod
    def check_weekdays(cls, v):
        if v is not None and any(d < 0 or d > 6 for d in v):
            raise ValueError("Weekdays must be between 0 (Monday) and 6 (Sunday)")
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.end_date - self.start_date).days > 366:
            raise ValueError("Bulk creation is limited to one year")
        return self


class BulkAvailabilityResponse(BaseModel):
    records_created: int
    skipped_dates: List[date]
    staff_id: int
    start_date: date
    end_date: date


class StaffAvailabilityResponse(BaseModel):
    id: int
    salon_id: int
    staff_id: int
    date: date
    is_day_off: bool
    day_off_reason: Optional[str] = None
    working_start: TimeOfDay
    working_end: TimeOfDay
    slot_duration: int
    max_bookings: int
    max_appointments: Optional[int] = None
    notes: Optional[str] = None
    breaks: List[BreakResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class TimeSlotResponse(BaseModel):
    time: TimeOfDay
    end_time: TimeOfDay
    available: bool

    class Config:
        from_attributes = True


class AvailableSlotsResponse(BaseModel):
    """Bookable start times for one staff member on one date"""
    staff_id: int
    date: date
    duration: int
    is_day_off: bool
    is_default_window: bool  # True when no availability record exists and salon hours were used
    working_start: TimeOfDay
    working_end: TimeOfDay
    slot_duration: int
    slots: List[TimeSlotResponse]
    total_slots: int


# Appointment schemas
class AppointmentServiceResponse(BaseModel):
    service_id: int
    position: int
    duration: int
    price: int  # Cents

    class Config:
        from_attributes = True


class RescheduleHistoryResponse(BaseModel):
    original_date: date
    original_time: TimeOfDay
    new_date: date
    new_time: TimeOfDay
    reason: Optional[str] = None
    rescheduled_by: Optional[str] = None
    rescheduled_at: datetime

    class Config:
        from_attributes = True


class AppointmentCreate(BaseModel):
    customer_id: int
    staff_id: int
    date: date
    start_time: TimeOfDay
    service_ids: List[int] = Field(..., min_length=1)  # Performed back to back in this order
    appointment_type: str = "scheduled"  # scheduled or walkin
    customer_notes: Optional[str] = None

    @field_validator("appointment_type")
    @classmethod
    def check_type(cls, v):
        if v not in ("scheduled", "walkin"):
            raise ValueError("appointment_type must be 'scheduled' or 'walkin'")
        return v


class RecurringAppointmentCreate(BaseModel):
    customer_id: int
    staff_id: int
    date: date  # First occurrence (the master appointment)
    start_time: TimeOfDay
    service_ids: List[int] = Field(..., min_length=1)
    frequency: str  # daily, weekly, monthly
    interval: int = Field(1, ge=1)
    end_date: Optional[date] = None
    customer_notes: Optional[str] = None


class AppointmentReschedule(BaseModel):
    new_date: date
    new_time: TimeOfDay
    reason: Optional[str] = None
    rescheduled_by: str = "staff"


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None
    cancelled_by: str = "staff"  # customer, staff, salon, system


class AppointmentStatusUpdate(BaseModel):
    """Move an appointment along its lifecycle"""
    status: str  # confirmed, in-progress, completed, cancelled, no-show
    staff_notes: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    appointment_code: Optional[str] = None
    salon_id: int
    customer_id: int
    staff_id: int
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    estimated_duration: int
    subtotal: int
    status: str
    appointment_type: Optional[str] = None
    customer_notes: Optional[str] = None
    staff_notes: Optional[str] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    no_show_at: Optional[datetime] = None
    is_recurring: bool = False
    master_appointment_id: Optional[int] = None
    created_at: datetime
    services: List[AppointmentServiceResponse] = []
    reschedule_history: List[RescheduleHistoryResponse] = []

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    """Paginated list of appointments"""
    appointments: List[AppointmentResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class SkippedOccurrence(BaseModel):
    date: date
    reason: str


class RecurringAppointmentResponse(BaseModel):
    master: AppointmentResponse
    occurrences: List[AppointmentResponse]
    skipped: List[SkippedOccurrence]
    total_created: int


class ConflictSummary(BaseModel):
    id: int
    appointment_code: Optional[str] = None
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    status: str

    class Config:
        from_attributes = True


class AvailabilityCheckResponse(BaseModel):
    available: bool
    reason: Optional[str] = None
    staff_id: int
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    conflicts: List[ConflictSummary] = []


class ConflictCheckRequest(BaseModel):
    staff_id: int
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    exclude_appointment_id: Optional[int] = None


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[ConflictSummary]


# Schedule overview
class ScheduleDay(BaseModel):
    date: date
    is_day_off: bool
    is_default_window: bool
    working_start: TimeOfDay
    working_end: TimeOfDay
    breaks: List[BreakCreate]
    appointments: List[ConflictSummary]
    working_minutes: int
    booked_minutes: int


class StaffScheduleResponse(BaseModel):
    staff_id: int
    start_date: date
    end_date: date
    days: List[ScheduleDay]
    total_appointments: int
    total_working_minutes: int
