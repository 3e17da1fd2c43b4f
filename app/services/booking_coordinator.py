"""
Booking Coordinator - creates, moves, cancels and advances appointments.

Appointment lifecycle:
    scheduled -> confirmed -> in-progress -> completed
    cancelled / no-show reachable from any non-terminal status
    reschedule returns any non-terminal appointment to scheduled

Every public operation returns a BookingResult. Engine failures (unknown ids,
conflicts, illegal transitions, bad times) come back as typed errors on the
result instead of propagating, so the HTTP layer can map them one to one.
Conflicts are never resolved automatically; the caller picks another time.

Check-then-commit for a staff member's day runs under that (staff, date) lock.
"""
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from app.core.errors import (
    BookingError, ConflictError, InvalidStateError, NotFoundError, UnavailableError,
)
from app.core.locks import StaffDayLocks, booking_locks
from app.core.tenant import TenantSettings, load_tenant_settings
from app.models.models import (
    ActivityLog, Appointment, AppointmentService, Customer, RescheduleHistory, Service, Staff,
    ACTIVE_STATUSES, ALL_STATUSES, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_CONFIRMED,
    STATUS_IN_PROGRESS, STATUS_NO_SHOW, STATUS_SCHEDULED,
)
from app.services import conflict_detector
from app.utils import slot_manager
from app.utils.time_grid import add_minutes, ensure_time, format_time, to_minutes

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BookingResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[BookingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ServiceLine:
    service_id: int
    duration: int
    price: int


@dataclass
class AvailabilityCheck:
    available: bool
    reason: Optional[str] = None
    conflicts: List[Appointment] = field(default_factory=list)


@dataclass
class RecurringOutcome:
    master: Appointment
    created: List[Appointment] = field(default_factory=list)
    skipped: List[Dict] = field(default_factory=list)


# event -> (allowed source statuses, target status)
TRANSITIONS = {
    "confirm": ((STATUS_SCHEDULED,), STATUS_CONFIRMED),
    "check_in": ((STATUS_SCHEDULED, STATUS_CONFIRMED), STATUS_IN_PROGRESS),
    "complete": ((STATUS_IN_PROGRESS,), STATUS_COMPLETED),
    "cancel": (ACTIVE_STATUSES, STATUS_CANCELLED),
    "no_show": (ACTIVE_STATUSES, STATUS_NO_SHOW),
    "reschedule": (ACTIVE_STATUSES, STATUS_SCHEDULED),
}

STATUS_EVENTS = {
    STATUS_CONFIRMED: "confirm",
    STATUS_IN_PROGRESS: "check_in",
    STATUS_COMPLETED: "complete",
    STATUS_CANCELLED: "cancel",
    STATUS_NO_SHOW: "no_show",
}

RECURRING_FREQUENCIES = ("daily", "weekly", "monthly")


def _guarded(operation: Callable[..., T]) -> Callable[..., BookingResult[T]]:
    """Convert engine exceptions into BookingResult errors and roll back the session"""
    def wrapper(self, *args, **kwargs) -> BookingResult[T]:
        try:
            return BookingResult(value=operation(self, *args, **kwargs))
        except BookingError as e:
            self.db.rollback()
            logger.info(f"{operation.__name__} rejected: {e.code} - {e.message}")
            return BookingResult(error=e)
    wrapper.__name__ = operation.__name__
    wrapper.__doc__ = operation.__doc__
    return wrapper


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class BookingCoordinator:
    """Availability and booking operations for one salon (tenant)"""

    def __init__(
        self,
        db: Session,
        salon_id: int,
        tenant: Optional[TenantSettings] = None,
        locks: StaffDayLocks = booking_locks,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.salon_id = salon_id
        self.locks = locks
        self.clock = clock
        self._tenant = tenant

    @property
    def tenant(self) -> TenantSettings:
        if self._tenant is None:
            self._tenant = load_tenant_settings(self.db, self.salon_id)
        return self._tenant

    # ---------- collaborator lookups ----------

    def _get_staff(self, staff_id: int) -> Staff:
        staff = self.db.query(Staff).filter(
            Staff.id == staff_id,
            Staff.salon_id == self.salon_id,
            Staff.is_active == 1,
        ).first()
        if not staff:
            raise NotFoundError("Staff member", staff_id)
        return staff

    def _get_customer(self, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.salon_id == self.salon_id,
        ).first()
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def _resolve_services(self, requests: Sequence) -> List[ServiceLine]:
        if not requests:
            raise InvalidStateError("At least one service is required")
        lines = []
        for request in requests:
            service_id = getattr(request, "service_id", request)
            service = self.db.query(Service).filter(
                Service.id == service_id,
                Service.salon_id == self.salon_id,
                Service.is_active == 1,
            ).first()
            if not service:
                raise NotFoundError("Service", service_id)
            lines.append(ServiceLine(service.id, service.duration_minutes, service.price or 0))
        return lines

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.salon_id == self.salon_id,
        ).first()
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    # ---------- shared checks ----------

    def _assert_bookable(
        self,
        staff_id: int,
        day: date,
        start: time,
        end: time,
        exclude_appointment_id: Optional[int] = None,
    ):
        """Raise unless [start, end) fits the staff window and collides with nothing"""
        window = slot_manager.resolve_working_window(self.db, self.tenant, staff_id, day)
        others = [
            apt for apt in conflict_detector.active_appointments_for_day(self.db, staff_id, day)
            if apt.id != exclude_appointment_id
        ]
        reason = slot_manager.check_interval(window, start, end, others)
        if reason:
            raise UnavailableError(reason)

        conflicts = conflict_detector.find_conflicts(
            self.db, staff_id, day, start, end, exclude_appointment_id=exclude_appointment_id
        )
        if conflicts:
            raise ConflictError(
                f"{format_time(start)}-{format_time(end)} on {day.isoformat()} "
                f"overlaps {len(conflicts)} existing appointment(s)",
                conflicts,
            )

    def _transition(self, appointment: Appointment, event: str) -> str:
        sources, target = TRANSITIONS[event]
        if appointment.status not in sources:
            raise InvalidStateError(
                f"Cannot {event.replace('_', '-')} an appointment that is {appointment.status}"
            )
        previous = appointment.status
        appointment.status = target
        return previous

    def _assert_outside_window(self, appointment: Appointment, minutes: int, action: str):
        """Raise when the appointment starts within `minutes` of now (0 = no window)"""
        if not minutes:
            return
        starts_at = datetime.combine(appointment.date, appointment.start_time)
        if starts_at - self.clock() < timedelta(minutes=minutes):
            raise InvalidStateError(
                f"Appointments cannot be {action} within {minutes} minutes of their start"
            )

    def _cancel(self, appointment: Appointment, reason: Optional[str], cancelled_by: str):
        if appointment.is_terminal:
            raise InvalidStateError(f"Appointment is already {appointment.status}")
        self._assert_outside_window(appointment, self.tenant.cancellation_window_minutes, "cancelled")

        previous = self._transition(appointment, "cancel")
        appointment.cancellation_reason = reason
        appointment.cancelled_at = self.clock()
        appointment.cancelled_by = cancelled_by
        self._log("cancelled", appointment, f"Cancelled by {cancelled_by} (was: {previous}). Reason: {reason or '-'}")

    def _log(self, action: str, appointment: Appointment, description: str):
        self.db.add(ActivityLog(
            salon_id=self.salon_id,
            action=action,
            entity_type="appointment",
            entity_id=appointment.id,
            description=description,
        ))

    def _persist_new(
        self,
        customer_id: int,
        staff_id: int,
        day: date,
        start: time,
        lines: List[ServiceLine],
        appointment_type: str,
        customer_notes: Optional[str],
        master_appointment_id: Optional[int] = None,
        is_recurring: bool = False,
    ) -> Appointment:
        duration = sum(line.duration for line in lines)
        end = add_minutes(start, duration)
        self._assert_bookable(staff_id, day, start, end)

        appointment = Appointment(
            salon_id=self.salon_id,
            customer_id=customer_id,
            staff_id=staff_id,
            date=day,
            start_time=start,
            end_time=end,
            estimated_duration=duration,
            subtotal=sum(line.price for line in lines),
            status=STATUS_SCHEDULED,
            appointment_type=appointment_type,
            customer_notes=customer_notes,
            is_recurring=is_recurring,
            master_appointment_id=master_appointment_id,
            services=[
                AppointmentService(service_id=line.service_id, position=i, duration=line.duration, price=line.price)
                for i, line in enumerate(lines)
            ],
        )
        self.db.add(appointment)
        self.db.flush()
        appointment.appointment_code = f"APT{appointment.id:06d}"
        self._log(
            "created", appointment,
            f"Booked {appointment.appointment_code} with staff {staff_id} on {day.isoformat()} "
            f"{format_time(start)}-{format_time(end)}",
        )
        return appointment

    # ---------- public operations ----------

    @_guarded
    def get_available_slots(
        self,
        staff_id: int,
        day: date,
        duration_minutes: int,
        include_unavailable: bool = False,
    ) -> List[slot_manager.TimeSlot]:
        """Bookable start times for staff on day for a service of duration_minutes"""
        self._get_staff(staff_id)
        window = slot_manager.resolve_working_window(self.db, self.tenant, staff_id, day)
        bookings = conflict_detector.active_appointments_for_day(self.db, staff_id, day)
        return slot_manager.generate_slots(window, duration_minutes, bookings, include_unavailable=include_unavailable)

    @_guarded
    def check_availability(self, staff_id: int, day: date, start_time, end_time) -> AvailabilityCheck:
        """Whether staff could take [start_time, end_time) on day, and why not"""
        start, end = ensure_time(start_time), ensure_time(end_time)
        if to_minutes(start) >= to_minutes(end):
            raise InvalidStateError("Start time must be before end time")
        self._get_staff(staff_id)
        try:
            self._assert_bookable(staff_id, day, start, end)
        except ConflictError as e:
            return AvailabilityCheck(available=False, reason=e.message, conflicts=e.conflicting_appointments)
        return AvailabilityCheck(available=True)

    @_guarded
    def find_conflicts(
        self,
        staff_id: int,
        day: date,
        start_time,
        end_time,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        start, end = ensure_time(start_time), ensure_time(end_time)
        if to_minutes(start) >= to_minutes(end):
            raise InvalidStateError("Start time must be before end time")
        return conflict_detector.find_conflicts(
            self.db, staff_id, day, start, end, exclude_appointment_id=exclude_appointment_id
        )

    @_guarded
    def create_appointment(
        self,
        customer_id: int,
        staff_id: int,
        day: date,
        start_time,
        services: Sequence,
        appointment_type: str = "scheduled",
        customer_notes: Optional[str] = None,
    ) -> Appointment:
        """Book services back to back starting at start_time"""
        start = ensure_time(start_time)
        self._get_customer(customer_id)
        self._get_staff(staff_id)
        lines = self._resolve_services(services)

        with self.locks.hold([(staff_id, day)]):
            appointment = self._persist_new(
                customer_id, staff_id, day, start, lines, appointment_type, customer_notes
            )
            self.db.commit()

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.appointment_code} created for salon {self.salon_id}")
        return appointment

    @_guarded
    def reschedule_appointment(
        self,
        appointment_id: int,
        new_date: date,
        new_time,
        reason: Optional[str] = None,
        rescheduled_by: str = "staff",
    ) -> Appointment:
        """Move an appointment, keeping its id and services; history is appended"""
        start = ensure_time(new_time)
        appointment = self._get_appointment(appointment_id)
        if appointment.is_terminal:
            raise InvalidStateError(f"Cannot reschedule an appointment that is {appointment.status}")
        self._assert_outside_window(appointment, self.tenant.reschedule_window_minutes, "rescheduled")

        end = add_minutes(start, appointment.estimated_duration)
        keys = [(appointment.staff_id, appointment.date), (appointment.staff_id, new_date)]
        with self.locks.hold(keys):
            # Re-read under the lock: another request may have moved or closed it
            self.db.refresh(appointment)
            original_date, original_time = appointment.date, appointment.start_time
            self._assert_bookable(appointment.staff_id, new_date, start, end, exclude_appointment_id=appointment.id)
            self._transition(appointment, "reschedule")

            appointment.reschedule_history.append(RescheduleHistory(
                original_date=original_date,
                original_time=original_time,
                new_date=new_date,
                new_time=start,
                reason=reason or "Schedule change",
                rescheduled_by=rescheduled_by,
                rescheduled_at=self.clock(),
            ))
            appointment.date = new_date
            appointment.start_time = start
            appointment.end_time = end
            self._log(
                "rescheduled", appointment,
                f"Moved from {original_date.isoformat()} {format_time(original_time)} "
                f"to {new_date.isoformat()} {format_time(start)}",
            )
            self.db.commit()

        self.db.refresh(appointment)
        return appointment

    @_guarded
    def cancel_appointment(
        self,
        appointment_id: int,
        reason: Optional[str] = None,
        cancelled_by: str = "staff",
    ) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        self._cancel(appointment, reason, cancelled_by)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    @_guarded
    def update_status(self, appointment_id: int, new_status: str, staff_notes: Optional[str] = None) -> Appointment:
        """Advance an appointment through the lifecycle (confirm, check-in, complete, no-show, cancel)"""
        if new_status not in ALL_STATUSES:
            raise InvalidStateError(f"Unknown status: {new_status}")
        if new_status == STATUS_SCHEDULED:
            raise InvalidStateError("Use reschedule to return an appointment to scheduled")

        appointment = self._get_appointment(appointment_id)
        if new_status == STATUS_CANCELLED:
            # Same rules as cancel_appointment; staff_notes doubles as the reason
            self._cancel(appointment, staff_notes, "staff")
            if staff_notes:
                appointment.staff_notes = staff_notes
            self.db.commit()
            self.db.refresh(appointment)
            return appointment

        previous = self._transition(appointment, STATUS_EVENTS[new_status])

        now = self.clock()
        if new_status == STATUS_IN_PROGRESS:
            appointment.actual_start_time = now
        elif new_status == STATUS_COMPLETED:
            appointment.actual_end_time = now
        elif new_status == STATUS_NO_SHOW:
            appointment.no_show_at = now
        if staff_notes:
            appointment.staff_notes = staff_notes

        self._log(new_status, appointment, f"Status changed from {previous} to {new_status}")
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    @_guarded
    def create_recurring_appointments(
        self,
        customer_id: int,
        staff_id: int,
        day: date,
        start_time,
        services: Sequence,
        frequency: str,
        interval: int = 1,
        end_date: Optional[date] = None,
        customer_notes: Optional[str] = None,
    ) -> RecurringOutcome:
        """
        Book a master appointment plus its repeats.

        Repeats stop at end_date (default one year out) or after the salon's
        recurring cap, whichever comes first. A repeat that clashes is
        reported in skipped rather than moved; the master must be bookable.
        """
        if frequency not in RECURRING_FREQUENCIES:
            raise InvalidStateError(f"Frequency must be one of {', '.join(RECURRING_FREQUENCIES)}")
        if interval < 1:
            raise InvalidStateError("Interval must be a positive integer")

        start = ensure_time(start_time)
        self._get_customer(customer_id)
        self._get_staff(staff_id)
        lines = self._resolve_services(services)
        last_day = end_date or day + timedelta(days=365)
        cap = self.tenant.recurring_max_occurrences

        occurrences = []
        step = 1
        while len(occurrences) < cap:
            if frequency == "daily":
                next_day = day + timedelta(days=interval * step)
            elif frequency == "weekly":
                next_day = day + timedelta(weeks=interval * step)
            else:
                next_day = add_months(day, interval * step)
            if next_day > last_day:
                break
            occurrences.append(next_day)
            step += 1

        with self.locks.hold([(staff_id, d) for d in [day] + occurrences]):
            master = self._persist_new(
                customer_id, staff_id, day, start, lines, "scheduled", customer_notes, is_recurring=True
            )
            outcome = RecurringOutcome(master=master)
            for occurrence in occurrences:
                # _persist_new checks before it adds, so a rejected repeat leaves nothing pending
                try:
                    outcome.created.append(self._persist_new(
                        customer_id, staff_id, occurrence, start, lines, "scheduled", customer_notes,
                        master_appointment_id=master.id, is_recurring=True,
                    ))
                except ConflictError as e:
                    outcome.skipped.append({"date": occurrence, "reason": e.message})
            self.db.commit()

        if occurrences and len(occurrences) == cap:
            logger.info(f"Recurring series for {master.appointment_code} stopped at the cap of {cap} repeats")
        logger.info(
            f"Recurring series {master.appointment_code}: {len(outcome.created)} repeats booked, "
            f"{len(outcome.skipped)} skipped"
        )
        return outcome

    @_guarded
    def get_staff_schedule(self, staff_id: int, start_date: date, end_date: date) -> List[Dict]:
        """Per-day working window, bookings and working minutes for a date range"""
        if end_date < start_date:
            raise InvalidStateError("End date must not be before start date")
        if (end_date - start_date).days > 62:
            raise InvalidStateError("Schedule range is limited to 62 days")
        self._get_staff(staff_id)

        schedule = []
        day = start_date
        while day <= end_date:
            window = slot_manager.resolve_working_window(self.db, self.tenant, staff_id, day)
            bookings = conflict_detector.active_appointments_for_day(self.db, staff_id, day)
            schedule.append({
                "date": day,
                "window": window,
                "appointments": bookings,
                "working_minutes": slot_manager.total_working_minutes(window),
            })
            day += timedelta(days=1)
        return schedule
