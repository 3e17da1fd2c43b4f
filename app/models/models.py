from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, Time, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from app.core.database import Base


# Appointment statuses
STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no-show"

ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_IN_PROGRESS)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)
ALL_STATUSES = ACTIVE_STATUSES + TERMINAL_STATUSES


# ==================== TENANT & COLLABORATORS ====================

class Salon(Base):
    __tablename__ = "salons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)  # Unique identifier for salon URL
    phone = Column(String)
    email = Column(String, unique=True, index=True)
    opening_hour = Column(Integer, default=9)  # Opening hour (0-23), default 9 AM
    closing_hour = Column(Integer, default=18)  # Closing hour (0-23), default 6 PM
    default_slot_duration = Column(Integer, nullable=True)  # Minutes; NULL = platform default
    cancellation_window_minutes = Column(Integer, nullable=True)  # NULL = platform default
    reschedule_window_minutes = Column(Integer, nullable=True)  # NULL = platform default
    recurring_max_occurrences = Column(Integer, nullable=True)  # NULL = platform default
    is_active = Column(Integer, default=1)  # 1 for active, 0 for inactive
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    staff = relationship("Staff", back_populates="salon", cascade="all, delete-orphan")
    services = relationship("Service", back_populates="salon", cascade="all, delete-orphan")
    customers = relationship("Customer", back_populates="salon", cascade="all, delete-orphan")


class Staff(Base):
    """Stylist / therapist who can be booked"""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    position = Column(String, nullable=True)  # stylist, therapist, receptionist, ...
    is_active = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    salon = relationship("Salon", back_populates="staff")
    availability = relationship("StaffAvailability", back_populates="staff", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="staff")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    salon = relationship("Salon", back_populates="customers")
    appointments = relationship("Appointment", back_populates="customer")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    price = Column(Integer, default=0)  # Price in cents
    duration_minutes = Column(Integer, nullable=False)  # Duration in minutes
    is_active = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    salon = relationship("Salon", back_populates="services")


# ==================== AVAILABILITY ====================

class StaffAvailability(Base):
    """
    Working hours, breaks and day-off flag for one staff member on one calendar date.
    Written by staff/managers; read-only to the booking engine.
    """
    __tablename__ = "staff_availability"
    __table_args__ = (
        UniqueConstraint("salon_id", "staff_id", "date", name="uq_staff_availability_day"),
        Index("ix_staff_availability_salon_date", "salon_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    is_day_off = Column(Boolean, default=False, nullable=False)
    day_off_reason = Column(String, nullable=True)  # weekly_off, vacation, sick_leave, personal_leave, public_holiday, other

    working_start = Column(Time, nullable=False)
    working_end = Column(Time, nullable=False)
    slot_duration = Column(Integer, default=60, nullable=False)  # Grid granularity in minutes (>= 15)
    max_bookings = Column(Integer, default=1, nullable=False)  # Per-slot capacity ceiling
    max_appointments = Column(Integer, nullable=True)  # Daily cap, NULL = unlimited
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff = relationship("Staff", back_populates="availability")
    breaks = relationship(
        "AvailabilityBreak",
        back_populates="availability",
        cascade="all, delete-orphan",
        order_by="AvailabilityBreak.start_time",
    )


class AvailabilityBreak(Base):
    __tablename__ = "availability_breaks"

    id = Column(Integer, primary_key=True, index=True)
    availability_id = Column(Integer, ForeignKey("staff_availability.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(String, default="break")  # break, lunch, meeting, training, personal, other

    availability = relationship("StaffAvailability", back_populates="breaks")


# ==================== APPOINTMENTS ====================

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_staff_date", "staff_id", "date"),
        Index("ix_appointments_salon_status_date", "salon_id", "status", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_code = Column(String, unique=True, index=True, nullable=True)  # APT000001, set after insert
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # start_time + sum of service durations
    estimated_duration = Column(Integer, nullable=False)  # Minutes
    subtotal = Column(Integer, default=0)  # Sum of service prices in cents

    status = Column(String, default=STATUS_SCHEDULED, nullable=False)  # scheduled, confirmed, in-progress, completed, cancelled, no-show
    appointment_type = Column(String, default="scheduled")  # scheduled or walkin
    customer_notes = Column(Text, nullable=True)
    staff_notes = Column(Text, nullable=True)

    actual_start_time = Column(DateTime, nullable=True)  # Set on check-in
    actual_end_time = Column(DateTime, nullable=True)  # Set on completion
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String, nullable=True)  # customer, staff, salon, system
    no_show_at = Column(DateTime, nullable=True)

    is_recurring = Column(Boolean, default=False)
    master_appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="appointments")
    staff = relationship("Staff", back_populates="appointments")
    services = relationship(
        "AppointmentService",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentService.position",
    )
    reschedule_history = relationship(
        "RescheduleHistory",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="RescheduleHistory.id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AppointmentService(Base):
    """Service line of an appointment, with duration and price frozen at booking time"""
    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    duration = Column(Integer, nullable=False)  # Minutes
    price = Column(Integer, nullable=False, default=0)  # Cents

    appointment = relationship("Appointment", back_populates="services")
    service = relationship("Service")


class RescheduleHistory(Base):
    """Append-only log of date/time moves"""
    __tablename__ = "reschedule_history"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    original_date = Column(Date, nullable=False)
    original_time = Column(Time, nullable=False)
    new_date = Column(Date, nullable=False)
    new_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    rescheduled_by = Column(String, default="staff")  # customer, staff, salon
    rescheduled_at = Column(DateTime, default=datetime.utcnow)

    appointment = relationship("Appointment", back_populates="reschedule_history")


class ActivityLog(Base):
    """Audit trail of appointment and availability changes"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id", ondelete="CASCADE"), nullable=True)
    action = Column(String, nullable=False)  # created, rescheduled, cancelled, confirmed, checked_in, ...
    entity_type = Column(String, nullable=True)  # appointment, staff_availability
    entity_id = Column(Integer, nullable=True)  # ID of the affected entity
    description = Column(Text, nullable=True)  # Human-readable description
    created_at = Column(DateTime, default=datetime.utcnow)
