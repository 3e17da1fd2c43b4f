from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
from app.api.deps import get_coordinator, get_tenant, unwrap
from app.api.v1.endpoints.staff_availability import available_slots_response
from app.core.database import get_db
from app.core.tenant import TenantSettings
from app.models.models import Appointment, ALL_STATUSES
from app.schemas.schemas import (
    AppointmentCancel, AppointmentCreate, AppointmentListResponse, AppointmentReschedule, AppointmentResponse,
    AppointmentStatusUpdate, AvailableSlotsResponse, ConflictCheckRequest, ConflictCheckResponse,
    RecurringAppointmentCreate, RecurringAppointmentResponse,
)
from app.services.booking_coordinator import BookingCoordinator

router = APIRouter()


@router.get("/", response_model=AppointmentListResponse)
def get_appointments(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    staff_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """
    Get the salon's appointments with pagination and filtering
    - status: one of scheduled, confirmed, in-progress, completed, cancelled, no-show
    - staff_id / customer_id: restrict to one staff member or customer
    - date_from / date_to: inclusive date range
    """
    if status_filter and status_filter not in ALL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status: {status_filter}"
        )

    query = db.query(Appointment).filter(Appointment.salon_id == tenant.salon_id)

    if status_filter:
        query = query.filter(Appointment.status == status_filter)
    if staff_id:
        query = query.filter(Appointment.staff_id == staff_id)
    if customer_id:
        query = query.filter(Appointment.customer_id == customer_id)
    if date_from:
        query = query.filter(Appointment.date >= date_from)
    if date_to:
        query = query.filter(Appointment.date <= date_to)

    # Get total count
    total = query.count()

    # Earliest first, then paginate
    appointments = query.order_by(Appointment.date, Appointment.start_time).offset((page - 1) * per_page).limit(per_page).all()

    return {
        "appointments": appointments,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": (total + per_page - 1) // per_page
    }


@router.get("/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    staff_id: int,
    date: date,
    duration: int = Query(60, description="Total service length in minutes"),
    include_unavailable: bool = False,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Bookable start times for a staff member on a date"""
    return available_slots_response(coordinator, staff_id, date, duration, include_unavailable)


@router.post("/conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    check: ConflictCheckRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """List active appointments overlapping a proposed interval (pass exclude_appointment_id when moving one)"""
    conflicts = unwrap(coordinator.find_conflicts(
        check.staff_id,
        check.date,
        check.start_time,
        check.end_time,
        exclude_appointment_id=check.exclude_appointment_id
    ))
    return {"has_conflicts": bool(conflicts), "conflicts": conflicts}


@router.post("/", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    appointment_data: AppointmentCreate,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """
    Book one or more services back to back.

    The end time is the start time plus the sum of the service durations.
    Returns 409 with the clashing appointments when the interval is taken, or
    when it falls outside the staff member's working window.
    """
    return unwrap(coordinator.create_appointment(
        customer_id=appointment_data.customer_id,
        staff_id=appointment_data.staff_id,
        day=appointment_data.date,
        start_time=appointment_data.start_time,
        services=appointment_data.service_ids,
        appointment_type=appointment_data.appointment_type,
        customer_notes=appointment_data.customer_notes
    ))


@router.post("/recurring", response_model=RecurringAppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_recurring_appointments(
    recurring_data: RecurringAppointmentCreate,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """
    Book a repeating series (daily, weekly or monthly).
    Occurrences that clash are listed under skipped; they are never moved.
    """
    outcome = unwrap(coordinator.create_recurring_appointments(
        customer_id=recurring_data.customer_id,
        staff_id=recurring_data.staff_id,
        day=recurring_data.date,
        start_time=recurring_data.start_time,
        services=recurring_data.service_ids,
        frequency=recurring_data.frequency,
        interval=recurring_data.interval,
        end_date=recurring_data.end_date,
        customer_notes=recurring_data.customer_notes
    ))
    return {
        "master": outcome.master,
        "occurrences": outcome.created,
        "skipped": outcome.skipped,
        "total_created": 1 + len(outcome.created)
    }


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """Get appointment by ID"""
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.salon_id == tenant.salon_id
    ).first()

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )

    return appointment


@router.put("/{appointment_id}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    reschedule_data: AppointmentReschedule,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Move an appointment to a new date/time (same id, history is kept)"""
    return unwrap(coordinator.reschedule_appointment(
        appointment_id,
        reschedule_data.new_date,
        reschedule_data.new_time,
        reason=reschedule_data.reason,
        rescheduled_by=reschedule_data.rescheduled_by
    ))


@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    cancel_data: AppointmentCancel,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Cancel an appointment; completed, cancelled and no-show appointments are rejected"""
    return unwrap(coordinator.cancel_appointment(
        appointment_id,
        reason=cancel_data.reason,
        cancelled_by=cancel_data.cancelled_by
    ))


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Confirm, check in, complete, cancel or mark an appointment as no-show"""
    return unwrap(coordinator.update_status(
        appointment_id,
        status_data.status,
        staff_notes=status_data.staff_notes
    ))
