import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_coordinator, get_tenant, unwrap
from app.core.database import get_db
from app.core.tenant import TenantSettings
from app.models.models import ActivityLog, AvailabilityBreak, Staff, StaffAvailability
from app.schemas.schemas import (
    AvailabilityCheckResponse, AvailableSlotsResponse, BulkAvailabilityCreate, BulkAvailabilityResponse,
    StaffAvailabilityCreate, StaffAvailabilityResponse, StaffAvailabilityUpdate, StaffScheduleResponse,
)
from app.services.booking_coordinator import BookingCoordinator
from app.utils.slot_manager import resolve_working_window, validate_window_layout
from app.utils.time_grid import to_minutes

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_staff_or_404(db: Session, salon_id: int, staff_id: int) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id, Staff.salon_id == salon_id).first()
    if not staff:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Staff member not found"
        )
    return staff


def _get_availability_or_404(db: Session, salon_id: int, availability_id: int) -> StaffAvailability:
    availability = db.query(StaffAvailability).filter(
        StaffAvailability.id == availability_id,
        StaffAvailability.salon_id == salon_id
    ).first()
    if not availability:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Staff availability not found"
        )
    return availability


def _log_activity(db: Session, salon_id: int, action: str, availability: StaffAvailability, description: str):
    db.add(ActivityLog(
        salon_id=salon_id,
        action=action,
        entity_type="staff_availability",
        entity_id=availability.id,
        description=description
    ))


def available_slots_response(
    coordinator: BookingCoordinator,
    staff_id: int,
    day: date,
    duration: int,
    include_unavailable: bool = False
) -> dict:
    """Slots plus the working window they were generated from"""
    slots = unwrap(coordinator.get_available_slots(staff_id, day, duration, include_unavailable=include_unavailable))
    window = resolve_working_window(coordinator.db, coordinator.tenant, staff_id, day)
    return {
        "staff_id": staff_id,
        "date": day,
        "duration": duration,
        "is_day_off": window.is_day_off,
        "is_default_window": window.is_default,
        "working_start": window.start,
        "working_end": window.end,
        "slot_duration": window.slot_duration,
        "slots": slots,
        "total_slots": len([s for s in slots if s.available])
    }


@router.get("/", response_model=List[StaffAvailabilityResponse])
def list_availability(
    start_date: date,
    end_date: date,
    staff_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """Availability records of the salon in a date range, optionally for one staff member"""
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date"
        )

    query = db.query(StaffAvailability).filter(
        StaffAvailability.salon_id == tenant.salon_id,
        StaffAvailability.date >= start_date,
        StaffAvailability.date <= end_date
    )
    if staff_id:
        query = query.filter(StaffAvailability.staff_id == staff_id)

    return query.order_by(StaffAvailability.date, StaffAvailability.staff_id).offset((page - 1) * per_page).limit(per_page).all()


@router.get("/slots/{staff_id}", response_model=AvailableSlotsResponse)
def get_staff_slots(
    staff_id: int,
    date: date,
    duration: int = Query(60, description="Service length in minutes"),
    include_unavailable: bool = False,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """
    Bookable start times for a staff member.
    Falls back to salon hours when no availability record exists for the date.
    """
    return available_slots_response(coordinator, staff_id, date, duration, include_unavailable)


@router.get("/check/{staff_id}", response_model=AvailabilityCheckResponse)
def check_staff_availability(
    staff_id: int,
    date: date,
    start_time: str,
    end_time: str,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Check whether a staff member can take a specific time range"""
    check = unwrap(coordinator.check_availability(staff_id, date, start_time, end_time))
    return {
        "available": check.available,
        "reason": check.reason,
        "staff_id": staff_id,
        "date": date,
        "start_time": start_time,
        "end_time": end_time,
        "conflicts": check.conflicts
    }


@router.get("/schedule/{staff_id}", response_model=StaffScheduleResponse)
def get_staff_schedule(
    staff_id: int,
    start_date: date,
    end_date: date,
    coordinator: BookingCoordinator = Depends(get_coordinator)
):
    """Day-by-day working window and bookings for a staff member"""
    schedule = unwrap(coordinator.get_staff_schedule(staff_id, start_date, end_date))

    days = []
    for day in schedule:
        window = day["window"]
        appointments = day["appointments"]
        days.append({
            "date": day["date"],
            "is_day_off": window.is_day_off,
            "is_default_window": window.is_default,
            "working_start": window.start,
            "working_end": window.end,
            "breaks": [
                {"start_time": b.start, "end_time": b.end, "reason": b.reason}
                for b in window.breaks
            ],
            "appointments": appointments,
            "working_minutes": day["working_minutes"],
            "booked_minutes": sum(to_minutes(a.end_time) - to_minutes(a.start_time) for a in appointments)
        })

    return {
        "staff_id": staff_id,
        "start_date": start_date,
        "end_date": end_date,
        "days": days,
        "total_appointments": sum(len(d["appointments"]) for d in days),
        "total_working_minutes": sum(d["working_minutes"] for d in days)
    }


@router.get("/{availability_id}", response_model=StaffAvailabilityResponse)
def get_availability(
    availability_id: int,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    return _get_availability_or_404(db, tenant.salon_id, availability_id)


@router.post("/", response_model=StaffAvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    availability_data: StaffAvailabilityCreate,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """Create the availability record for one staff member and date"""
    _get_staff_or_404(db, tenant.salon_id, availability_data.staff_id)

    existing = db.query(StaffAvailability).filter(
        StaffAvailability.salon_id == tenant.salon_id,
        StaffAvailability.staff_id == availability_data.staff_id,
        StaffAvailability.date == availability_data.date
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Availability already exists for this staff member on this date"
        )

    data = availability_data.model_dump(exclude={"breaks"})
    availability = StaffAvailability(salon_id=tenant.salon_id, **data)
    availability.breaks = [AvailabilityBreak(**b.model_dump()) for b in availability_data.breaks]
    db.add(availability)
    db.flush()

    _log_activity(
        db, tenant.salon_id, "created", availability,
        f"Availability set for staff {availability.staff_id} on {availability.date.isoformat()}"
    )
    db.commit()
    db.refresh(availability)

    logger.info(f"Availability {availability.id} created for staff {availability.staff_id} on {availability.date}")
    return availability


@router.post("/bulk", response_model=BulkAvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_bulk_availability(
    bulk_data: BulkAvailabilityCreate,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """
    Apply one working-day template to every date in a range.
    Dates that already have a record, excluded dates and dates outside the
    requested weekdays are skipped.
    """
    _get_staff_or_404(db, tenant.salon_id, bulk_data.staff_id)

    existing_dates = {
        row.date for row in db.query(StaffAvailability.date).filter(
            StaffAvailability.salon_id == tenant.salon_id,
            StaffAvailability.staff_id == bulk_data.staff_id,
            StaffAvailability.date >= bulk_data.start_date,
            StaffAvailability.date <= bulk_data.end_date
        ).all()
    }
    excluded = set(bulk_data.exclude_dates)
    template = bulk_data.template.model_dump(exclude={"breaks"})

    created = 0
    skipped = []
    day = bulk_data.start_date
    while day <= bulk_data.end_date:
        wanted = day not in excluded and (bulk_data.weekdays is None or day.weekday() in bulk_data.weekdays)
        if wanted and day in existing_dates:
            skipped.append(day)
        elif wanted:
            availability = StaffAvailability(
                salon_id=tenant.salon_id,
                staff_id=bulk_data.staff_id,
                date=day,
                **template
            )
            availability.breaks = [AvailabilityBreak(**b.model_dump()) for b in bulk_data.template.breaks]
            db.add(availability)
            created += 1
        day += timedelta(days=1)

    db.add(ActivityLog(
        salon_id=tenant.salon_id,
        action="bulk_created",
        entity_type="staff_availability",
        entity_id=bulk_data.staff_id,
        description=f"Created {created} availability records for staff {bulk_data.staff_id} "
                    f"({bulk_data.start_date.isoformat()} to {bulk_data.end_date.isoformat()})"
    ))
    db.commit()

    logger.info(f"Bulk availability for staff {bulk_data.staff_id}: {created} created, {len(skipped)} already existed")
    return {
        "records_created": created,
        "skipped_dates": skipped,
        "staff_id": bulk_data.staff_id,
        "start_date": bulk_data.start_date,
        "end_date": bulk_data.end_date
    }


@router.put("/{availability_id}", response_model=StaffAvailabilityResponse)
def update_availability(
    availability_id: int,
    availability_data: StaffAvailabilityUpdate,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """Update an availability record; existing bookings are not re-validated"""
    availability = _get_availability_or_404(db, tenant.salon_id, availability_id)
    # Explicit nulls clear the nullable fields (daily cap, day-off reason, notes)
    update_data = availability_data.model_dump(exclude_unset=True, exclude={"breaks"})

    working_start = update_data.get("working_start", availability.working_start)
    working_end = update_data.get("working_end", availability.working_end)
    slot_duration = update_data.get("slot_duration", availability.slot_duration)
    if availability_data.breaks is not None:
        breaks = [(b.start_time, b.end_time) for b in availability_data.breaks]
    else:
        breaks = [(b.start_time, b.end_time) for b in availability.breaks]

    try:
        validate_window_layout(working_start, working_end, breaks, slot_duration)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    for field, value in update_data.items():
        setattr(availability, field, value)
    if availability_data.breaks is not None:
        availability.breaks = [AvailabilityBreak(**b.model_dump()) for b in availability_data.breaks]

    _log_activity(
        db, tenant.salon_id, "updated", availability,
        f"Availability updated for staff {availability.staff_id} on {availability.date.isoformat()}"
    )
    db.commit()
    db.refresh(availability)
    return availability


@router.delete("/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    availability_id: int,
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db)
):
    """Delete an availability record; the staff member falls back to salon hours for that date"""
    availability = _get_availability_or_404(db, tenant.salon_id, availability_id)

    _log_activity(
        db, tenant.salon_id, "deleted", availability,
        f"Availability removed for staff {availability.staff_id} on {availability.date.isoformat()}"
    )
    db.delete(availability)
    db.commit()
    return None
