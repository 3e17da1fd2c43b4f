"""
Per-salon booking configuration.

Built once per request from the salon row, with platform settings filling any
value the salon leaves unset. Frozen so the engine never mutates shared state.
"""
from dataclasses import dataclass
from datetime import time

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError
from app.models.models import Salon
from app.utils.time_grid import parse_time

MIN_SLOT_DURATION = 15


@dataclass(frozen=True)
class TenantSettings:
    salon_id: int
    business_open: time
    business_close: time
    slot_duration: int
    cancellation_window_minutes: int
    reschedule_window_minutes: int
    recurring_max_occurrences: int


def _hour_or_default(hour, default: time) -> time:
    if hour is None or not 0 <= int(hour) <= 23:
        return default
    return time(int(hour), 0)


def load_tenant_settings(db: Session, salon_id: int) -> TenantSettings:
    salon = db.query(Salon).filter(Salon.id == salon_id, Salon.is_active == 1).first()
    if not salon:
        raise NotFoundError("Salon", salon_id)

    business_open = _hour_or_default(salon.opening_hour, parse_time(settings.DEFAULT_WORKING_START))
    business_close = _hour_or_default(salon.closing_hour, parse_time(settings.DEFAULT_WORKING_END))
    if business_open >= business_close:
        # Misconfigured salon hours fall back to the platform window
        business_open = parse_time(settings.DEFAULT_WORKING_START)
        business_close = parse_time(settings.DEFAULT_WORKING_END)

    slot_duration = salon.default_slot_duration or settings.DEFAULT_SLOT_DURATION
    slot_duration = max(slot_duration, MIN_SLOT_DURATION)

    cancellation_window = salon.cancellation_window_minutes
    if cancellation_window is None:
        cancellation_window = settings.CANCELLATION_WINDOW_MINUTES

    reschedule_window = salon.reschedule_window_minutes
    if reschedule_window is None:
        reschedule_window = settings.RESCHEDULE_WINDOW_MINUTES

    recurring_cap = salon.recurring_max_occurrences or settings.RECURRING_MAX_OCCURRENCES

    return TenantSettings(
        salon_id=salon.id,
        business_open=business_open,
        business_close=business_close,
        slot_duration=slot_duration,
        cancellation_window_minutes=max(cancellation_window, 0),
        reschedule_window_minutes=max(reschedule_window, 0),
        recurring_max_occurrences=recurring_cap,
    )
