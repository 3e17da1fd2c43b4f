from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import (
    BookingError, ConflictError, InvalidStateError, InvalidTimeFormat, NotFoundError, TimeOutOfRange,
)
from app.core.tenant import TenantSettings, load_tenant_settings
from app.services.booking_coordinator import BookingCoordinator, BookingResult

# Most specific first: UnavailableError is a ConflictError
ERROR_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (InvalidTimeFormat, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TimeOutOfRange, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def http_error(error: BookingError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.to_dict())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_dict())


def unwrap(result: BookingResult):
    """Return the result's value or raise the matching HTTPException"""
    if not result.ok:
        raise http_error(result.error)
    return result.value


def get_tenant(
    salon_id: int = Header(..., alias="X-Salon-ID"),
    db: Session = Depends(get_db),
) -> TenantSettings:
    """Resolve the calling salon from the X-Salon-ID header"""
    try:
        return load_tenant_settings(db, salon_id)
    except NotFoundError as e:
        raise http_error(e)


def get_coordinator(
    tenant: TenantSettings = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> BookingCoordinator:
    return BookingCoordinator(db, tenant.salon_id, tenant=tenant)
