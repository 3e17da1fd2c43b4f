from fastapi import APIRouter
from app.api.v1.endpoints import appointments, staff_availability

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(staff_availability.router, prefix="/staff-availability", tags=["staff-availability"])
