from fastapi import APIRouter

# Public: hall directory, availability feed, calendars
from app.api.v1.public.halls import router as halls_router

# Public: date selection, confirm, release, cancel
from app.api.v1.public.bookings import router as bookings_router

# Admin
from app.api.v1.admin.halls import router as admin_halls_router
from app.api.v1.admin.availability import router as admin_availability_router

api_router = APIRouter()

# --- Public ---
api_router.include_router(halls_router)
api_router.include_router(bookings_router)

# --- Admin ---
api_router.include_router(admin_halls_router)
api_router.include_router(admin_availability_router)
