from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import date, datetime

from app.schemas.hall import HallSummary
from app.services.status import BookingCategory, DateStatus, StatusKind


# Status of one hall on one date
class DateStatusOut(BaseModel):
    status: StatusKind
    reason: Optional[str] = None
    category: Optional[BookingCategory] = None

    @classmethod
    def from_status(cls, status: DateStatus) -> "DateStatusOut":
        return cls(status=status.kind, reason=status.reason, category=status.category)


class AvailabilityRecordOut(DateStatusOut):
    hall_id: int
    date: date


# --- Legacy feed (GET /halls/availability) ---

class AvailabilityItem(BaseModel):
    date: str
    reason: Optional[str] = None
    is_booked: bool
    category: Optional[BookingCategory] = None
    holder: Optional[str] = None
    version: int = 0
    hall: HallSummary


class AvailabilityFeed(BaseModel):
    statusCode: int = 200
    message: str = "Availability fetched successfully"
    data: List[AvailabilityItem]


# --- Repository mutation (PUT /halls/{id}/availability/{date}) ---

class AvailabilityMutation(BaseModel):
    desired_state: StatusKind
    requester: str = Field(min_length=1, max_length=100)
    reason: Optional[str] = Field(None, max_length=200)
    category: Optional[BookingCategory] = None
    # What the caller last read; a mismatch is a 409 and nothing is written
    expected_status: Optional[StatusKind] = None
    expected_version: Optional[int] = Field(None, ge=0)


# --- Calendar month views ---

class CalendarDayOut(DateStatusOut):
    date: date


class CalendarMonth(BaseModel):
    hall_id: int
    surface: str
    year: int
    month: int
    can_go_prev: bool
    can_go_next: bool
    days: List[CalendarDayOut]


class HallCalendar(BaseModel):
    hall: HallSummary
    description: Optional[str] = None
    images: List[str] = []
    days: List[CalendarDayOut]


class HallOverview(BaseModel):
    surface: str
    year: int
    month: int
    can_go_prev: bool
    can_go_next: bool
    halls: List[HallCalendar]


# --- Audit trail (GET /admin/availability/events) ---

class AvailabilityEvent(BaseModel):
    id: int
    hall_id: int
    date: date
    from_status: StatusKind
    to_status: StatusKind
    reason: Optional[str] = None
    holder: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
