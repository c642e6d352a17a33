from typing import Optional
from pydantic import BaseModel, Field
from datetime import date

from app.services.status import BookingCategory
from app.schemas.availability import DateStatusOut


# Date selection (POST /bookings/select)
class SelectDateRequest(BaseModel):
    hall_id: int
    date: date
    reason: str = Field(min_length=1, max_length=200)
    category: Optional[BookingCategory] = None
    surface: str = "hall_detail"


class SelectionResponse(BaseModel):
    outcome: str
    hall_id: int
    date: date
    current: DateStatusOut


# Confirm a booking (POST /bookings/{hall_id}/{date}/confirm)
class ConfirmRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=200)
    category: Optional[BookingCategory] = None


# Result of hold / confirm / release / cancel
class TransitionResponse(BaseModel):
    outcome: str
    hall_id: int
    date: date
    current: DateStatusOut
    detail: Optional[str] = None
