from typing import Optional, List
from pydantic import BaseModel, Field


# Hall image: ordered carousel entries
class HallImage(BaseModel):
    image_url: str
    display_order: int = 0

    class Config:
        from_attributes = True


# Hall: base fields
class HallBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class HallCreate(HallBase):
    images: List[str] = []


class HallUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    images: Optional[List[str]] = None


# Hall directory entry (GET /halls)
class Hall(HallBase):
    id: int
    images: List[HallImage] = []

    class Config:
        from_attributes = True


# Compact hall for nested responses (availability, calendars)
class HallSummary(BaseModel):
    hall_id: int
    name: str
