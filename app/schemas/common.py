from typing import Optional, List, Generic, TypeVar
from pydantic import BaseModel

from app.schemas.availability import DateStatusOut

T = TypeVar("T")


# Paginated response wrapper: used by list endpoints
class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# Error responses (HTTPException detail payloads)
class ErrorResponse(BaseModel):
    error: str
    message: str


class DateConflictError(ErrorResponse):
    current: Optional[DateStatusOut] = None
    retry: bool = False


# Admin maintenance
class HoldSweepResponse(BaseModel):
    released: int
