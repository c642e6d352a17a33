from app.schemas.common import PaginatedResponse, ErrorResponse, DateConflictError, HoldSweepResponse
from app.schemas.hall import Hall, HallCreate, HallUpdate, HallImage, HallSummary
from app.schemas.availability import (
    DateStatusOut, AvailabilityRecordOut, AvailabilityItem, AvailabilityFeed,
    AvailabilityMutation, CalendarDayOut, CalendarMonth, HallCalendar, HallOverview,
    AvailabilityEvent,
)
from app.schemas.booking import (
    SelectDateRequest, SelectionResponse, ConfirmRequest, TransitionResponse,
)
