from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_engine, get_requester
from app.api.errors import date_conflict, repository_unavailable, transition_failed
from app.api.v1.public.halls import get_active_hall
from app.schemas.availability import DateStatusOut
from app.schemas.booking import (
    ConfirmRequest,
    SelectDateRequest,
    SelectionResponse,
    TransitionResponse,
)
from app.services import window_policy
from app.services.booking_session import SelectionOutcome
from app.services.conflict_resolver import TransitionResult
from app.services.engine import AvailabilityEngine, HALL_DETAIL
from app.services.status import RepositoryUnavailable

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _respond(hall_id: int, day: date, result: TransitionResult) -> TransitionResponse:
    if not result.ok:
        raise transition_failed(result)
    return TransitionResponse(
        outcome=result.outcome.value,
        hall_id=hall_id,
        date=day,
        current=DateStatusOut.from_status(result.status),
        detail=result.detail or None,
    )


# ---------------------------------------------------------------------------
# POST /bookings/select: pick a date on a calendar surface
# ---------------------------------------------------------------------------


@router.post("/select", response_model=SelectionResponse, status_code=status.HTTP_201_CREATED)
def select_date(
    data: SelectDateRequest,
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
    requester: str = Depends(get_requester),
):
    """
    Select a date for a hall on the given surface.

    - **422 out_of_window**: the date is not selectable on this surface today.
    - **409 unavailable**: the date is already held or booked; `current` says why.
    - **409 stale_conflict**: someone took the date first; the calendar has
      been refreshed and the caller may pick again (`retry` is true).

    On the default flow the date is placed on hold for the requester and
    must be confirmed before the hold expires.
    """
    get_active_hall(data.hall_id, db)
    if data.surface not in engine.surfaces:
        raise HTTPException(status_code=422, detail=f"Unknown surface '{data.surface}'")

    session = engine.session(data.surface, requester)
    try:
        result = session.select_date(data.hall_id, data.date, data.reason, data.category)
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)

    if result.outcome is SelectionOutcome.OUT_OF_WINDOW:
        raise HTTPException(
            status_code=422,
            detail={"error": "out_of_window", "message": result.detail},
        )
    if result.outcome is SelectionOutcome.UNAVAILABLE:
        raise date_conflict("unavailable", result.detail, result.status)
    if result.outcome is SelectionOutcome.STALE_CONFLICT:
        raise date_conflict("stale_conflict", result.detail, result.status, retry=True)

    return SelectionResponse(
        outcome=result.outcome.value,
        hall_id=data.hall_id,
        date=data.date,
        current=DateStatusOut.from_status(result.status),
    )


# ---------------------------------------------------------------------------
# POST /bookings/{hall_id}/{day}/confirm
# ---------------------------------------------------------------------------


@router.post("/{hall_id}/{day}/confirm", response_model=TransitionResponse)
def confirm_booking(
    hall_id: int,
    day: date,
    data: ConfirmRequest,
    surface: str = Query(HALL_DETAIL),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
    requester: str = Depends(get_requester),
):
    """
    Confirm a booking. Succeeds when the date is available, or on hold for
    this requester with the same reason. Any other state is a 409.
    """
    get_active_hall(hall_id, db)
    config = engine.surfaces.get(surface)
    if config is None:
        raise HTTPException(status_code=422, detail=f"Unknown surface '{surface}'")
    if not window_policy.is_allowed(day, engine.today(), config.horizon_months):
        raise HTTPException(
            status_code=422,
            detail={"error": "out_of_window", "message": f"{day.isoformat()} is outside the bookable window"},
        )

    try:
        result = engine.resolver.confirm_booking(hall_id, day, data.reason, requester, data.category)
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)
    return _respond(hall_id, day, result)


# ---------------------------------------------------------------------------
# DELETE /bookings/{hall_id}/{day}/hold: release the requester's hold
# ---------------------------------------------------------------------------


@router.delete("/{hall_id}/{day}/hold", response_model=TransitionResponse)
def release_hold(
    hall_id: int,
    day: date,
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
    requester: str = Depends(get_requester),
):
    """Release a hold (user goes back). Releasing an available date is a no-op."""
    get_active_hall(hall_id, db)
    try:
        result = engine.resolver.release(hall_id, day, requester)
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)
    return _respond(hall_id, day, result)


# ---------------------------------------------------------------------------
# PATCH /bookings/{hall_id}/{day}/cancel
# ---------------------------------------------------------------------------


@router.patch("/{hall_id}/{day}/cancel", response_model=TransitionResponse)
def cancel_booking(
    hall_id: int,
    day: date,
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
    requester: str = Depends(get_requester),
):
    """
    Cancel the requester's confirmed booking and make the date available.
    A date that is not booked answers 409 `not_booked`.
    """
    get_active_hall(hall_id, db)
    try:
        result = engine.resolver.cancel(hall_id, day, requester)
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)
    return _respond(hall_id, day, result)
