from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload

from app.db.session import get_db
from app.api.deps import get_engine
from app.api.errors import repository_unavailable, transition_failed
from app.models.hall import Hall
from app.schemas.hall import Hall as HallSchema, HallSummary
from app.schemas.availability import (
    AvailabilityFeed,
    AvailabilityItem,
    AvailabilityMutation,
    AvailabilityRecordOut,
    CalendarDayOut,
    CalendarMonth,
    DateStatusOut,
    HallCalendar,
    HallOverview,
)
from app.schemas.booking import TransitionResponse
from app.services.booking_session import BookingSession, CalendarView
from app.services.engine import AvailabilityEngine, HALL_DETAIL, HALL_OVERVIEW
from app.services.status import AVAILABLE, RepositoryUnavailable, StatusKind
from app.services.window_policy import CalendarCursor

router = APIRouter(prefix="/halls", tags=["Halls"])

VIEWER = "viewer"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_active_hall(hall_id: int, db: Session) -> Hall:
    hall = (
        db.query(Hall)
        .options(selectinload(Hall.images))
        .filter(Hall.id == hall_id, Hall.is_active == True)
        .first()
    )
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found")
    return hall


def _open_session(
    engine: AvailabilityEngine,
    surface: str,
    year: Optional[int],
    month: Optional[int],
    move: Optional[str],
) -> BookingSession:
    """Build a viewing session positioned on the requested month (clamped)."""
    if surface not in engine.surfaces:
        raise HTTPException(status_code=422, detail=f"Unknown surface '{surface}'")
    if (year is None) != (month is None):
        raise HTTPException(status_code=422, detail="year and month must be given together")

    try:
        engine.refresh()
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)

    session = engine.session(surface, VIEWER)
    if year is not None:
        session.cursor = CalendarCursor(year, month)
    if move == "prev":
        session.prev_month()
    elif move == "next":
        session.next_month()
    return session


def _days(view: CalendarView) -> List[CalendarDayOut]:
    return [
        CalendarDayOut(date=d.day, **DateStatusOut.from_status(d.status).model_dump())
        for d in view.days
    ]


# ---------------------------------------------------------------------------
# Hall directory
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[HallSchema])
def list_halls(db: Session = Depends(get_db)):
    """Active halls with their image carousels, for pairing with calendars."""
    return (
        db.query(Hall)
        .options(selectinload(Hall.images))
        .filter(Hall.is_active == True)
        .order_by(Hall.id)
        .all()
    )


# ---------------------------------------------------------------------------
# GET /halls/availability: legacy feed of held and booked dates
# ---------------------------------------------------------------------------


@router.get("/availability", response_model=AvailabilityFeed)
def get_availability(
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
):
    """
    Every held or booked date across all halls.

    `is_booked` distinguishes booked dates; held dates carry a reason with
    `is_booked` false. Dates that are not listed are available.
    """
    try:
        records = engine.repository.fetch_all()
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)

    names = {hall_id: name for hall_id, name in db.query(Hall.id, Hall.name).all()}
    now = engine.resolver.clock()

    data = []
    for record in records:
        status = record.effective_status(now)
        if status.is_available:
            continue
        data.append(AvailabilityItem(
            date=record.day.isoformat(),
            reason=status.reason,
            is_booked=status.kind is StatusKind.BOOKED,
            category=status.category,
            holder=record.holder,
            version=record.version,
            hall=HallSummary(hall_id=record.hall_id, name=names.get(record.hall_id, "")),
        ))
    return AvailabilityFeed(data=data)


# ---------------------------------------------------------------------------
# GET /halls/overview: every hall for one month (short-horizon surface)
# ---------------------------------------------------------------------------


@router.get("/overview", response_model=HallOverview)
def get_overview(
    year: Optional[int] = Query(None, ge=1),
    month: Optional[int] = Query(None, ge=1, le=12),
    move: Optional[str] = Query(None, pattern="^(prev|next)$"),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
):
    session = _open_session(engine, HALL_OVERVIEW, year, month, move)
    halls = (
        db.query(Hall)
        .options(selectinload(Hall.images))
        .filter(Hall.is_active == True)
        .order_by(Hall.id)
        .all()
    )

    views = [(hall, session.calendar(hall.id)) for hall in halls]
    frame = views[0][1] if views else session.calendar(None)

    return HallOverview(
        surface=HALL_OVERVIEW,
        year=frame.cursor.year,
        month=frame.cursor.month,
        can_go_prev=frame.can_go_prev,
        can_go_next=frame.can_go_next,
        halls=[
            HallCalendar(
                hall=HallSummary(hall_id=hall.id, name=hall.name),
                description=hall.description,
                images=[image.image_url for image in hall.images],
                days=_days(view),
            )
            for hall, view in views
        ],
    )


# ---------------------------------------------------------------------------
# Single hall
# ---------------------------------------------------------------------------


@router.get("/{hall_id}", response_model=HallSchema)
def get_hall(hall_id: int, db: Session = Depends(get_db)):
    return get_active_hall(hall_id, db)


@router.get("/{hall_id}/calendar", response_model=CalendarMonth)
def get_hall_calendar(
    hall_id: int,
    surface: str = Query(HALL_DETAIL),
    year: Optional[int] = Query(None, ge=1),
    month: Optional[int] = Query(None, ge=1, le=12),
    move: Optional[str] = Query(None, pattern="^(prev|next)$"),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
):
    """
    One month of a hall's calendar on the given surface.

    The month is clamped to the surface's window; `move` steps one month
    and stops at either end. Days before today are not listed.
    """
    get_active_hall(hall_id, db)
    session = _open_session(engine, surface, year, month, move)
    view = session.calendar(hall_id)
    return CalendarMonth(
        hall_id=hall_id,
        surface=surface,
        year=view.cursor.year,
        month=view.cursor.month,
        can_go_prev=view.can_go_prev,
        can_go_next=view.can_go_next,
        days=_days(view),
    )


@router.get("/{hall_id}/availability/{day}", response_model=AvailabilityRecordOut)
def get_date_availability(
    hall_id: int,
    day: date,
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
):
    get_active_hall(hall_id, db)
    try:
        record = engine.repository.get(hall_id, day)
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)

    status = record.effective_status(engine.resolver.clock()) if record else AVAILABLE
    return AvailabilityRecordOut(hall_id=hall_id, date=day, **DateStatusOut.from_status(status).model_dump())


@router.put("/{hall_id}/availability/{day}", response_model=TransitionResponse)
def set_date_availability(
    hall_id: int,
    day: date,
    data: AvailabilityMutation,
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_engine),
):
    """
    Move a hall/date to `desired_state` on behalf of `requester`.

    `available` releases the requester's hold or cancels their booking.
    With `expected_status` / `expected_version` the write only happens if the
    date is still as the caller last read it.

    200 when the transition happened, 409 when the date's current state does
    not allow it, 503 when the store failed.
    """
    get_active_hall(hall_id, db)

    if data.desired_state is not StatusKind.AVAILABLE and not data.reason:
        raise HTTPException(status_code=422, detail="reason is required")

    try:
        result = engine.resolver.apply(
            hall_id,
            day,
            data.desired_state,
            data.requester,
            reason=data.reason,
            category=data.category,
            expected_status=data.expected_status,
            expected_version=data.expected_version,
        )
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)

    if not result.ok:
        raise transition_failed(result)

    return TransitionResponse(
        outcome=result.outcome.value,
        hall_id=hall_id,
        date=day,
        current=DateStatusOut.from_status(result.status),
        detail=result.detail or None,
    )
