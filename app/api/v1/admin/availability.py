from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_engine, require_admin
from app.api.errors import repository_unavailable
from app.models.availability import HallAvailabilityEvent
from app.schemas.availability import AvailabilityEvent
from app.schemas.common import HoldSweepResponse, PaginatedResponse
from app.services.engine import AvailabilityEngine
from app.services.status import RepositoryUnavailable

router = APIRouter(
    prefix="/admin/availability",
    tags=["Admin - Availability"],
    dependencies=[Depends(require_admin)],
)


@router.post("/expire-holds", response_model=HoldSweepResponse)
def expire_holds(engine: AvailabilityEngine = Depends(get_engine)):
    """
    Release every hold whose TTL has passed.

    The same sweep runs in the background; this is for running it on demand.
    """
    try:
        released = engine.resolver.expire_holds()
    except RepositoryUnavailable as exc:
        raise repository_unavailable(exc)
    return HoldSweepResponse(released=released)


@router.get("/events", response_model=PaginatedResponse[AvailabilityEvent])
def list_events(
    hall_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Transition history, newest first."""
    query = db.query(HallAvailabilityEvent)
    if hall_id is not None:
        query = query.filter(HallAvailabilityEvent.hall_id == hall_id)

    total = query.count()
    events = (
        query.order_by(HallAvailabilityEvent.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[AvailabilityEvent.model_validate(e) for e in events],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )
