from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.engine import AvailabilityEngine, local_today, surfaces_from_settings
from app.services.remote_repository import RemoteAvailabilityRepository
from app.services.sql_repository import SqlAvailabilityRepository


@lru_cache
def get_engine() -> AvailabilityEngine:
    if settings.AVAILABILITY_BACKEND == "remote":
        repository = RemoteAvailabilityRepository(
            settings.AVAILABILITY_API_URL,
            timeout=settings.AVAILABILITY_API_TIMEOUT_SECONDS,
        )
    else:
        repository = SqlAvailabilityRepository(SessionLocal)

    return AvailabilityEngine(
        repository=repository,
        surfaces=surfaces_from_settings(settings),
        today=local_today(settings.TIMEZONE),
        hold_ttl=timedelta(minutes=settings.HOLD_TTL_MINUTES),
    )


def get_requester(x_requester_id: Optional[str] = Header(None)) -> str:
    """Identity of the party placing holds. Authentication happens upstream."""
    if not x_requester_id or not x_requester_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "missing_requester", "message": "X-Requester-Id header is required"},
        )
    return x_requester_id.strip()


def require_admin(x_admin_secret: Optional[str] = Header(None)) -> None:
    if x_admin_secret != settings.ADMIN_SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": "Invalid admin secret"},
        )
