from fastapi import HTTPException, status

from app.schemas.availability import DateStatusOut
from app.services.conflict_resolver import Outcome, TransitionResult
from app.services.status import DateStatus, RepositoryUnavailable


def repository_unavailable(exc: RepositoryUnavailable) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "repository_unavailable", "message": f"Availability backend failed: {exc}"},
    )


def date_conflict(error: str, message: str, current: DateStatus, retry: bool = False) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": error,
            "message": message,
            "current": DateStatusOut.from_status(current).model_dump(mode="json"),
            "retry": retry,
        },
    )


def transition_failed(result: TransitionResult) -> HTTPException:
    error = "not_booked" if result.outcome is Outcome.NOT_BOOKED else "conflict"
    return date_conflict(error, result.detail, result.status)
