import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests

from app.services.repository import AvailabilityRepository
from app.services.status import (
    AVAILABLE,
    AvailabilityRecord,
    DateStatus,
    RepositoryUnavailable,
    StatusKind,
)

logger = logging.getLogger(__name__)


def normalize_item(item: Dict[str, Any]) -> AvailabilityRecord:
    """
    Turn one legacy availability item into a record.

    ``is_booked`` true means Booked; a reason without the booked flag means
    On hold; no reason (or the literal "Available") means Available.
    """
    reason = (item.get("reason") or "").strip() or None
    if item.get("is_booked"):
        status = DateStatus.booked(reason or "Booked")
    elif reason and reason != "Available":
        status = DateStatus.on_hold(reason)
    else:
        status = AVAILABLE

    return AvailabilityRecord(
        hall_id=int(item["hall"]["hall_id"]),
        day=date.fromisoformat(str(item["date"]).split("T")[0]),
        status=status,
        holder=item.get("holder"),
        version=int(item.get("version") or 0),
    )


class RemoteAvailabilityRepository(AvailabilityRepository):
    """
    Availability store reached over HTTP.

    ``compare_and_set`` sends the desired state together with the status and
    version it expects; the remote instance checks both under its own per-key
    lock and answers 200 (written) or 409 (the date moved on). ``new.holder``
    travels as the acting requester, so the remote applies its ownership
    rules to releases and cancellations too. Any other response or a
    transport error is ``RepositoryUnavailable``.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            return self._http.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Availability backend unreachable: %s %s (%s)", method, url, exc)
            raise RepositoryUnavailable(f"{method} {url} failed: {exc}") from exc

    def fetch_all(self) -> List[AvailabilityRecord]:
        response = self._request("GET", "/halls/availability")
        if response.status_code != 200:
            logger.warning("Availability fetch failed with HTTP %s", response.status_code)
            raise RepositoryUnavailable(f"GET availability returned {response.status_code}")
        try:
            payload = response.json()
            if payload.get("statusCode") != 200:
                raise RepositoryUnavailable(payload.get("message") or "Failed to fetch availability data")
            return [normalize_item(item) for item in payload.get("data", [])]
        except (ValueError, KeyError, TypeError) as exc:
            raise RepositoryUnavailable(f"Malformed availability payload: {exc}") from exc

    def get(self, hall_id: int, day: date) -> Optional[AvailabilityRecord]:
        for record in self.fetch_all():
            if record.hall_id == hall_id and record.day == day:
                return record
        return None

    def compare_and_set(
        self, expected: Optional[AvailabilityRecord], new: AvailabilityRecord
    ) -> bool:
        status = new.status
        response = self._request(
            "PUT",
            f"/halls/{new.hall_id}/availability/{new.day.isoformat()}",
            json={
                "desired_state": status.kind.value,
                "reason": status.reason,
                "category": status.category.value if status.category else None,
                "requester": new.holder,
                "expected_status": expected.status.kind.value if expected else StatusKind.AVAILABLE.value,
                "expected_version": expected.version if expected else None,
            },
        )
        if response.status_code == 200:
            return True
        if response.status_code == 409:
            return False
        logger.warning(
            "Availability write for hall %s on %s failed with HTTP %s",
            new.hall_id, new.day, response.status_code,
        )
        raise RepositoryUnavailable(f"PUT availability returned {response.status_code}")

    def expire_holds(self, now: datetime) -> int:
        # The remote instance runs its own expiry sweep
        return 0
