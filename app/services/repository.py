import abc
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from app.services.status import AVAILABLE, AvailabilityRecord


class AvailabilityRepository(abc.ABC):
    """
    Durable per-hall, per-date status store.

    ``compare_and_set`` is the only write path. It stores ``new`` only if the
    current record still matches ``expected`` (same version, or still absent
    when ``expected`` is None) and reports whether it did. Backend failures
    raise ``RepositoryUnavailable``; they are never reported as a conflict.
    """

    @abc.abstractmethod
    def fetch_all(self) -> List[AvailabilityRecord]:
        ...

    @abc.abstractmethod
    def get(self, hall_id: int, day: date) -> Optional[AvailabilityRecord]:
        ...

    @abc.abstractmethod
    def compare_and_set(
        self, expected: Optional[AvailabilityRecord], new: AvailabilityRecord
    ) -> bool:
        ...

    @abc.abstractmethod
    def expire_holds(self, now: datetime) -> int:
        """Write holds whose expiry has passed back to available. Returns the count."""


class InMemoryAvailabilityRepository(AvailabilityRepository):
    def __init__(self, records: Iterable[AvailabilityRecord] = ()):
        self._lock = threading.Lock()
        self._records: Dict[Tuple[int, date], AvailabilityRecord] = {}
        # (previous, stored) pairs, oldest first
        self.history: List[Tuple[Optional[AvailabilityRecord], AvailabilityRecord]] = []
        for record in records:
            self._records[record.key] = replace(record, version=max(record.version, 1))

    def fetch_all(self) -> List[AvailabilityRecord]:
        with self._lock:
            return list(self._records.values())

    def get(self, hall_id: int, day: date) -> Optional[AvailabilityRecord]:
        with self._lock:
            return self._records.get((hall_id, day))

    def compare_and_set(
        self, expected: Optional[AvailabilityRecord], new: AvailabilityRecord
    ) -> bool:
        with self._lock:
            current = self._records.get(new.key)
            if expected is None:
                if current is not None:
                    return False
            elif current is None or current.version != expected.version:
                return False

            stored = replace(new, version=(current.version if current else 0) + 1)
            self._records[new.key] = stored
            self.history.append((current, stored))
            return True

    def expire_holds(self, now: datetime) -> int:
        with self._lock:
            expired = [r for r in self._records.values() if r.hold_expired(now)]
            for record in expired:
                stored = replace(
                    record,
                    status=AVAILABLE,
                    holder=None,
                    hold_expires_at=None,
                    version=record.version + 1,
                )
                self._records[record.key] = stored
                self.history.append((record, stored))
            return len(expired)
