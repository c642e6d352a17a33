import threading
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from app.services.status import AVAILABLE, AvailabilityRecord, DateStatus

_EMPTY: Mapping[date, DateStatus] = MappingProxyType({})


def _apply(halls: Dict[int, Dict[date, DateStatus]], record: AvailabilityRecord, as_of: Optional[datetime]) -> None:
    status = record.effective_status(as_of)
    if status.is_available:
        halls.get(record.hall_id, {}).pop(record.day, None)
    else:
        halls.setdefault(record.hall_id, {})[record.day] = status


def _freeze(halls: Dict[int, Dict[date, DateStatus]]) -> Mapping[int, Mapping[date, DateStatus]]:
    return MappingProxyType({hall_id: MappingProxyType(days) for hall_id, days in halls.items()})


class AvailabilityIndex:
    """
    Read-side cache of hall/date statuses.

    The whole projection lives behind one reference that is swapped, never
    mutated, so readers see either the previous snapshot or the next one.
    Only non-available dates are stored; a missing entry reads as Available.

    Every ``update_entry`` bumps ``generation``. A caller that reads
    ``generation`` before fetching records and hands it to ``refresh`` gets
    the entries written after that point laid over the fetched records, so
    a refresh built from an older read never hides a newer write.
    """

    def __init__(self):
        self._write_lock = threading.Lock()
        self._snapshot: Mapping[int, Mapping[date, DateStatus]] = MappingProxyType({})
        self._generation = 0
        self._installed = 0
        # Entries written since the last installed refresh, with their generation
        self._recent: Dict[Tuple[int, date], Tuple[int, AvailabilityRecord]] = {}
        self.refreshed_at: Optional[datetime] = None

    @property
    def generation(self) -> int:
        with self._write_lock:
            return self._generation

    def refresh(
        self,
        records: Iterable[AvailabilityRecord],
        as_of: Optional[datetime] = None,
        generation: Optional[int] = None,
    ) -> None:
        halls: Dict[int, Dict[date, DateStatus]] = {}
        for record in records:
            _apply(halls, record, as_of)

        with self._write_lock:
            if generation is None:
                generation = self._generation
            elif generation < self._installed:
                # A refresh from a later read has already been installed
                return
            for stamp, record in sorted(self._recent.values(), key=lambda entry: entry[0]):
                if stamp > generation:
                    _apply(halls, record, as_of)
            self._recent = {key: entry for key, entry in self._recent.items() if entry[0] > generation}
            self._installed = generation
            self._snapshot = _freeze(halls)
            self.refreshed_at = as_of

    def update_entry(self, record: AvailabilityRecord) -> None:
        """Copy-on-write update of a single key after a resolver transition."""
        with self._write_lock:
            self._generation += 1
            self._recent[record.key] = (self._generation, record)
            halls = dict(self._snapshot)
            days = dict(halls.get(record.hall_id, _EMPTY))
            if record.status.is_available:
                days.pop(record.day, None)
            else:
                days[record.day] = record.status
            halls[record.hall_id] = MappingProxyType(days)
            self._snapshot = MappingProxyType(halls)

    def status_of(self, hall_id: int, day: date) -> DateStatus:
        return self._snapshot.get(hall_id, _EMPTY).get(day, AVAILABLE)

    def all_for_hall(self, hall_id: int) -> Mapping[date, DateStatus]:
        return self._snapshot.get(hall_id, _EMPTY)
