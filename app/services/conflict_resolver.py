"""
Hall/date state machine and the single writer of availability records.

    available --hold--> on_hold --confirm--> booked
    available --------- confirm ----------> booked
    on_hold --release--> available
    booked  --cancel---> available

Every check-then-write runs under a lock keyed by (hall_id, date), and the
write itself is a repository compare-and-set, so exactly one of several
racing callers wins a key whether they share this process or not.
"""

from __future__ import annotations

import enum
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from app.services.availability_index import AvailabilityIndex
from app.services.repository import AvailabilityRepository
from app.services.status import (
    AVAILABLE,
    AvailabilityRecord,
    BookingCategory,
    DateStatus,
    StatusKind,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Outcome(str, enum.Enum):
    OK = "ok"
    CONFLICT = "conflict"
    NOT_BOOKED = "not_booked"


@dataclass(frozen=True)
class TransitionResult:
    outcome: Outcome
    status: DateStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


class KeyedLock:
    """One mutex per key, created on demand and dropped once nobody uses it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, List] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ConflictResolver:
    def __init__(
        self,
        repository: AvailabilityRepository,
        index: Optional[AvailabilityIndex] = None,
        hold_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.index = index
        self.hold_ttl = hold_ttl
        self.clock = clock
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def request_hold(
        self,
        hall_id: int,
        day: date,
        reason: str,
        requester: str,
        category: Optional[BookingCategory] = None,
    ) -> TransitionResult:
        with self._locks.hold((hall_id, day)):
            record, current = self._read(hall_id, day)
            return self._hold(record, current, hall_id, day, reason, requester, category)

    def confirm_booking(
        self,
        hall_id: int,
        day: date,
        reason: str,
        requester: str,
        category: Optional[BookingCategory] = None,
    ) -> TransitionResult:
        with self._locks.hold((hall_id, day)):
            record, current = self._read(hall_id, day)
            return self._confirm(record, current, hall_id, day, reason, requester, category)

    def release(self, hall_id: int, day: date, requester: Optional[str] = None) -> TransitionResult:
        with self._locks.hold((hall_id, day)):
            record, current = self._read(hall_id, day)
            return self._release(record, current, hall_id, day, requester)

    def cancel(self, hall_id: int, day: date, requester: Optional[str] = None) -> TransitionResult:
        with self._locks.hold((hall_id, day)):
            record, current = self._read(hall_id, day)
            return self._cancel(record, current, hall_id, day, requester)

    def apply(
        self,
        hall_id: int,
        day: date,
        desired: StatusKind,
        requester: str,
        reason: Optional[str] = None,
        category: Optional[BookingCategory] = None,
        expected_status: Optional[StatusKind] = None,
        expected_version: Optional[int] = None,
    ) -> TransitionResult:
        """
        Move a date to ``desired`` on behalf of ``requester``.

        With ``expected_status`` / ``expected_version`` this is a
        compare-and-set for callers that read the date earlier: if the date
        moved on since, nothing is written and the result is a conflict.
        ``available`` releases a hold or cancels a booking, whichever the
        date carries at the moment of the write.
        """
        with self._locks.hold((hall_id, day)):
            record, current = self._read(hall_id, day)
            if expected_status is not None and current.kind is not expected_status:
                return self._conflict(hall_id, day, current, f"Date is {current.kind.value}, not {expected_status.value}")
            if expected_version is not None and (record.version if record else 0) != expected_version:
                return self._conflict(hall_id, day, current, "Date changed since it was read")

            if desired is StatusKind.ON_HOLD:
                return self._hold(record, current, hall_id, day, reason, requester, category)
            if desired is StatusKind.BOOKED:
                return self._confirm(record, current, hall_id, day, reason, requester, category)
            if current.kind is StatusKind.BOOKED:
                return self._cancel(record, current, hall_id, day, requester)
            return self._release(record, current, hall_id, day, requester)

    # ------------------------------------------------------------------
    # Transition bodies; callers hold the key lock
    # ------------------------------------------------------------------

    def _read(self, hall_id: int, day: date) -> Tuple[Optional[AvailabilityRecord], DateStatus]:
        record = self.repository.get(hall_id, day)
        current = record.effective_status(self.clock()) if record else AVAILABLE
        return record, current

    def _hold(self, record, current, hall_id, day, reason, requester, category) -> TransitionResult:
        if not current.is_available:
            return self._conflict(hall_id, day, current, f"Date is already {current.kind.value}")

        new = AvailabilityRecord(
            hall_id=hall_id,
            day=day,
            status=DateStatus.on_hold(reason, category),
            holder=requester,
            hold_expires_at=self.clock() + self.hold_ttl,
        )
        return self._write(record, new)

    def _confirm(self, record, current, hall_id, day, reason, requester, category) -> TransitionResult:
        if current.kind is StatusKind.BOOKED:
            return self._conflict(hall_id, day, current, "Date is already booked")
        if current.kind is StatusKind.ON_HOLD:
            if record.holder != requester:
                return self._conflict(hall_id, day, current, "Date is on hold for another requester")
            if current.reason != reason:
                return self._conflict(
                    hall_id, day, current,
                    f"Hold was placed for '{current.reason}'; release it before booking for '{reason}'",
                )
            if current.category is not None and category not in (None, current.category):
                return self._conflict(
                    hall_id, day, current,
                    f"Hold was placed as '{current.category.value}'; release it before booking as '{category.value}'",
                )
            category = current.category or category

        new = AvailabilityRecord(
            hall_id=hall_id,
            day=day,
            status=DateStatus.booked(reason, category),
            holder=requester,
        )
        return self._write(record, new)

    def _release(self, record, current, hall_id, day, requester) -> TransitionResult:
        if current.is_available:
            return TransitionResult(Outcome.OK, AVAILABLE, "Date is already available")
        if current.kind is StatusKind.BOOKED:
            return self._conflict(hall_id, day, current, "Date is booked; cancel the booking instead")
        if requester is not None and record.holder != requester:
            return self._conflict(hall_id, day, current, "Hold belongs to another requester")

        return self._write(record, AvailabilityRecord(hall_id=hall_id, day=day, status=AVAILABLE, holder=requester))

    def _cancel(self, record, current, hall_id, day, requester) -> TransitionResult:
        if current.kind is not StatusKind.BOOKED:
            return TransitionResult(
                Outcome.NOT_BOOKED, current, f"Date is {current.kind.value}, not booked"
            )
        if requester is not None and record.holder != requester:
            return self._conflict(hall_id, day, current, "Booking belongs to another requester")

        return self._write(record, AvailabilityRecord(hall_id=hall_id, day=day, status=AVAILABLE, holder=requester))

    # ------------------------------------------------------------------
    # Hold expiry
    # ------------------------------------------------------------------

    def expire_holds(self) -> int:
        """Release every hold past its TTL and resync the index if anything changed."""
        now = self.clock()
        count = self.repository.expire_holds(now)
        if count:
            logger.info("Released %d expired hold(s).", count)
            if self.index is not None:
                generation = self.index.generation
                self.index.refresh(self.repository.fetch_all(), as_of=now, generation=generation)
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, expected: Optional[AvailabilityRecord], new: AvailabilityRecord) -> TransitionResult:
        if not self.repository.compare_and_set(expected, new):
            # Lost to a writer outside this process
            latest = self.repository.get(new.hall_id, new.day)
            current = latest.effective_status(self.clock()) if latest else AVAILABLE
            return self._conflict(new.hall_id, new.day, current, "Date changed while the request was in flight")

        if self.index is not None:
            self.index.update_entry(new)
        before = expected.status.kind.value if expected else StatusKind.AVAILABLE.value
        logger.info(
            "Hall %s on %s: %s -> %s (%s)",
            new.hall_id, new.day, before, new.status.kind.value, new.holder or "-",
        )
        return TransitionResult(Outcome.OK, new.status)

    def _conflict(self, hall_id: int, day: date, current: DateStatus, detail: str) -> TransitionResult:
        logger.info("Conflict on hall %s for %s: %s", hall_id, day, detail)
        return TransitionResult(Outcome.CONFLICT, current, detail)
