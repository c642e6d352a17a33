"""Value types shared by the availability engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple


class StatusKind(str, enum.Enum):
    AVAILABLE = "available"
    ON_HOLD = "on_hold"
    BOOKED = "booked"


class BookingCategory(str, enum.Enum):
    wedding = "wedding"
    upanayana = "upanayana"
    reception = "reception"
    others = "others"

    @classmethod
    def from_reason(cls, reason: Optional[str]) -> "BookingCategory":
        """Classify legacy free-text reasons that arrive without a category."""
        lowered = (reason or "").lower()
        for category in (cls.wedding, cls.upanayana, cls.reception):
            if category.value in lowered:
                return category
        return cls.others


@dataclass(frozen=True)
class DateStatus:
    kind: StatusKind
    reason: Optional[str] = None
    category: Optional[BookingCategory] = None

    @classmethod
    def on_hold(cls, reason: str, category: Optional[BookingCategory] = None) -> "DateStatus":
        return cls(StatusKind.ON_HOLD, reason, category or BookingCategory.from_reason(reason))

    @classmethod
    def booked(cls, reason: str, category: Optional[BookingCategory] = None) -> "DateStatus":
        return cls(StatusKind.BOOKED, reason, category or BookingCategory.from_reason(reason))

    @property
    def is_available(self) -> bool:
        return self.kind is StatusKind.AVAILABLE


AVAILABLE = DateStatus(StatusKind.AVAILABLE)


@dataclass(frozen=True)
class AvailabilityRecord:
    hall_id: int
    day: date
    status: DateStatus
    # Owner of a hold or booking; on an available record, whoever freed it last
    holder: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    version: int = 0

    @property
    def key(self) -> Tuple[int, date]:
        return (self.hall_id, self.day)

    def hold_expired(self, now: datetime) -> bool:
        return (
            self.status.kind is StatusKind.ON_HOLD
            and self.hold_expires_at is not None
            and self.hold_expires_at <= now
        )

    def effective_status(self, now: Optional[datetime]) -> DateStatus:
        """Status as of ``now``: a hold past its expiry counts as released."""
        if now is not None and self.hold_expired(now):
            return AVAILABLE
        return self.status


class RepositoryUnavailable(Exception):
    """The availability backend failed; no state change may be assumed."""
