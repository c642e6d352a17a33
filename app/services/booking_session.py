from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from app.services import window_policy
from app.services.availability_index import AvailabilityIndex
from app.services.conflict_resolver import ConflictResolver
from app.services.status import AVAILABLE, BookingCategory, DateStatus, RepositoryUnavailable
from app.services.window_policy import CalendarCursor

logger = logging.getLogger(__name__)


class Flow(str, enum.Enum):
    HOLD = "hold"
    BOOK = "book"


@dataclass(frozen=True)
class SurfaceConfig:
    name: str
    horizon_months: int
    flow: Flow = Flow.HOLD


class SelectionOutcome(str, enum.Enum):
    ACCEPTED = "accepted"
    OUT_OF_WINDOW = "out_of_window"
    UNAVAILABLE = "unavailable"
    STALE_CONFLICT = "stale_conflict"


@dataclass(frozen=True)
class SelectionResult:
    outcome: SelectionOutcome
    status: DateStatus
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome is SelectionOutcome.ACCEPTED


@dataclass(frozen=True)
class CalendarDay:
    day: date
    status: DateStatus


@dataclass(frozen=True)
class CalendarView:
    hall_id: Optional[int]
    cursor: CalendarCursor
    days: List[CalendarDay]
    can_go_prev: bool
    can_go_next: bool


class BookingSession:
    """
    One requester's date-selection flow on one booking surface.

    ``today`` is asked for on every call, never cached, so window checks and
    cursor clamping follow the calendar when a session outlives a day.
    """

    def __init__(
        self,
        surface: SurfaceConfig,
        index: AvailabilityIndex,
        resolver: ConflictResolver,
        requester: str,
        today: Callable[[], date],
    ):
        self.surface = surface
        self.index = index
        self.resolver = resolver
        self.requester = requester
        self._today = today
        self.cursor: Optional[CalendarCursor] = None

    def refresh(self) -> None:
        generation = self.index.generation
        self.index.refresh(self.resolver.repository.fetch_all(), as_of=self.resolver.clock(), generation=generation)

    def select_date(
        self,
        hall_id: int,
        day: date,
        reason: str,
        category: Optional[BookingCategory] = None,
    ) -> SelectionResult:
        today = self._today()
        if not window_policy.is_allowed(day, today, self.surface.horizon_months):
            return SelectionResult(
                SelectionOutcome.OUT_OF_WINDOW,
                self.index.status_of(hall_id, day),
                f"{day.isoformat()} is outside the bookable window "
                f"({today.isoformat()} to {window_policy.horizon_end(today, self.surface.horizon_months).isoformat()})",
            )

        current = self.index.status_of(hall_id, day)
        if not current.is_available:
            # The date may have been freed elsewhere; resync so a retry sees it
            self._refresh_quietly(hall_id, day)
            return SelectionResult(
                SelectionOutcome.UNAVAILABLE, current, current.reason or current.kind.value
            )

        if self.surface.flow is Flow.BOOK:
            result = self.resolver.confirm_booking(hall_id, day, reason, self.requester, category)
        else:
            result = self.resolver.request_hold(hall_id, day, reason, self.requester, category)

        if not result.ok:
            # Our view was stale; resync before the caller retries
            self.refresh()
            return SelectionResult(SelectionOutcome.STALE_CONFLICT, result.status, result.detail)

        # The write went through and the index already carries it
        self._refresh_quietly(hall_id, day)
        return SelectionResult(SelectionOutcome.ACCEPTED, result.status)

    def _refresh_quietly(self, hall_id: int, day: date) -> None:
        try:
            self.refresh()
        except RepositoryUnavailable:
            logger.warning("Index refresh after selecting hall %s on %s failed.", hall_id, day)

    # ------------------------------------------------------------------
    # Calendar navigation
    # ------------------------------------------------------------------

    def _current_cursor(self, today: date) -> CalendarCursor:
        cursor = self.cursor or CalendarCursor.containing(today)
        return window_policy.clamp(cursor, today, self.surface.horizon_months)

    def prev_month(self) -> CalendarCursor:
        today = self._today()
        self.cursor = window_policy.prev_month(self._current_cursor(today), today, self.surface.horizon_months)
        return self.cursor

    def next_month(self) -> CalendarCursor:
        today = self._today()
        self.cursor = window_policy.next_month(self._current_cursor(today), today, self.surface.horizon_months)
        return self.cursor

    def calendar(self, hall_id: Optional[int]) -> CalendarView:
        """Visible month for one hall; with no hall, just the navigation frame."""
        today = self._today()
        horizon = self.surface.horizon_months
        self.cursor = self._current_cursor(today)
        statuses = self.index.all_for_hall(hall_id) if hall_id is not None else None
        return CalendarView(
            hall_id=hall_id,
            cursor=self.cursor,
            days=[
                CalendarDay(day, statuses.get(day, AVAILABLE))
                for day in window_policy.month_days(self.cursor, today, horizon)
            ] if statuses is not None else [],
            can_go_prev=window_policy.can_go_prev(self.cursor, today, horizon),
            can_go_next=window_policy.can_go_next(self.cursor, today, horizon),
        )

    def close(self) -> None:
        self.cursor = None
