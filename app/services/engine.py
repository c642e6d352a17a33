from datetime import date, datetime, timedelta
from typing import Callable, Dict
from zoneinfo import ZoneInfo

from app.core.config import Settings
from app.services.availability_index import AvailabilityIndex
from app.services.booking_session import BookingSession, Flow, SurfaceConfig
from app.services.conflict_resolver import ConflictResolver, utcnow
from app.services.repository import AvailabilityRepository

HALL_DETAIL = "hall_detail"
HALL_OVERVIEW = "hall_overview"


def surfaces_from_settings(settings: Settings) -> Dict[str, SurfaceConfig]:
    return {
        HALL_DETAIL: SurfaceConfig(HALL_DETAIL, settings.HALL_DETAIL_HORIZON_MONTHS, Flow(settings.HALL_DETAIL_FLOW)),
        HALL_OVERVIEW: SurfaceConfig(HALL_OVERVIEW, settings.HALL_OVERVIEW_HORIZON_MONTHS, Flow(settings.HALL_OVERVIEW_FLOW)),
    }


def local_today(timezone_name: str) -> Callable[[], date]:
    zone = ZoneInfo(timezone_name)
    return lambda: datetime.now(zone).date()


class AvailabilityEngine:
    """Process-wide wiring: one repository, one index, one resolver."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        surfaces: Dict[str, SurfaceConfig],
        today: Callable[[], date],
        hold_ttl: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.surfaces = surfaces
        self.today = today
        self.index = AvailabilityIndex()
        self.resolver = ConflictResolver(repository, self.index, hold_ttl=hold_ttl, clock=clock)

    def refresh(self) -> None:
        generation = self.index.generation
        self.index.refresh(self.repository.fetch_all(), as_of=self.resolver.clock(), generation=generation)

    def session(self, surface: str, requester: str) -> BookingSession:
        return BookingSession(
            surface=self.surfaces[surface],
            index=self.index,
            resolver=self.resolver,
            requester=requester,
            today=self.today,
        )
