import os
import tempfile

# Must be set before anything imports app.core.config
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.gettempdir(), "temple_halls_test.db")
os.environ["ADMIN_SECRET_KEY"] = "test-admin-secret"

from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_engine
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.models.hall import Hall, HallImage
from app.services.booking_session import SurfaceConfig
from app.services.engine import HALL_DETAIL, HALL_OVERVIEW, AvailabilityEngine
from app.services.sql_repository import SqlAvailabilityRepository

NOW = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def today(self) -> date:
        return self.now.date()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def surfaces():
    return {
        HALL_DETAIL: SurfaceConfig(HALL_DETAIL, 36),
        HALL_OVERVIEW: SurfaceConfig(HALL_OVERVIEW, 2),
    }


@pytest.fixture
def tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def halls(db):
    created = [
        Hall(name="Main Hall", description="Seats 500, ground floor", images=[
            HallImage(image_url="/images/main-1.jpg", display_order=0),
            HallImage(image_url="/images/main-2.jpg", display_order=1),
        ]),
        Hall(name="Annex Hall", description="Seats 150"),
        Hall(name="Kalyana Mantapa", description="Wedding hall with stage", images=[
            HallImage(image_url="/images/mantapa.jpg", display_order=0),
        ]),
    ]
    db.add_all(created)
    db.commit()
    return [hall.id for hall in created]


@pytest.fixture
def sql_repository(tables):
    return SqlAvailabilityRepository(SessionLocal)


@pytest.fixture
def availability(sql_repository, surfaces, clock):
    return AvailabilityEngine(
        repository=sql_repository,
        surfaces=surfaces,
        today=clock.today,
        hold_ttl=timedelta(minutes=15),
        clock=clock,
    )


@pytest.fixture
def client(availability, halls):
    app.dependency_overrides[get_engine] = lambda: availability
    # Not used as a context manager: the lifespan (DB bootstrap, sweep loop) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()
