import logging

from app.main import sweep_expired_holds


class ExplodingResolver:
    def expire_holds(self):
        raise ValueError("'pending' is not a valid StatusKind")


class Engine:
    def __init__(self, resolver):
        self.resolver = resolver
        self.refreshed = False

    def refresh(self):
        self.refreshed = True


def test_sweep_logs_unexpected_errors_instead_of_raising(caplog):
    with caplog.at_level(logging.ERROR, logger="app.main"):
        sweep_expired_holds(Engine(ExplodingResolver()))

    assert "Error during hold-expiry sweep." in caplog.text


def test_sweep_runs_expiry_then_refresh(availability, halls, clock):
    availability.resolver.request_hold(halls[0], clock.today(), "Wedding", "priya")
    availability.refresh()
    clock.advance(minutes=20)

    sweep_expired_holds(availability)

    assert availability.index.status_of(halls[0], clock.today()).is_available
    assert availability.repository.get(halls[0], clock.today()).status.is_available
