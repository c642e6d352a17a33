import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from app.services.availability_index import AvailabilityIndex
from app.services.conflict_resolver import ConflictResolver, Outcome
from app.services.repository import InMemoryAvailabilityRepository
from app.services.status import (
    AVAILABLE,
    AvailabilityRecord,
    BookingCategory,
    DateStatus,
    RepositoryUnavailable,
    StatusKind,
)

JUNE_10 = date(2025, 6, 10)


class SlowRepository(InMemoryAvailabilityRepository):
    """Widens the gap between read and write so unserialized callers would collide."""

    def get(self, hall_id, day):
        record = super().get(hall_id, day)
        time.sleep(0.01)
        return record


class LosingRepository(InMemoryAvailabilityRepository):
    """Simulates another process winning every compare-and-set."""

    def compare_and_set(self, expected, new):
        super().compare_and_set(expected, AvailabilityRecord(new.hall_id, new.day, DateStatus.booked("Reception"), holder="elsewhere"))
        return False


class BrokenRepository(InMemoryAvailabilityRepository):
    def get(self, hall_id, day):
        raise RepositoryUnavailable("connection refused")


@pytest.fixture
def repository():
    return InMemoryAvailabilityRepository()


@pytest.fixture
def index():
    return AvailabilityIndex()


@pytest.fixture
def resolver(repository, index, clock):
    return ConflictResolver(repository, index, hold_ttl=timedelta(minutes=15), clock=clock)


def _status(repository, hall_id=3, day=JUNE_10):
    record = repository.get(hall_id, day)
    return record.status if record else AVAILABLE


def test_hold_then_confirm_scenario(resolver, repository, index):
    assert index.status_of(3, JUNE_10) == AVAILABLE

    held = resolver.request_hold(3, JUNE_10, "Wedding", requester="priya")
    assert held.ok
    assert _status(repository).kind is StatusKind.ON_HOLD
    assert _status(repository).reason == "Wedding"
    assert index.status_of(3, JUNE_10).kind is StatusKind.ON_HOLD

    rival = resolver.confirm_booking(3, JUNE_10, "Reception", requester="arjun")
    assert rival.outcome is Outcome.CONFLICT
    assert rival.status.reason == "Wedding"

    confirmed = resolver.confirm_booking(3, JUNE_10, "Wedding", requester="priya")
    assert confirmed.ok
    assert _status(repository) == DateStatus(StatusKind.BOOKED, "Wedding", BookingCategory.wedding)
    assert index.status_of(3, JUNE_10).kind is StatusKind.BOOKED


def test_hold_requires_available(resolver):
    assert resolver.request_hold(3, JUNE_10, "Wedding", "priya").ok

    again = resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    other = resolver.request_hold(3, JUNE_10, "Reception", "arjun")

    assert again.outcome is Outcome.CONFLICT
    assert other.outcome is Outcome.CONFLICT


def test_booked_date_rejects_hold_and_confirm(resolver):
    assert resolver.confirm_booking(3, JUNE_10, "Wedding", "priya").ok

    assert resolver.request_hold(3, JUNE_10, "Wedding", "arjun").outcome is Outcome.CONFLICT
    assert resolver.confirm_booking(3, JUNE_10, "Wedding", "priya").outcome is Outcome.CONFLICT


def test_confirm_cannot_swap_reason_of_own_hold(resolver, repository):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")

    result = resolver.confirm_booking(3, JUNE_10, "Reception", "priya")

    assert result.outcome is Outcome.CONFLICT
    assert _status(repository).kind is StatusKind.ON_HOLD
    assert _status(repository).reason == "Wedding"


def test_confirm_keeps_category_of_hold(resolver, repository):
    resolver.request_hold(3, JUNE_10, "Family function", "priya", category=BookingCategory.upanayana)
    resolver.confirm_booking(3, JUNE_10, "Family function", "priya")

    assert _status(repository).category is BookingCategory.upanayana


def test_release(resolver, repository):
    assert resolver.release(3, JUNE_10).ok
    assert repository.history == []

    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    assert resolver.release(3, JUNE_10, requester="arjun").outcome is Outcome.CONFLICT
    assert resolver.release(3, JUNE_10, requester="priya").ok
    assert _status(repository) == AVAILABLE
    # The row stays, written back to available
    assert repository.get(3, JUNE_10) is not None


def test_release_does_not_undo_booking(resolver, repository):
    resolver.confirm_booking(3, JUNE_10, "Wedding", "priya")

    assert resolver.release(3, JUNE_10).outcome is Outcome.CONFLICT
    assert _status(repository).kind is StatusKind.BOOKED


def test_cancel(resolver, repository, index):
    assert resolver.cancel(3, JUNE_10).outcome is Outcome.NOT_BOOKED

    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    assert resolver.cancel(3, JUNE_10).outcome is Outcome.NOT_BOOKED

    resolver.confirm_booking(3, JUNE_10, "Wedding", "priya")
    assert resolver.cancel(3, JUNE_10, requester="arjun").outcome is Outcome.CONFLICT
    assert resolver.cancel(3, JUNE_10, requester="priya").ok
    assert _status(repository) == AVAILABLE
    assert index.status_of(3, JUNE_10) == AVAILABLE

    # Already cancelled: a defined error, not a silent success
    assert resolver.cancel(3, JUNE_10).outcome is Outcome.NOT_BOOKED


def test_expired_hold_is_implicitly_released(resolver, clock):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    clock.advance(minutes=16)

    result = resolver.request_hold(3, JUNE_10, "Reception", "arjun")

    assert result.ok
    assert resolver.confirm_booking(3, JUNE_10, "Wedding", "priya").outcome is Outcome.CONFLICT


def test_holder_can_book_after_own_hold_lapsed(resolver, repository, clock):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    clock.advance(minutes=30)

    assert resolver.confirm_booking(3, JUNE_10, "Wedding", "priya").ok
    assert _status(repository).kind is StatusKind.BOOKED


def test_expire_holds_sweep(resolver, repository, index, clock):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    resolver.request_hold(3, JUNE_10 + timedelta(days=1), "Wedding", "priya")
    resolver.confirm_booking(3, JUNE_10 + timedelta(days=2), "Wedding", "priya")

    assert resolver.expire_holds() == 0

    clock.advance(minutes=15)
    assert resolver.expire_holds() == 2
    assert _status(repository) == AVAILABLE
    assert index.status_of(3, JUNE_10) == AVAILABLE
    assert index.status_of(3, JUNE_10 + timedelta(days=2)).kind is StatusKind.BOOKED


def test_concurrent_confirms_have_exactly_one_winner(clock):
    repository = SlowRepository()
    resolver = ConflictResolver(repository, clock=clock)
    barrier = threading.Barrier(12)

    def attempt(n):
        barrier.wait()
        return resolver.confirm_booking(3, JUNE_10, "Wedding", requester=f"party-{n}")

    with ThreadPoolExecutor(max_workers=12) as pool:
        results = list(pool.map(attempt, range(12)))

    assert sum(r.ok for r in results) == 1
    assert sum(r.outcome is Outcome.CONFLICT for r in results) == 11
    assert len(repository.history) == 1


def test_concurrent_holds_on_different_keys_all_succeed(clock):
    resolver = ConflictResolver(SlowRepository(), clock=clock)
    days = [JUNE_10 + timedelta(days=n) for n in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda d: resolver.request_hold(3, d, "Wedding", "priya"), days))

    assert all(r.ok for r in results)
    assert len(resolver._locks) == 0


def test_losing_compare_and_set_reports_conflict(clock):
    resolver = ConflictResolver(LosingRepository(), clock=clock)

    result = resolver.request_hold(3, JUNE_10, "Wedding", "priya")

    assert result.outcome is Outcome.CONFLICT
    assert result.status.kind is StatusKind.BOOKED


def test_repository_failure_propagates(clock):
    resolver = ConflictResolver(BrokenRepository(), clock=clock)

    with pytest.raises(RepositoryUnavailable):
        resolver.request_hold(3, JUNE_10, "Wedding", "priya")


def test_confirm_cannot_swap_category_of_own_hold(resolver, repository):
    resolver.request_hold(3, JUNE_10, "Family function", "priya", category=BookingCategory.upanayana)

    result = resolver.confirm_booking(3, JUNE_10, "Family function", "priya", category=BookingCategory.reception)

    assert result.outcome is Outcome.CONFLICT
    assert _status(repository).kind is StatusKind.ON_HOLD
    assert resolver.confirm_booking(
        3, JUNE_10, "Family function", "priya", category=BookingCategory.upanayana
    ).ok


def test_apply_checks_what_the_caller_last_saw(resolver, repository):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    resolver.confirm_booking(3, JUNE_10, "Wedding", "priya")

    stale = resolver.apply(3, JUNE_10, StatusKind.AVAILABLE, "priya", expected_status=StatusKind.ON_HOLD)
    old_version = resolver.apply(
        3, JUNE_10, StatusKind.AVAILABLE, "priya", expected_status=StatusKind.BOOKED, expected_version=1
    )

    assert stale.outcome is Outcome.CONFLICT
    assert old_version.outcome is Outcome.CONFLICT
    assert _status(repository).kind is StatusKind.BOOKED


def test_apply_available_releases_or_cancels_for_the_owner(resolver, repository):
    resolver.request_hold(3, JUNE_10, "Wedding", "priya")
    resolver.confirm_booking(3, JUNE_10 + timedelta(days=1), "Wedding", "priya")

    assert resolver.apply(3, JUNE_10, StatusKind.AVAILABLE, "arjun").outcome is Outcome.CONFLICT
    assert resolver.apply(3, JUNE_10 + timedelta(days=1), StatusKind.AVAILABLE, "arjun").outcome is Outcome.CONFLICT

    assert resolver.apply(3, JUNE_10, StatusKind.AVAILABLE, "priya").ok
    assert resolver.apply(3, JUNE_10 + timedelta(days=1), StatusKind.AVAILABLE, "priya").ok
    assert _status(repository) == AVAILABLE
    assert _status(repository, day=JUNE_10 + timedelta(days=1)) == AVAILABLE
    # The freed row remembers who freed it
    assert repository.get(3, JUNE_10).holder == "priya"
