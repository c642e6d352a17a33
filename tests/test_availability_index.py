from datetime import date, datetime, timedelta, timezone

import pytest

from app.services.availability_index import AvailabilityIndex
from app.services.status import (
    AVAILABLE,
    AvailabilityRecord,
    BookingCategory,
    DateStatus,
    StatusKind,
)

JUNE_10 = date(2025, 6, 10)
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _booked(hall_id, day, reason="Wedding"):
    return AvailabilityRecord(hall_id, day, DateStatus.booked(reason))


def test_unknown_key_reads_as_available():
    index = AvailabilityIndex()

    assert index.status_of(3, JUNE_10) == AVAILABLE
    assert index.all_for_hall(3) == {}


def test_refresh_projects_records_per_hall():
    index = AvailabilityIndex()
    index.refresh([
        _booked(1, JUNE_10),
        AvailabilityRecord(1, JUNE_10 + timedelta(days=1), DateStatus.on_hold("Upanayana")),
        _booked(2, JUNE_10, "Reception"),
        AvailabilityRecord(2, JUNE_10 + timedelta(days=5), AVAILABLE),
    ])

    assert index.status_of(1, JUNE_10).kind is StatusKind.BOOKED
    assert index.status_of(1, JUNE_10 + timedelta(days=1)) == DateStatus(
        StatusKind.ON_HOLD, "Upanayana", BookingCategory.upanayana
    )
    assert set(index.all_for_hall(1)) == {JUNE_10, JUNE_10 + timedelta(days=1)}
    # Released/cancelled rows are not stored
    assert set(index.all_for_hall(2)) == {JUNE_10}


def test_refresh_replaces_previous_snapshot_entirely():
    index = AvailabilityIndex()
    index.refresh([_booked(1, JUNE_10)])
    before = index.all_for_hall(1)

    index.refresh([_booked(2, JUNE_10)])

    assert index.status_of(1, JUNE_10) == AVAILABLE
    assert index.status_of(2, JUNE_10).kind is StatusKind.BOOKED
    # A reader holding the old snapshot still sees it complete
    assert before[JUNE_10].kind is StatusKind.BOOKED


def test_refresh_as_of_drops_expired_holds():
    index = AvailabilityIndex()
    expired = AvailabilityRecord(
        1, JUNE_10, DateStatus.on_hold("Wedding"), holder="a", hold_expires_at=NOW - timedelta(minutes=1)
    )
    live = AvailabilityRecord(
        1, JUNE_10 + timedelta(days=1), DateStatus.on_hold("Wedding"), holder="b", hold_expires_at=NOW + timedelta(minutes=5)
    )

    index.refresh([expired, live], as_of=NOW)

    assert index.status_of(1, JUNE_10) == AVAILABLE
    assert index.status_of(1, JUNE_10 + timedelta(days=1)).kind is StatusKind.ON_HOLD
    assert index.refreshed_at == NOW


def test_update_entry_sets_and_clears_single_key():
    index = AvailabilityIndex()
    index.refresh([_booked(1, JUNE_10)])
    snapshot = index.all_for_hall(1)

    index.update_entry(AvailabilityRecord(1, JUNE_10 + timedelta(days=2), DateStatus.on_hold("Reception")))
    index.update_entry(AvailabilityRecord(1, JUNE_10, AVAILABLE))

    assert index.status_of(1, JUNE_10) == AVAILABLE
    assert index.status_of(1, JUNE_10 + timedelta(days=2)).kind is StatusKind.ON_HOLD
    assert JUNE_10 in snapshot


def test_hall_mapping_is_read_only():
    index = AvailabilityIndex()
    index.refresh([_booked(1, JUNE_10)])

    with pytest.raises(TypeError):
        index.all_for_hall(1)[JUNE_10] = AVAILABLE


def test_refresh_from_older_read_keeps_newer_writes():
    index = AvailabilityIndex()
    generation = index.generation
    fetched = [_booked(1, JUNE_10)]

    # Written after the records above were read
    index.update_entry(AvailabilityRecord(1, JUNE_10 + timedelta(days=1), DateStatus.on_hold("Reception")))
    index.update_entry(AvailabilityRecord(1, JUNE_10, AVAILABLE))
    index.refresh(fetched, generation=generation)

    assert index.status_of(1, JUNE_10 + timedelta(days=1)).kind is StatusKind.ON_HOLD
    assert index.status_of(1, JUNE_10) == AVAILABLE


def test_refresh_older_than_installed_one_is_dropped():
    index = AvailabilityIndex()
    older = index.generation
    index.update_entry(AvailabilityRecord(1, JUNE_10, DateStatus.on_hold("Wedding")))
    newer = index.generation
    index.refresh([AvailabilityRecord(1, JUNE_10, DateStatus.booked("Wedding"))], generation=newer)

    index.refresh([], generation=older)

    assert index.status_of(1, JUNE_10).kind is StatusKind.BOOKED


def test_writes_already_in_the_fetch_are_not_replayed():
    index = AvailabilityIndex()
    index.update_entry(AvailabilityRecord(1, JUNE_10, DateStatus.on_hold("Wedding")))
    generation = index.generation

    # Released elsewhere; the fetch taken after our write no longer has it
    index.refresh([], generation=generation)

    assert index.status_of(1, JUNE_10) == AVAILABLE
