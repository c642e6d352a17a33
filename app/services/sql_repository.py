import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.models.availability import HallAvailability, HallAvailabilityEvent
from app.services.repository import AvailabilityRepository
from app.services.status import (
    AvailabilityRecord,
    BookingCategory,
    DateStatus,
    RepositoryUnavailable,
    StatusKind,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: HallAvailability) -> AvailabilityRecord:
    return AvailabilityRecord(
        hall_id=row.hall_id,
        day=row.date,
        status=DateStatus(
            kind=StatusKind(row.status),
            reason=row.reason,
            category=BookingCategory(row.category) if row.category else None,
        ),
        holder=row.holder,
        hold_expires_at=_as_utc(row.hold_expires_at),
        version=row.version,
    )


def _columns(record: AvailabilityRecord) -> dict:
    status = record.status
    return {
        "status": status.kind.value,
        "reason": status.reason,
        "category": status.category.value if status.category else None,
        "holder": record.holder,
        "hold_expires_at": record.hold_expires_at,
    }


class SqlAvailabilityRepository(AvailabilityRepository):
    """
    Availability store on the ``hall_availability`` table.

    Inserts rely on the (hall_id, date) unique constraint and updates are
    guarded by the row version, so two processes racing on the same key
    cannot both win even without the resolver's in-process lock.
    Every successful write appends a ``hall_availability_events`` row.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def fetch_all(self) -> List[AvailabilityRecord]:
        db: Session = self._session_factory()
        try:
            rows = db.query(HallAvailability).order_by(HallAvailability.hall_id, HallAvailability.date).all()
            return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("Failed to load availability records.")
            raise RepositoryUnavailable(str(exc)) from exc
        finally:
            db.close()

    def get(self, hall_id: int, day: date) -> Optional[AvailabilityRecord]:
        db: Session = self._session_factory()
        try:
            row = (
                db.query(HallAvailability)
                .filter(HallAvailability.hall_id == hall_id, HallAvailability.date == day)
                .first()
            )
            return _to_record(row) if row else None
        except SQLAlchemyError as exc:
            logger.exception("Failed to load availability for hall %s on %s.", hall_id, day)
            raise RepositoryUnavailable(str(exc)) from exc
        finally:
            db.close()

    def compare_and_set(
        self, expected: Optional[AvailabilityRecord], new: AvailabilityRecord
    ) -> bool:
        db: Session = self._session_factory()
        try:
            if expected is None:
                version = 1
                from_status = StatusKind.AVAILABLE.value
                db.add(HallAvailability(hall_id=new.hall_id, date=new.day, version=version, **_columns(new)))
                db.flush()
            else:
                version = expected.version + 1
                from_status = expected.status.kind.value
                updated = (
                    db.query(HallAvailability)
                    .filter(
                        HallAvailability.hall_id == new.hall_id,
                        HallAvailability.date == new.day,
                        HallAvailability.version == expected.version,
                    )
                    .update({**_columns(new), "version": version}, synchronize_session=False)
                )
                if updated != 1:
                    db.rollback()
                    return False

            db.add(HallAvailabilityEvent(
                hall_id=new.hall_id,
                date=new.day,
                from_status=from_status,
                to_status=new.status.kind.value,
                reason=new.status.reason,
                holder=new.holder,
                version=version,
            ))
            db.commit()
            return True
        except IntegrityError:
            # Someone inserted the same (hall_id, date) first
            db.rollback()
            return False
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to write availability for hall %s on %s.", new.hall_id, new.day)
            raise RepositoryUnavailable(str(exc)) from exc
        finally:
            db.close()

    def expire_holds(self, now: datetime) -> int:
        db: Session = self._session_factory()
        try:
            stale = (
                db.query(HallAvailability)
                .filter(
                    HallAvailability.status == StatusKind.ON_HOLD.value,
                    HallAvailability.hold_expires_at <= now,
                )
                .all()
            )
            released = 0
            for row in stale:
                updated = (
                    db.query(HallAvailability)
                    .filter(HallAvailability.id == row.id, HallAvailability.version == row.version)
                    .update(
                        {
                            "status": StatusKind.AVAILABLE.value,
                            "reason": None,
                            "category": None,
                            "holder": None,
                            "hold_expires_at": None,
                            "version": row.version + 1,
                        },
                        synchronize_session=False,
                    )
                )
                if updated != 1:
                    continue
                db.add(HallAvailabilityEvent(
                    hall_id=row.hall_id,
                    date=row.date,
                    from_status=StatusKind.ON_HOLD.value,
                    to_status=StatusKind.AVAILABLE.value,
                    reason=row.reason,
                    holder=row.holder,
                    version=row.version + 1,
                ))
                released += 1
            db.commit()
            return released
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to expire stale holds.")
            raise RepositoryUnavailable(str(exc)) from exc
        finally:
            db.close()
