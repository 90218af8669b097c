# crowdnav/services/position_store.py
"""Last-known user positions — repository interface + SQLAlchemy implementation."""

from typing import Callable, List, Protocol

from sqlalchemy.orm import Session

from crowdnav.database import SessionLocal
from crowdnav.models.user_position import UserPositionRecord
from crowdnav.services.domain import Coordinate, PositionStatus, UserPosition


class PositionStore(Protocol):
    def list_positions(self) -> List[UserPosition]: ...
    def upsert_position(self, position: UserPosition) -> None: ...
    def delete_position(self, user_id: str) -> None: ...


def position_from_record(rec: UserPositionRecord) -> UserPosition:
    return UserPosition(
        user_id=rec.user_id,
        coordinate=Coordinate(rec.latitude, rec.longitude),
        observed_at=rec.observed_at,
        assigned_zone_id=rec.assigned_zone_id,
        name=rec.name or "",
        group_size=rec.group_size or 1,
        status=PositionStatus(rec.status or PositionStatus.ONLINE),
        sos=bool(rec.sos),
    )


class SqlPositionStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def list_positions(self) -> List[UserPosition]:
        db = self._session_factory()
        try:
            return [position_from_record(r) for r in db.query(UserPositionRecord).all()]
        finally:
            db.close()

    def upsert_position(self, position: UserPosition) -> None:
        db = self._session_factory()
        try:
            rec = db.query(UserPositionRecord).filter(UserPositionRecord.user_id == position.user_id).first()
            if not rec:
                rec = UserPositionRecord(user_id=position.user_id)
                db.add(rec)
            rec.name = position.name
            rec.group_size = position.group_size
            rec.latitude = position.coordinate.latitude
            rec.longitude = position.coordinate.longitude
            rec.observed_at = position.observed_at
            rec.assigned_zone_id = position.assigned_zone_id
            rec.status = PositionStatus(position.status).value
            rec.sos = position.sos
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_position(self, user_id: str) -> None:
        db = self._session_factory()
        try:
            db.query(UserPositionRecord).filter(UserPositionRecord.user_id == user_id).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
