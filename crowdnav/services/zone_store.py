# crowdnav/services/zone_store.py
"""
Zone persistence behind a small repository interface.
The sync orchestrator receives a ZoneStore at construction; SqlZoneStore is
the SQLAlchemy implementation. Each call opens and closes its own session,
so the store is safe to call from asyncio.to_thread workers.

upsert_zone / delete_zone carry admin edits. update_zone_state only writes
the core-owned columns of a zone that still exists, so a late publication
can never recreate a deleted zone or undo an admin edit.
"""

from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy.orm import Session

from crowdnav.database import SessionLocal
from crowdnav.models.zone import ZoneRecord
from crowdnav.services.domain import Coordinate, DensityCategory, ManualOverride, Zone, ZoneNote


class ZoneStore(Protocol):
    def list_zones(self) -> List[Zone]: ...
    def get_zone(self, zone_id: str) -> Optional[Zone]: ...
    def upsert_zone(self, zone: Zone) -> None: ...
    def update_zone_state(self, zone: Zone) -> bool: ...
    def delete_zone(self, zone_id: str) -> None: ...


def note_from_dict(raw: dict) -> ZoneNote:
    created_at = raw.get("created_at")
    return ZoneNote(
        id=raw["id"],
        text=raw["text"],
        visible_to_user=bool(raw.get("visible_to_user", True)),
        created_at=datetime.fromisoformat(created_at) if created_at else datetime.utcnow(),
    )


def note_to_dict(note: ZoneNote) -> dict:
    return {"id": note.id, "text": note.text, "visible_to_user": note.visible_to_user,
            "created_at": note.created_at.isoformat()}


def zone_from_record(rec: ZoneRecord) -> Zone:
    override = None
    if rec.override_density is not None and rec.override_count is not None:
        override = ManualOverride(DensityCategory(rec.override_density), rec.override_count)
    return Zone(
        id=rec.id,
        name=rec.name,
        boundary=tuple(Coordinate(float(c["lat"]), float(c["lng"])) for c in rec.boundary or []),
        capacity=rec.capacity,
        occupant_count=rec.occupant_count or 0,
        density=DensityCategory(rec.density or DensityCategory.FREE),
        manual_override=override,
        adjacent_zone_ids=tuple(rec.adjacent_zone_ids or ()),
        notes=tuple(note_from_dict(n) for n in rec.notes or ()),
    )


def apply_state(rec: ZoneRecord, zone: Zone) -> ZoneRecord:
    rec.occupant_count = zone.occupant_count
    rec.density = DensityCategory(zone.density).value
    rec.override_density = DensityCategory(zone.manual_override.density).value if zone.manual_override else None
    rec.override_count = zone.manual_override.occupant_count_at_override if zone.manual_override else None
    rec.updated_at = datetime.utcnow()
    return rec


def apply_zone(rec: ZoneRecord, zone: Zone) -> ZoneRecord:
    rec.name = zone.name
    rec.boundary = [{"lat": c.latitude, "lng": c.longitude} for c in zone.boundary]
    rec.capacity = zone.capacity
    rec.adjacent_zone_ids = list(zone.adjacent_zone_ids)
    rec.notes = [note_to_dict(n) for n in zone.notes]
    return apply_state(rec, zone)


class SqlZoneStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def list_zones(self) -> List[Zone]:
        db = self._session_factory()
        try:
            return [zone_from_record(r) for r in db.query(ZoneRecord).order_by(ZoneRecord.id).all()]
        finally:
            db.close()

    def get_zone(self, zone_id: str) -> Optional[Zone]:
        db = self._session_factory()
        try:
            rec = db.query(ZoneRecord).filter(ZoneRecord.id == zone_id).first()
            return zone_from_record(rec) if rec else None
        finally:
            db.close()

    def upsert_zone(self, zone: Zone) -> None:
        db = self._session_factory()
        try:
            rec = db.query(ZoneRecord).filter(ZoneRecord.id == zone.id).first()
            if not rec:
                rec = ZoneRecord(id=zone.id)
                db.add(rec)
            apply_zone(rec, zone)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update_zone_state(self, zone: Zone) -> bool:
        """Write occupancy/density/override only. Returns False if the zone is gone."""
        db = self._session_factory()
        try:
            rec = db.query(ZoneRecord).filter(ZoneRecord.id == zone.id).first()
            if not rec:
                return False
            apply_state(rec, zone)
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_zone(self, zone_id: str) -> None:
        db = self._session_factory()
        try:
            db.query(ZoneRecord).filter(ZoneRecord.id == zone_id).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
