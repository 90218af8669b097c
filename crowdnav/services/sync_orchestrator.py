# crowdnav/services/sync_orchestrator.py
"""
Sync Orchestrator — the only writer of in-memory zone and position state.

Flow per position update:
    locate (geometry + optional advisory) → store position
    → recount affected zones → reclassify changed zones
    → schedule publication to every publisher (fire-and-forget)

A periodic cycle (run()) reloads admin-owned zone fields from the store,
marks stale positions offline, recounts every zone and republishes whatever
failed to publish last time. Readers (routes, dashboards) only ever see
immutable snapshots.
"""

import asyncio
import uuid
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from crowdnav.exceptions import (
    InvalidCapacity, InvalidPolygon, NoteNotFound, PublishFailure, UserNotFound,
    ZoneAlreadyExists, ZoneNotFound,
)
from crowdnav.services.density_service import classify, is_override_stale
from crowdnav.services.domain import (
    OUTSIDE, UNKNOWN, Coordinate, DensityCategory, ManualOverride,
    PositionStatus, Route, UserPosition, Zone, ZoneNote, ZoneSnapshot,
)
from crowdnav.services.geometry import MIN_POLYGON_VERTICES
from crowdnav.services.position_store import PositionStore
from crowdnav.services.publishers import BasePublisher
from crowdnav.services.route_planner import plan_route, suggest_alternative
from crowdnav.services.zone_locator import ZoneAdvisor, locate, resolve_zone
from crowdnav.services.zone_store import ZoneStore
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)


def as_naive_utc(ts: datetime) -> datetime:
    """Timestamps are kept as naive UTC; aware ones (e.g. "...Z" from clients) are converted."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def validate_zone(zone: Zone):
    """Admin-time validation: reject zones the core could never classify or locate in."""
    if len(zone.boundary) < MIN_POLYGON_VERTICES:
        raise InvalidPolygon(zone.id, len(zone.boundary))
    if zone.capacity is None or zone.capacity <= 0:
        raise InvalidCapacity(zone.capacity, zone.id)


class SyncOrchestrator:
    def __init__(self, zone_store: ZoneStore, position_store: PositionStore,
                 publishers: Sequence[BasePublisher] = (),
                 advisor: Optional[ZoneAdvisor] = None,
                 advisory_timeout: float = 2.0,
                 stale_after_seconds: int = 300):
        self.zone_store = zone_store
        self.position_store = position_store
        self.publishers = list(publishers)
        self.advisor = advisor
        self.advisory_timeout = advisory_timeout
        self.stale_after = timedelta(seconds=stale_after_seconds)

        self._zones: Dict[str, Zone] = {}            # insertion order = locator order
        self._positions: Dict[str, UserPosition] = {}
        self._user_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: Set[asyncio.Task] = set()
        self._dirty_zones: Set[str] = set()
        self._dirty_positions: Set[str] = set()
        self._stop = asyncio.Event()
        # Bumped around every admin zone edit; a reload that overlaps one is not merged
        self._zone_generation = 0

    # ── Loading ──────────────────────────────────────────────────────────
    def load(self):
        """Initial pull from the stores. Counts are recomputed from positions."""
        self._zones = {z.id: z for z in self.zone_store.list_zones()}
        self._positions = {p.user_id: p for p in self.position_store.list_positions()}
        moved = self._relocate_all()
        changed = self._recount()
        logger.info(f"Loaded {len(self._zones)} zones, {len(self._positions)} positions "
                    f"({len(changed)} zones reclassified)")
        self._publish_positions(moved)
        self._publish_zones(changed)

    # ── Snapshots (copy-on-read) ─────────────────────────────────────────
    def snapshot(self) -> ZoneSnapshot:
        return ZoneSnapshot(zones=tuple(self._zones.values()))

    def positions_snapshot(self) -> Tuple[UserPosition, ...]:
        return tuple(self._positions.values())

    def get_zone(self, zone_id: str) -> Zone:
        zone = self._zones.get(zone_id)
        if zone is None:
            raise ZoneNotFound(zone_id)
        return zone

    def get_position(self, user_id: str) -> UserPosition:
        position = self._positions.get(user_id)
        if position is None:
            raise UserNotFound(user_id)
        return position

    # ── Position stream ──────────────────────────────────────────────────
    async def on_position_update(self, user_id: str, coordinate: Coordinate,
                                 observed_at: Optional[datetime] = None,
                                 name: Optional[str] = None,
                                 group_size: Optional[int] = None,
                                 accuracy: Optional[float] = None) -> UserPosition:
        # One user's updates complete in arrival order, even across an advisory await
        async with self._user_locks[user_id]:
            zones = tuple(self._zones.values())
            result = await resolve_zone(coordinate, zones, self.advisor,
                                        timeout=self.advisory_timeout, accuracy=accuracy)
            zone_id = self._assignment(result.zone_id, zones)

            previous = self._positions.get(user_id)
            position = UserPosition(
                user_id=user_id,
                coordinate=coordinate,
                observed_at=as_naive_utc(observed_at) if observed_at else datetime.utcnow(),
                assigned_zone_id=zone_id,
                name=name if name is not None else (previous.name if previous else ""),
                group_size=group_size or (previous.group_size if previous else 1),
                status=PositionStatus.ONLINE,
                sos=previous.sos if previous else False,
            )
            self._positions[user_id] = position

            affected = {zone_id}
            if previous is not None:
                affected.add(previous.assigned_zone_id)
            changed = self._recount(affected)

        if previous is None or previous.assigned_zone_id != zone_id:
            logger.info(f"👤 {user_id}: {previous.assigned_zone_id if previous else '—'} → {zone_id}")
        self._publish_positions([position])
        self._publish_zones(changed)
        return position

    @staticmethod
    def _assignment(zone_id: str, zones: Sequence[Zone]) -> str:
        # "unknown" only when there was nothing valid to test against
        if zone_id != UNKNOWN:
            return zone_id
        has_valid = any(len(z.boundary) >= MIN_POLYGON_VERTICES for z in zones)
        return OUTSIDE if has_valid else UNKNOWN

    def remove_user(self, user_id: str):
        position = self.get_position(user_id)
        del self._positions[user_id]
        self._user_locks.pop(user_id, None)
        self._dirty_positions.discard(user_id)
        changed = self._recount({position.assigned_zone_id})
        self._schedule_all("publish_position_deleted", user_id, user_id)
        self._publish_zones(changed)

    def set_sos(self, user_id: str, sos: bool) -> UserPosition:
        position = replace(self.get_position(user_id), sos=sos)
        self._positions[user_id] = position
        if sos:
            logger.warning(f"🆘 SOS raised by {user_id} in {position.assigned_zone_id}")
        else:
            logger.info(f"SOS cleared for {user_id}")
        self._publish_positions([position])
        return position

    # ── Recount + classification ─────────────────────────────────────────
    def _occupancy(self) -> Counter:
        counts = Counter()
        for p in self._positions.values():
            if p.is_counted:
                counts[p.assigned_zone_id] += p.group_size
        return counts

    def _reclassify(self, zone: Zone, count: int) -> Zone:
        override = zone.manual_override
        if is_override_stale(count, override):
            logger.info(f"Manual override on {zone.id} is stale "
                        f"({override.occupant_count_at_override} → {count}) — cleared")
            override = None
        try:
            density = classify(count, zone.capacity, override)
        except InvalidCapacity as e:
            logger.error(f"Cannot classify zone {zone.id}: {e}")
            density = zone.density
        return replace(zone, occupant_count=count, density=density, manual_override=override)

    def _recount(self, zone_ids: Optional[Iterable[str]] = None) -> List[Zone]:
        """Recount the given zones (all when None); return zones whose state changed."""
        counts = self._occupancy()
        targets = self._zones.keys() if zone_ids is None else [z for z in zone_ids if z in self._zones]
        changed = []
        for zone_id in list(targets):
            zone = self._zones[zone_id]
            count = counts.get(zone_id, 0)
            stale_override = is_override_stale(count, zone.manual_override)
            if count == zone.occupant_count and not stale_override and zone_ids is not None:
                continue
            updated = self._reclassify(zone, count)
            if updated != zone:
                self._zones[zone_id] = updated
                changed.append(updated)
                if updated.density != zone.density:
                    logger.info(f"[DENSITY] {zone_id}: {zone.density.value} → {updated.density.value} "
                                f"({count}/{zone.capacity})")
        return changed

    def recompute(self) -> List[Zone]:
        changed = self._recount()
        self._publish_zones(changed)
        return changed

    # ── Admin operations ─────────────────────────────────────────────────
    # Admin edits are written through to the zone store before memory changes,
    # so a failed write surfaces to the admin. The generation counter is bumped
    # on both sides of the write; sync_once() discards any reload it overlapped.
    async def _write_zone(self, zone: Zone):
        self._zone_generation += 1
        try:
            await asyncio.to_thread(self.zone_store.upsert_zone, zone)
        finally:
            self._zone_generation += 1

    async def create_zone(self, zone: Zone) -> Zone:
        if zone.id in self._zones:
            raise ZoneAlreadyExists(zone.id)
        return await self.upsert_zone(zone)

    async def upsert_zone(self, zone: Zone) -> Zone:
        """Create or update admin-owned fields. Occupancy, override and notes stay as they are."""
        validate_zone(zone)
        existing = self._zones.get(zone.id)
        if existing is not None:
            zone = replace(existing, name=zone.name, boundary=tuple(zone.boundary),
                           capacity=zone.capacity, adjacent_zone_ids=tuple(zone.adjacent_zone_ids))
        else:
            zone = replace(zone, occupant_count=0, density=DensityCategory.FREE, manual_override=None)
        await self._write_zone(zone)
        current = self._zones.get(zone.id)
        if existing is not None and current is not None:
            # Occupancy may have moved while the write was in flight
            zone = replace(zone, occupant_count=current.occupant_count, density=current.density,
                           manual_override=current.manual_override, notes=current.notes)
        self._zones[zone.id] = zone

        moved = self._relocate_all()
        changed = {z.id: z for z in self._recount()}
        zone = self._zones[zone.id]
        changed[zone.id] = zone         # always broadcast admin edits
        logger.info(f"Zone {'updated' if existing else 'created'}: {zone.id} ({zone.name}), "
                    f"{len(moved)} users relocated")
        self._publish_positions(moved)
        self._publish_zones(changed.values())
        return zone

    async def delete_zone(self, zone_id: str):
        self.get_zone(zone_id)
        self._zone_generation += 1
        try:
            await asyncio.to_thread(self.zone_store.delete_zone, zone_id)
        finally:
            self._zone_generation += 1
        self._zones.pop(zone_id, None)
        self._dirty_zones.discard(zone_id)
        moved = self._relocate_all()
        changed = self._recount()
        logger.info(f"Zone deleted: {zone_id}, {len(moved)} users relocated")
        self._schedule_all("publish_zone_deleted", zone_id, zone_id)
        self._publish_positions(moved)
        self._publish_zones(changed)

    async def add_zone_note(self, zone_id: str, text: str, visible_to_user: bool = True) -> ZoneNote:
        zone = self.get_zone(zone_id)
        note = ZoneNote(id=f"note-{uuid.uuid4().hex[:8]}", text=text.strip(), visible_to_user=visible_to_user)
        await self._write_zone(replace(zone, notes=zone.notes + (note,)))
        zone = self.get_zone(zone_id)
        self._zones[zone_id] = zone = replace(zone, notes=zone.notes + (note,))
        logger.info(f"[NOTE] {zone_id}: added {note.id} ({'visible' if visible_to_user else 'hidden'})")
        self._publish_zones([zone])
        return note

    async def delete_zone_note(self, zone_id: str, note_id: str):
        zone = self.get_zone(zone_id)
        if not any(n.id == note_id for n in zone.notes):
            raise NoteNotFound(zone_id, note_id)
        await self._write_zone(replace(zone, notes=tuple(n for n in zone.notes if n.id != note_id)))
        zone = self.get_zone(zone_id)
        self._zones[zone_id] = zone = replace(zone, notes=tuple(n for n in zone.notes if n.id != note_id))
        logger.info(f"[NOTE] {zone_id}: removed {note_id}")
        self._publish_zones([zone])

    def set_manual_override(self, zone_id: str, density: DensityCategory) -> Zone:
        """Pin density until occupancy next changes."""
        zone = self.get_zone(zone_id)
        density = DensityCategory(density)
        zone = replace(zone, density=density,
                       manual_override=ManualOverride(density, zone.occupant_count))
        self._zones[zone_id] = zone
        logger.info(f"[OVERRIDE] {zone_id} pinned to {density.value} at count {zone.occupant_count}")
        self._publish_zones([zone])
        return zone

    def clear_manual_override(self, zone_id: str) -> Zone:
        zone = self.get_zone(zone_id)
        zone = self._reclassify(replace(zone, manual_override=None), zone.occupant_count)
        self._zones[zone_id] = zone
        logger.info(f"[OVERRIDE] {zone_id} cleared → {zone.density.value}")
        self._publish_zones([zone])
        return zone

    def _relocate_all(self) -> List[UserPosition]:
        """Re-run the deterministic locator for every position after the zone set changed."""
        zones = tuple(self._zones.values())
        moved = []
        for user_id, p in list(self._positions.items()):
            zone_id = self._assignment(locate(p.coordinate, zones), zones)
            if zone_id != p.assigned_zone_id:
                p = replace(p, assigned_zone_id=zone_id)
                self._positions[user_id] = p
                moved.append(p)
        return moved

    # ── Routing (reads a snapshot) ───────────────────────────────────────
    def plan_route(self, source: str, destination: str) -> Route:
        return plan_route(source, destination, self.snapshot().zones)

    def suggest_alternative(self, current_path: Sequence[str]) -> Optional[Tuple[str, ...]]:
        return suggest_alternative(current_path, self.snapshot().zones)

    # ── Periodic cycle ───────────────────────────────────────────────────
    async def sync_once(self, now: Optional[datetime] = None) -> List[Zone]:
        now = as_naive_utc(now) if now else datetime.utcnow()
        generation = self._zone_generation
        try:
            stored = await asyncio.to_thread(self.zone_store.list_zones)
        except Exception as e:
            logger.warning(f"Zone reload failed, keeping in-memory zones: {e}")
        else:
            if generation != self._zone_generation:
                logger.debug("Zone edited during reload; merge deferred to next cycle")
            elif self._merge_admin_fields(stored):
                self._publish_positions(self._relocate_all())

        went_offline = []
        for user_id, p in list(self._positions.items()):
            if p.status == PositionStatus.ONLINE and now - p.observed_at > self.stale_after:
                p = replace(p, status=PositionStatus.OFFLINE)
                self._positions[user_id] = p
                went_offline.append(p)
        if went_offline:
            logger.info(f"{len(went_offline)} users marked offline (no update for {self.stale_after})")
            self._publish_positions(went_offline)

        changed = self._recount()
        self._publish_zones(changed)
        self._retry_dirty()
        return changed

    def _merge_admin_fields(self, stored: Sequence[Zone]) -> bool:
        """Take name/boundary/capacity/adjacency/notes from the store. Returns True if any boundary changed."""
        merged: Dict[str, Zone] = {}
        boundaries_changed = set(self._zones) != {z.id for z in stored}
        for z in stored:
            existing = self._zones.get(z.id)
            if existing is None:
                merged[z.id] = z
                continue
            if tuple(existing.boundary) != tuple(z.boundary):
                boundaries_changed = True
            merged[z.id] = replace(existing, name=z.name, boundary=tuple(z.boundary),
                                   capacity=z.capacity, adjacent_zone_ids=tuple(z.adjacent_zone_ids),
                                   notes=tuple(z.notes))
        self._zones = merged
        return boundaries_changed

    async def run(self, interval: float):
        logger.info(f"🔄 Sync loop started (every {interval}s)")
        self._stop.clear()
        while not self._stop.is_set():
            try:
                await self.sync_once()
            except Exception as e:
                logger.error(f"Sync cycle failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("🛑 Sync loop stopped")

    def stop(self):
        self._stop.set()

    # ── Publication (fire-and-forget) ────────────────────────────────────
    def _publish_zones(self, zones: Iterable[Zone]):
        for zone in zones:
            self._dirty_zones.discard(zone.id)
            self._schedule_all("publish_zone", zone, zone.id, self._dirty_zones)

    def _publish_positions(self, positions: Iterable[UserPosition]):
        for position in positions:
            self._dirty_positions.discard(position.user_id)
            self._schedule_all("publish_position", position, position.user_id, self._dirty_positions)

    def _retry_dirty(self):
        zones = [self._zones[z] for z in list(self._dirty_zones) if z in self._zones]
        positions = [self._positions[u] for u in list(self._dirty_positions) if u in self._positions]
        if zones or positions:
            logger.info(f"Republishing {len(zones)} zones, {len(positions)} positions after earlier failures")
        self._publish_zones(zones)
        self._publish_positions(positions)

    def _schedule_all(self, method: str, record, record_id: str, dirty: Optional[Set[str]] = None):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called outside the event loop (e.g. scripts); the next cycle picks it up
            if dirty is not None:
                dirty.add(record_id)
            return
        for publisher in self.publishers:
            task = loop.create_task(self._deliver(publisher, method, record, record_id, dirty))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, publisher: BasePublisher, method: str, record, record_id: str,
                       dirty: Optional[Set[str]]):
        try:
            await getattr(publisher, method)(record)
        except Exception as e:
            failure = PublishFailure(publisher.name, record_id, e)
            logger.warning(f"⚠️  {failure} — will retry next cycle")
            if dirty is not None:
                dirty.add(record_id)

    async def drain(self):
        """Wait for every scheduled publication to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
