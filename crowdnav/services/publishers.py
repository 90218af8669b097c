# crowdnav/services/publishers.py
"""
Outbound collaborators of the sync orchestrator.

Every publisher receives immutable Zone / UserPosition records. Calls are
scheduled fire-and-forget by the orchestrator; a raised exception is logged
as a PublishFailure and the record is republished on the next sync cycle.

    BasePublisher (no-op defaults)
        ├── StorePublisher      → zone / position stores (SQL)
        ├── AlertPublisher      → over-crowding + SOS alerts
        └── SnapshotBroadcaster → live websocket subscribers
"""

import asyncio
from typing import Callable, Set

from sqlalchemy.orm import Session

from crowdnav.database import SessionLocal
from crowdnav.services.alert_service import add_alert, has_recent_alert
from crowdnav.services.domain import OUTSIDE, UNKNOWN, DensityCategory, UserPosition, Zone
from crowdnav.services.position_store import PositionStore
from crowdnav.services.zone_store import ZoneStore
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)


class BasePublisher:
    name = "publisher"

    async def publish_zone(self, zone: Zone):
        pass

    async def publish_zone_deleted(self, zone_id: str):
        pass

    async def publish_position(self, position: UserPosition):
        pass

    async def publish_position_deleted(self, user_id: str):
        pass


class StorePublisher(BasePublisher):
    """
    Writes records through the (blocking) stores on a worker thread.
    Zone publications carry computed state only; admin fields are written by
    the orchestrator's own write-through and are never overwritten here.
    """

    name = "store"

    def __init__(self, zone_store: ZoneStore, position_store: PositionStore):
        self.zone_store = zone_store
        self.position_store = position_store

    async def publish_zone(self, zone: Zone):
        if not await asyncio.to_thread(self.zone_store.update_zone_state, zone):
            logger.debug(f"Zone {zone.id} no longer stored; state update dropped")

    async def publish_zone_deleted(self, zone_id: str):
        await asyncio.to_thread(self.zone_store.delete_zone, zone_id)

    async def publish_position(self, position: UserPosition):
        await asyncio.to_thread(self.position_store.upsert_position, position)

    async def publish_position_deleted(self, user_id: str):
        await asyncio.to_thread(self.position_store.delete_position, user_id)


class AlertPublisher(BasePublisher):
    """Raises an alert when a zone is over-crowded or a user calls SOS (with cooldown)."""

    name = "alerts"

    def __init__(self, cooldown_seconds: int,
                 session_factory: Callable[[], Session] = SessionLocal):
        self.cooldown_seconds = cooldown_seconds
        self._session_factory = session_factory

    async def publish_zone(self, zone: Zone):
        if zone.density == DensityCategory.OVER_CROWDED:
            await asyncio.to_thread(self._raise_overcrowded, zone)

    async def publish_position(self, position: UserPosition):
        if position.sos:
            await asyncio.to_thread(self._raise_sos, position)

    def _raise_overcrowded(self, zone: Zone):
        db = self._session_factory()
        try:
            if has_recent_alert(db, "overcrowded", self.cooldown_seconds, zone_id=zone.id):
                return
            add_alert(
                db, "overcrowded",
                f"Zone {zone.name} is over-crowded ({zone.occupant_count}/{zone.capacity}). "
                f"Please use an alternative route.",
                zone_id=zone.id,
            )
        finally:
            db.close()

    def _raise_sos(self, position: UserPosition):
        db = self._session_factory()
        try:
            if has_recent_alert(db, "sos", self.cooldown_seconds, user_id=position.user_id):
                return
            who = position.name or position.user_id
            add_alert(
                db, "sos", f"SOS from {who} at ({position.coordinate.latitude:.6f}, "
                           f"{position.coordinate.longitude:.6f})",
                zone_id=None if position.assigned_zone_id in (OUTSIDE, UNKNOWN) else position.assigned_zone_id,
                user_id=position.user_id,
            )
        finally:
            db.close()


class SnapshotBroadcaster(BasePublisher):
    """
    In-process pub/sub for live dashboards. Each subscriber owns a bounded
    queue; when a slow subscriber's queue is full the oldest message is dropped.
    Messages are (kind, payload) tuples where payload is a frozen record or an id.
    """

    name = "broadcast"

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Snapshot subscriber added ({len(self._subscribers)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _emit(self, kind: str, payload):
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait((kind, payload))

    async def publish_zone(self, zone: Zone):
        self._emit("zone", zone)

    async def publish_zone_deleted(self, zone_id: str):
        self._emit("zone_deleted", zone_id)

    async def publish_position(self, position: UserPosition):
        self._emit("position", position)

    async def publish_position_deleted(self, user_id: str):
        self._emit("position_deleted", user_id)
