# crowdnav/services/domain.py
"""
In-memory domain records shared by the geometry, density, locator, routing
and sync services. All records are frozen: readers always get snapshots,
and the sync orchestrator replaces records instead of mutating them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

OUTSIDE = "outside"     # Position resolved, no zone contains it
UNKNOWN = "unknown"     # No valid zone to test against / not resolved


class DensityCategory(str, Enum):
    FREE = "free"
    MODERATE = "moderate"
    CROWDED = "crowded"
    OVER_CROWDED = "over-crowded"


class CongestionLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class PositionStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class ManualOverride:
    density: DensityCategory
    occupant_count_at_override: int


@dataclass(frozen=True)
class ZoneNote:
    """Admin remark attached to a zone, e.g. "Slippery floor near exit 3"."""
    id: str
    text: str
    visible_to_user: bool = True
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class Zone:
    id: str
    name: str
    boundary: Tuple[Coordinate, ...]
    capacity: int
    occupant_count: int = 0
    density: DensityCategory = DensityCategory.FREE
    manual_override: Optional[ManualOverride] = None
    adjacent_zone_ids: Tuple[str, ...] = ()     # Undirected; empty = no adjacency data
    notes: Tuple[ZoneNote, ...] = ()


@dataclass(frozen=True)
class UserPosition:
    user_id: str
    coordinate: Coordinate
    observed_at: datetime
    assigned_zone_id: str       # zone id | "outside" | "unknown"
    name: str = ""
    group_size: int = 1
    status: PositionStatus = PositionStatus.ONLINE
    sos: bool = False

    @property
    def is_counted(self) -> bool:
        """Online and assigned to a real zone."""
        return (self.status == PositionStatus.ONLINE
                and self.assigned_zone_id not in (OUTSIDE, UNKNOWN))


@dataclass(frozen=True)
class Route:
    path: Tuple[str, ...]
    congestion_level: CongestionLevel
    alternative_path: Optional[Tuple[str, ...]] = None
    congestion_unavoidable: bool = False

    @property
    def alternative_route_available(self) -> bool:
        return self.alternative_path is not None


@dataclass(frozen=True)
class ZoneSnapshot:
    """Immutable view of the whole zone set at one instant."""
    zones: Tuple[Zone, ...]
    taken_at: datetime = field(default_factory=datetime.utcnow)

    def by_id(self, zone_id: str) -> Optional[Zone]:
        return next((z for z in self.zones if z.id == zone_id), None)
