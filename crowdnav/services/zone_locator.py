# crowdnav/services/zone_locator.py
"""
Zone Locator — which zone contains a position.

Zones are tested in the caller's order and the FIRST containing zone wins.
Zones are expected not to overlap; nothing enforces that, and when they do
overlap the iteration order decides. Zones with fewer than 3 vertices are
skipped instead of failing the whole lookup.

resolve_zone() adds the optional advisory fallback: consulted only when
the deterministic answer is "unknown", bounded by a timeout, and ignored
unless it names a zone that actually exists.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

from crowdnav.exceptions import InvalidPolygon
from crowdnav.services.domain import UNKNOWN, Coordinate, Zone
from crowdnav.services.geometry import MIN_POLYGON_VERTICES, is_inside
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeterministicResult:
    zone_id: str             # zone id | "unknown"


@dataclass(frozen=True)
class AdvisoryFallback:
    zone_id: str
    justification: str = ""


LocateResult = Union[DeterministicResult, AdvisoryFallback]


@dataclass(frozen=True)
class AdvisoryAnswer:
    zone_id: str
    justification: str = ""


class ZoneAdvisor(Protocol):
    async def identify_zone(self, point: Coordinate, zones: Sequence[Zone],
                            accuracy: Optional[float] = None) -> Optional[AdvisoryAnswer]:
        ...


def locate(point: Coordinate, zones: Sequence[Zone]) -> str:
    for zone in zones:
        if len(zone.boundary) < MIN_POLYGON_VERTICES:
            logger.debug(f"Skipping zone: {InvalidPolygon(zone.id, len(zone.boundary))}")
            continue
        if is_inside(point, zone.boundary):
            return zone.id
    return UNKNOWN


async def resolve_zone(point: Coordinate, zones: Sequence[Zone],
                       advisor: Optional[ZoneAdvisor] = None,
                       timeout: float = 2.0,
                       accuracy: Optional[float] = None) -> LocateResult:
    zone_id = locate(point, zones)
    if zone_id != UNKNOWN or advisor is None:
        return DeterministicResult(zone_id)

    try:
        answer = await asyncio.wait_for(advisor.identify_zone(point, zones, accuracy), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Advisory zone lookup timed out after {timeout}s — result discarded")
        return DeterministicResult(UNKNOWN)
    except Exception as e:
        logger.warning(f"Advisory zone lookup failed: {e}")
        return DeterministicResult(UNKNOWN)

    if answer is None or answer.zone_id == UNKNOWN:
        return DeterministicResult(UNKNOWN)
    if answer.zone_id not in {z.id for z in zones}:
        logger.warning(f"Advisory suggested unknown zone '{answer.zone_id}' — ignored")
        return DeterministicResult(UNKNOWN)

    logger.info(f"Advisory placed ({point.latitude}, {point.longitude}) in {answer.zone_id}")
    return AdvisoryFallback(answer.zone_id, answer.justification)
