# crowdnav/services/density_service.py
"""
Crowd density classification.
Maps (occupant count, capacity, manual override) → DensityCategory.

Thresholds are closed-open: a ratio sitting exactly on a boundary belongs
to the upper category (0.7 → crowded, 1.0 → over-crowded).
"""

from typing import Optional

from crowdnav.exceptions import InvalidCapacity
from crowdnav.services.domain import DensityCategory, ManualOverride

OVER_CROWDED_RATIO = 1.0
CROWDED_RATIO = 0.7
MODERATE_RATIO = 0.3

# Route cost weight per category
DENSITY_RANK = {
    DensityCategory.FREE: 0,
    DensityCategory.MODERATE: 1,
    DensityCategory.CROWDED: 3,
    DensityCategory.OVER_CROWDED: 8,
}

CONGESTED = frozenset({DensityCategory.CROWDED, DensityCategory.OVER_CROWDED})


def density_rank(density: DensityCategory) -> int:
    return DENSITY_RANK[DensityCategory(density)]


def is_congested(density: DensityCategory) -> bool:
    return DensityCategory(density) in CONGESTED


def is_override_stale(occupant_count: int, override: Optional[ManualOverride]) -> bool:
    """An override only sticks while occupancy is unchanged since it was set."""
    return override is not None and occupant_count != override.occupant_count_at_override


def classify(occupant_count: int, capacity: int,
             override: Optional[ManualOverride] = None) -> DensityCategory:
    if override is not None and not is_override_stale(occupant_count, override):
        return DensityCategory(override.density)

    if capacity is None or capacity <= 0:
        raise InvalidCapacity(capacity)

    ratio = occupant_count / capacity
    if ratio >= OVER_CROWDED_RATIO:
        return DensityCategory.OVER_CROWDED
    if ratio >= CROWDED_RATIO:
        return DensityCategory.CROWDED
    if ratio >= MODERATE_RATIO:
        return DensityCategory.MODERATE
    return DensityCategory.FREE
