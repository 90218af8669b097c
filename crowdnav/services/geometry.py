# crowdnav/services/geometry.py
"""
Point-in-polygon test for zone membership (even-odd ray casting).

Latitude is treated as the x axis and longitude as the y axis. For every
edge (vertices[i], vertices[j]) with j the previous vertex, a ray cast from
the point along the latitude axis toggles the result when it crosses the
edge.

Known limitation: a point lying exactly on an edge or vertex has
implementation-defined membership. Zones are small relative to GPS noise,
so this is left as-is.
"""

from typing import Sequence

from crowdnav.services.domain import Coordinate

MIN_POLYGON_VERTICES = 3


def is_inside(point: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    n = len(polygon)
    if n < MIN_POLYGON_VERTICES:
        return False

    x, y = point.latitude, point.longitude
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].latitude, polygon[i].longitude
        xj, yj = polygon[j].latitude, polygon[j].longitude
        # (yi > y) != (yj > y) guarantees yj != yi, so no division by zero
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside
