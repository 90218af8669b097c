# crowdnav/services/route_planner.py
"""
Route Planner — least-congested path between two zones.

Without adjacency data the route is simply [source, destination]. When any
zone declares neighbours, the zone graph (undirected networkx Graph) is
searched for the path minimising the summed density rank of its
intermediate zones (free=0, moderate=1, crowded=3, over-crowded=8). Ties go
to fewer hops, then to the lexicographically smaller zone-id sequence, so
the result is fully deterministic.

If the chosen path touches a crowded/over-crowded zone, a second search
runs with every congested zone removed (source and destination excepted).
"""

from typing import Dict, FrozenSet, Optional, Sequence, Tuple

import networkx as nx

from crowdnav.exceptions import InvalidEndpoints
from crowdnav.services.density_service import density_rank, is_congested
from crowdnav.services.domain import CongestionLevel, DensityCategory, Route, Zone
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)

Path = Tuple[str, ...]


def _build_graph(zones: Sequence[Zone]) -> Optional[nx.Graph]:
    """Undirected adjacency over known zone ids, or None when no zone has neighbours."""
    if not any(z.adjacent_zone_ids for z in zones):
        return None
    graph = nx.Graph()
    graph.add_nodes_from(z.id for z in zones)
    for zone in zones:
        for other in zone.adjacent_zone_ids:
            if other in graph and other != zone.id:
                graph.add_edge(zone.id, other)
    return graph


def _cheapest_path(graph: nx.Graph, source: str, destination: str,
                   density: Dict[str, DensityCategory],
                   blocked: FrozenSet[str] = frozenset()) -> Optional[Path]:
    # Entering a zone costs rank * scale + 1. scale exceeds any hop count, so
    # the summed weight orders paths by rank cost first and hops second.
    scale = graph.number_of_nodes() + 1

    def step(u, v, attrs):
        if v in blocked:
            return None             # hidden edge
        return (0 if v == destination else density_rank(density[v])) * scale + 1

    try:
        return min(tuple(p) for p in nx.all_shortest_paths(graph, source, destination, weight=step))
    except nx.NetworkXNoPath:
        return None


def congestion_level(path: Path, density: Dict[str, DensityCategory]) -> CongestionLevel:
    worst = max(density_rank(density[zone_id]) for zone_id in path)
    if worst >= density_rank(DensityCategory.CROWDED):
        return CongestionLevel.HIGH
    if worst >= density_rank(DensityCategory.MODERATE):
        return CongestionLevel.MODERATE
    return CongestionLevel.LOW


def _validate_endpoints(source: str, destination: str, density: Dict[str, DensityCategory]):
    if source == destination:
        raise InvalidEndpoints(source, destination, "source and destination are the same zone")
    missing = [zone_id for zone_id in (source, destination) if zone_id not in density]
    if missing:
        raise InvalidEndpoints(source, destination, f"unknown zone(s): {', '.join(missing)}")


def _detour(path: Path, graph: Optional[nx.Graph], density: Dict[str, DensityCategory]) -> Optional[Path]:
    if graph is None or not any(is_congested(density[zone_id]) for zone_id in path):
        return None
    source, destination = path[0], path[-1]
    blocked = frozenset(
        zone_id for zone_id, d in density.items() if is_congested(d)
    ) - {source, destination}
    alternative = _cheapest_path(graph, source, destination, density, blocked)
    return None if alternative == path else alternative


def suggest_alternative(current_path: Sequence[str], zones: Sequence[Zone]) -> Optional[Path]:
    """
    Detour for an existing route that avoids every crowded/over-crowded zone.
    Returns None when the route is not congested or no such detour exists.
    """
    density = {z.id: z.density for z in zones}
    path = tuple(current_path)
    if len(path) < 2:
        raise InvalidEndpoints(path[0] if path else "", path[0] if path else "",
                               "a route needs at least two zones")
    _validate_endpoints(path[0], path[-1], density)
    unknown = [zone_id for zone_id in path if zone_id not in density]
    if unknown:
        raise InvalidEndpoints(path[0], path[-1], f"unknown zone(s): {', '.join(unknown)}")
    return _detour(path, _build_graph(zones), density)


def plan_route(source: str, destination: str, zones: Sequence[Zone]) -> Route:
    density = {z.id: z.density for z in zones}
    _validate_endpoints(source, destination, density)

    graph = _build_graph(zones)
    primary: Optional[Path] = None
    if graph is not None:
        primary = _cheapest_path(graph, source, destination, density)
        if primary is None:
            logger.warning(f"No adjacency path {source} → {destination}; using direct route")
    if primary is None:
        primary = (source, destination)

    level = congestion_level(primary, density)
    if not any(is_congested(density[zone_id]) for zone_id in primary):
        return Route(path=primary, congestion_level=level)

    alternative = _detour(primary, graph, density)
    if alternative is None:
        logger.info(f"Route {' → '.join(primary)} is congested and unavoidable")
        return Route(path=primary, congestion_level=level, congestion_unavoidable=True)

    logger.info(f"Route {' → '.join(primary)} congested; alternative {' → '.join(alternative)}")
    return Route(path=primary, congestion_level=level, alternative_path=alternative)
