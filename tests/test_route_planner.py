"""Unit tests for route planning and alternative-route search."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from crowdnav.exceptions import InvalidEndpoints
from crowdnav.services.density_service import classify
from crowdnav.services.domain import CongestionLevel, Coordinate, DensityCategory, Zone
from crowdnav.services.route_planner import plan_route, suggest_alternative

FREE = DensityCategory.FREE
MODERATE = DensityCategory.MODERATE
CROWDED = DensityCategory.CROWDED
OVER = DensityCategory.OVER_CROWDED

_BOUNDARY = (Coordinate(0, 0), Coordinate(0, 1), Coordinate(1, 1))


def make_zone(zone_id, density=FREE, adjacent=(), capacity=100, count=0):
    return Zone(id=zone_id, name=zone_id, boundary=_BOUNDARY, capacity=capacity,
                occupant_count=count, density=density, adjacent_zone_ids=tuple(adjacent))


def diamond(b_density=OVER, d_density=FREE):
    """A–B–C and A–D–C."""
    return [
        make_zone("A", adjacent=("B", "D")),
        make_zone("B", b_density, adjacent=("C",)),
        make_zone("C"),
        make_zone("D", d_density, adjacent=("C",)),
    ]


class TestPlanRoute:
    def test_direct_route_without_adjacency(self):
        zones = [make_zone("A"), make_zone("B", MODERATE)]
        route = plan_route("A", "B", zones)
        assert route.path == ("A", "B")
        assert route.congestion_level == CongestionLevel.MODERATE
        assert not route.alternative_route_available
        assert not route.congestion_unavoidable

    def test_least_congested_path_preferred(self):
        route = plan_route("A", "C", diamond(b_density=OVER))
        assert route.path == ("A", "D", "C")
        assert route.congestion_level == CongestionLevel.LOW

    def test_tie_broken_by_zone_id_order(self):
        route = plan_route("A", "C", diamond(b_density=FREE, d_density=FREE))
        assert route.path == ("A", "B", "C")

    def test_tie_broken_by_fewer_hops_before_ids(self):
        zones = [
            make_zone("A", adjacent=("B", "E")),
            make_zone("B", adjacent=("C",)),
            make_zone("C", adjacent=("Z",)),
            make_zone("E", adjacent=("Z",)),
            make_zone("Z"),
        ]
        assert plan_route("A", "Z", zones).path == ("A", "E", "Z")

    def test_adjacency_is_undirected(self):
        zones = [make_zone("A"), make_zone("B", adjacent=("A", "C")), make_zone("C")]
        assert plan_route("C", "A", zones).path == ("C", "B", "A")

    def test_congested_primary_gets_alternative(self):
        # A–B–C costs 3 (B crowded); A–D–E–F–C costs 3 too (3× moderate) but is longer
        zones = [
            make_zone("A", adjacent=("B", "D")),
            make_zone("B", CROWDED, adjacent=("C",)),
            make_zone("C"),
            make_zone("D", MODERATE, adjacent=("E",)),
            make_zone("E", MODERATE, adjacent=("F",)),
            make_zone("F", MODERATE, adjacent=("C",)),
        ]
        route = plan_route("A", "C", zones)
        assert route.path == ("A", "B", "C")
        assert route.congestion_level == CongestionLevel.HIGH
        assert route.alternative_route_available
        assert route.alternative_path == ("A", "D", "E", "F", "C")
        assert "B" not in route.alternative_path

    def test_unavoidable_congestion(self):
        zones = [make_zone("A", adjacent=("B",)), make_zone("B", OVER, adjacent=("C",)), make_zone("C")]
        route = plan_route("A", "C", zones)
        assert route.path == ("A", "B", "C")
        assert route.congestion_level == CongestionLevel.HIGH
        assert not route.alternative_route_available
        assert route.congestion_unavoidable

    def test_unreachable_destination_falls_back_to_direct(self):
        zones = [make_zone("A", adjacent=("B",)), make_zone("B"), make_zone("C")]
        assert plan_route("A", "C", zones).path == ("A", "C")

    def test_same_endpoints_rejected(self):
        with pytest.raises(InvalidEndpoints):
            plan_route("A", "A", diamond())

    @pytest.mark.parametrize("source,destination", [("A", "nowhere"), ("nowhere", "C")])
    def test_unknown_endpoints_rejected(self, source, destination):
        with pytest.raises(InvalidEndpoints):
            plan_route(source, destination, diamond())

    def test_identical_state_gives_identical_route(self):
        zones = diamond(b_density=CROWDED, d_density=MODERATE)
        assert plan_route("A", "C", zones) == plan_route("A", "C", list(zones))
        assert repr(plan_route("A", "C", zones)) == repr(plan_route("A", "C", zones))


class TestSuggestAlternative:
    def test_detour_avoids_over_crowded_zone(self):
        alternative = suggest_alternative(["A", "B", "C"], diamond(b_density=OVER))
        assert alternative == ("A", "D", "C")

    def test_no_detour_when_every_path_congested(self):
        assert suggest_alternative(["A", "B", "C"], diamond(b_density=OVER, d_density=CROWDED)) is None

    def test_no_detour_needed_for_clear_route(self):
        assert suggest_alternative(["A", "B", "C"], diamond(b_density=MODERATE)) is None

    def test_unknown_zone_in_route_rejected(self):
        with pytest.raises(InvalidEndpoints):
            suggest_alternative(["A", "X", "C"], diamond())


class TestEndToEnd:
    def test_crowded_source_reports_high_congestion(self):
        a_density = classify(95, 100)
        b_density = classify(10, 100)
        assert a_density in (CROWDED, OVER)
        assert b_density == FREE

        zones = [make_zone("A", a_density, capacity=100, count=95),
                 make_zone("B", b_density, capacity=100, count=10)]
        route = plan_route("A", "B", zones)
        assert route.path == ("A", "B")
        assert route.congestion_level == CongestionLevel.HIGH
        assert not route.alternative_route_available
        assert route.congestion_unavoidable
