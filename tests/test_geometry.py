"""Unit tests for the point-in-polygon test."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from crowdnav.services.domain import Coordinate
from crowdnav.services.geometry import is_inside


def poly(*pairs):
    return [Coordinate(lat, lng) for lat, lng in pairs]


SQUARE = poly((0, 0), (0, 10), (10, 10), (10, 0))
# L-shape: the notch (6..10, 6..10) is outside
L_SHAPE = poly((0, 0), (0, 10), (6, 10), (6, 6), (10, 6), (10, 0))


class TestIsInside:
    @pytest.mark.parametrize("lat,lng", [(5, 5), (1, 1), (9, 9), (0.5, 9.5)])
    def test_points_strictly_inside_square(self, lat, lng):
        assert is_inside(Coordinate(lat, lng), SQUARE)

    @pytest.mark.parametrize("lat,lng", [(50, 50), (-1, 5), (5, -1), (11, 5), (5, 11), (-100, -100)])
    def test_points_outside_square(self, lat, lng):
        assert not is_inside(Coordinate(lat, lng), SQUARE)

    def test_concave_polygon_notch_is_outside(self):
        assert is_inside(Coordinate(2, 8), L_SHAPE)
        assert is_inside(Coordinate(8, 2), L_SHAPE)
        assert not is_inside(Coordinate(8, 8), L_SHAPE)

    def test_triangle(self):
        triangle = poly((0, 0), (10, 0), (0, 10))
        assert is_inside(Coordinate(2, 2), triangle)
        assert not is_inside(Coordinate(8, 8), triangle)

    def test_vertex_order_does_not_matter(self):
        clockwise = list(reversed(SQUARE))
        assert is_inside(Coordinate(5, 5), clockwise)
        assert not is_inside(Coordinate(15, 5), clockwise)

    def test_real_gps_coordinates(self):
        venue = poly((34.0500, -118.2450), (34.0500, -118.2440), (34.0510, -118.2440), (34.0510, -118.2450))
        assert is_inside(Coordinate(34.0505, -118.2445), venue)
        assert not is_inside(Coordinate(34.0522, -118.2437), venue)

    @pytest.mark.parametrize("vertices", [[], poly((0, 0)), poly((0, 0), (10, 10))])
    def test_fewer_than_three_vertices_never_matches(self, vertices):
        assert is_inside(Coordinate(0, 0), vertices) is False
        assert is_inside(Coordinate(5, 5), vertices) is False
