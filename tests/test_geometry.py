# tests/test_geometry.py
import math

import pytest

from wallgraph.geometry import (
    acute_angle_between,
    are_points_collinear,
    bounding_box,
    closest_points,
    distance,
    point_segment_distance,
    projected_overlap,
    segment_distance,
    segment_intersection,
    segment_intersects_rect,
)


def test_distance_and_collinearity():
    assert distance((0, 0), (3, 4)) == 5
    assert are_points_collinear((0, 0), (1, 1), (2, 2), 1e-6)
    assert not are_points_collinear((0, 0), (1, 1), (2, 0), 1e-6)


def test_crossing_segments():
    point, t, u = segment_intersection((0, 5), (10, 5), (5, 0), (5, 10))
    assert point == pytest.approx((5, 5))
    assert t == pytest.approx(0.5)
    assert u == pytest.approx(0.5)


def test_parallel_segments_do_not_intersect():
    assert segment_intersection((0, 0), (10, 0), (0, 1), (10, 1)) is None


def test_disjoint_segments_do_not_intersect():
    assert segment_intersection((0, 0), (1, 0), (5, -1), (5, 1)) is None


def test_touching_at_endpoint_reports_boundary_parameter():
    point, t, u = segment_intersection((0, 0), (10, 0), (10, 0), (10, 10))
    assert point == pytest.approx((10, 0))
    assert t == pytest.approx(1.0)
    assert u == pytest.approx(0.0)


def test_point_segment_distance_is_clamped():
    # Projection would land beyond the end; distance is to the endpoint
    assert point_segment_distance((20, 0), (0, 0), (10, 0)) == pytest.approx(10)
    assert point_segment_distance((5, 3), (0, 0), (10, 0)) == pytest.approx(3)


def test_segment_distance_and_closest_points():
    assert segment_distance((0, 0), (10, 0), (0, 4), (10, 4)) == pytest.approx(4)
    assert segment_distance((0, 5), (10, 5), (5, 0), (5, 10)) == 0
    pa, pb = closest_points((0, 0), (10, 0), (13, 4), (13, 10))
    assert pa == pytest.approx((10, 0))
    assert pb == pytest.approx((13, 4))


def test_segment_intersects_rect():
    assert segment_intersects_rect((0, 10), (100, 10), (0, 0), (40, 20))
    assert segment_intersects_rect((-10, 30), (30, -10), (0, 0), (40, 20))
    assert not segment_intersects_rect((50, 50), (60, 60), (0, 0), (40, 20))
    # Corners given in reverse order
    assert segment_intersects_rect((5, 5), (6, 6), (40, 20), (0, 0))


def test_acute_angle_between():
    assert acute_angle_between((0, 0), (1, 0), (0, 0), (0, 1)) == pytest.approx(90)
    assert acute_angle_between((0, 0), (1, 0), (1, 0), (0, 0)) == pytest.approx(0)
    assert acute_angle_between((0, 0), (1, 0), (0, 0), (1, 1)) == pytest.approx(45)


def test_projected_overlap():
    assert projected_overlap((0, 0), (100, 0), (50, 10), (150, 10)) == pytest.approx(50)
    assert projected_overlap((0, 0), (100, 0), (110, 0), (200, 0)) == 0


def test_bounding_box():
    assert bounding_box([]) is None
    assert bounding_box([(0, 5), (10, -2), (3, 3)]) == ((0, -2), (10, 5))
