"""Tests for geometry primitives."""

import math

import numpy as np
import pytest

from py_areacon.core.errors import GeometryError
from py_areacon.core.geometry import (
    GeometryContext, Point, Polygon, perpendicular_direction,
    point_along_line, polygon_from_coordinates
)


class TestPoint:
    """Test point arithmetic."""

    def test_arithmetic(self):
        a, b = Point(1, 2), Point(3, 5)
        assert a + b == Point(4, 7)
        assert b - a == Point(2, 3)
        assert a * 2 == Point(2, 4)
        assert 2 * a == Point(2, 4)
        assert -a == Point(-1, -2)

    def test_distance(self):
        assert Point(0, 0).distance(Point(3, 4)) == 5
        assert Point(3, 4).norm() == 5

    def test_non_finite(self):
        assert not Point(math.inf, 0).is_finite()
        assert Point(0, 0).is_finite()

    def test_point_along_line(self):
        assert point_along_line(Point(0, 0), Point(4, 2), 0.5) == Point(2, 1)
        assert point_along_line(Point(0, 0), Point(4, 2), 0) == Point(0, 0)

    def test_perpendicular_direction(self):
        direction = perpendicular_direction(Point(0, 0), Point(4, 0), 1)
        assert direction.x == pytest.approx(0)
        assert direction.y == pytest.approx(-1)

    def test_perpendicular_of_coincident_points_is_zero(self):
        assert perpendicular_direction(Point(1, 1), Point(1, 1), 5) == Point(0, 0)


class TestGeometryContext:
    """Test tolerance-aware predicates."""

    def test_rejects_non_positive_tolerance(self):
        with pytest.raises(GeometryError):
            GeometryContext(0)

    def test_collinear(self, context):
        assert context.are_collinear(Point(0, 0), Point(1, 1), Point(2, 2))
        assert not context.are_collinear(Point(0, 0), Point(1, 1), Point(2, 3))

    def test_between(self, context):
        a, b = Point(0, 0), Point(2, 0)
        assert context.are_between(a, b, Point(1, 0))
        assert context.are_between(a, b, a)
        assert not context.are_between(a, b, Point(3, 0))
        assert not context.are_between(a, b, Point(1, 1))

    def test_between_on_vertical_segment(self, context):
        a, b = Point(2, 0), Point(2, 4)
        assert context.are_between(a, b, Point(2, 3))
        assert not context.are_between(a, b, Point(2, 5))

    def test_collinear_intersection_overlap(self, context):
        overlap = context.collinear_intersection(Point(0, 0), Point(2, 0), Point(1, 0), Point(3, 0))
        assert overlap == [Point(1, 0), Point(2, 0)]

    def test_collinear_intersection_contained(self, context):
        overlap = context.collinear_intersection(Point(0, 0), Point(4, 0), Point(1, 0), Point(3, 0))
        assert overlap == [Point(1, 0), Point(3, 0)]

    def test_collinear_intersection_disjoint(self, context):
        assert context.collinear_intersection(Point(0, 0), Point(1, 0), Point(2, 0), Point(3, 0)) == []

    def test_collinear_intersection_touching(self, context):
        overlap = context.collinear_intersection(Point(0, 0), Point(2, 0), Point(2, 0), Point(4, 0))
        assert overlap == [Point(2, 0)]

    def test_contexts_are_independent(self):
        loose, strict = GeometryContext(0.1), GeometryContext(1e-7)
        a, b, p = Point(0, 0), Point(1, 0), Point(0.5, 0.01)

        assert loose.are_collinear(a, b, p)
        assert not strict.are_collinear(a, b, p)


class TestPolygon:
    """Test polygon construction and containment."""

    def test_unit_square_containment(self, context):
        unit = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])

        assert unit.contains(Point(0.5, 0.5), context)
        assert not unit.contains(Point(2, 2), context)
        assert unit.contains(Point(0.5, 0), context)
        assert unit.contains(Point(1, 1), context)

    def test_vectorized_containment(self, context):
        triangle = Polygon([(0, 0), (4, 0), (0, 4)])
        xs = np.array([1.0, 3.0, 2.0, -1.0])
        ys = np.array([1.0, 3.0, 2.0, 0.0])

        np.testing.assert_array_equal(triangle.contains_points(xs, ys, context),
                                      [True, False, True, False])

    def test_extrema_and_area(self):
        polygon = Polygon([(1, 0), (3, 1), (2, 4)])
        assert polygon.extrema == (1, 0, 3, 4)
        assert polygon.area() == pytest.approx(3.5)

    def test_extrema_are_plain_floats(self):
        polygon = Polygon(np.array([[0, 0], [1, 0], [0, 1]]))
        assert all(type(value) is float for value in polygon.extrema)

    def test_edges_close_the_ring(self):
        polygon = Polygon([(0, 0), (1, 0), (0, 1)])
        edges = list(polygon.edges())
        assert len(edges) == 3
        assert edges[-1] == (Point(0, 1), Point(0, 0))

    def test_too_few_vertices(self):
        with pytest.raises(GeometryError):
            Polygon([(0, 0), (1, 0)])

    def test_duplicate_vertices(self):
        with pytest.raises(GeometryError):
            Polygon([(0, 0), (1, 0), (1, 0), (0, 1)])

    def test_infinite_vertex(self):
        with pytest.raises(GeometryError):
            Polygon([(0, 0), (math.inf, 0), (0, 1)])

    def test_zero_nominal_area(self):
        with pytest.raises(GeometryError):
            Polygon([(0, 0), (1, 0), (2, 0)])

    def test_empty_polygon(self, context):
        empty = polygon_from_coordinates(None)
        assert empty.is_empty
        assert empty.area() == 0
        with pytest.raises(GeometryError):
            empty.contains(Point(0, 0), context)

    def test_from_coordinates(self):
        polygon = polygon_from_coordinates([[0, 0], [2, 0], [0, 2]])
        assert polygon.to_list() == [[0.0, 0.0], [2.0, 0.0], [0.0, 2.0]]
