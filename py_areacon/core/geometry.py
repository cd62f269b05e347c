"""
Planar geometry primitives shared by the partitioning engine.

Points are immutable value objects. Every tolerance-dependent predicate lives
on a GeometryContext so that engines running with different robustness
tolerances never share mutable state.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import GeometryError


@dataclass(frozen=True)
class Point:
    """A point (or direction) in the plane."""

    x: float
    y: float

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "Point":
        return Point(-self.x, -self.y)

    def __iter__(self):
        yield self.x
        yield self.y

    def norm(self) -> float:
        return math.hypot(self.x, self.y)

    def distance(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


# Marks a missing endpoint in the dual graph and an undefined centroid.
NO_POINT = Point(math.inf, math.inf)


def as_point(value) -> Point:
    if isinstance(value, Point):
        return value
    x, y = value
    return Point(float(x), float(y))


def point_along_line(start: Point, end: Point, t: float) -> Point:
    """Point at normalized position ``t`` on the line from start to end (0.5 is the midpoint)."""
    return Point(start.x + (end.x - start.x) * t, start.y + (end.y - start.y) * t)


def perpendicular_direction(start: Point, end: Point, length: float) -> Point:
    """
    Vector of the given length perpendicular to the segment start -> end.

    Returns the zero vector when the two points coincide.
    """
    distance = start.distance(end)
    if distance == 0:
        return Point(0.0, 0.0)
    return Point((end.y - start.y) / distance * length,
                 (start.x - end.x) / distance * length)


@dataclass(frozen=True)
class GeometryContext:
    """
    Tolerance-aware geometric predicates.

    Attributes:
        tolerance: Robustness tolerance below which two computed quantities
            are treated as equal.
    """

    tolerance: float = 1e-7

    def __post_init__(self):
        if not self.tolerance > 0:
            raise GeometryError("robustness tolerance must be greater than 0")

    def perp_distance_to_line(self, a: Point, b: Point, p: Point) -> float:
        """Distance from p to the infinite line through a and b."""
        if abs(b.y - a.y) < self.tolerance:
            return abs(p.y - b.y)
        if abs(b.x - a.x) < self.tolerance:
            return abs(p.x - b.x)
        return abs((b.y - a.y) * p.x - (b.x - a.x) * p.y + b.x * a.y - b.y * a.x) / a.distance(b)

    def are_collinear(self, a: Point, b: Point, p: Point) -> bool:
        """True if p lies on the line through a and b, relative to the triangle's size."""
        max_dist = max(a.distance(b), b.distance(p), a.distance(p))
        if max_dist == 0:
            return False
        return self.perp_distance_to_line(a, b, p) / max_dist < self.tolerance

    def are_between(self, a: Point, b: Point, p: Point) -> bool:
        """True if p lies on the closed segment a-b."""
        length = a.distance(b)
        if length == 0:
            return p == a
        if not self.are_collinear(a, b, p):
            return False
        return p.distance(a) <= length and p.distance(b) <= length

    def collinear_intersection(self, p1: Point, p2: Point, p3: Point, p4: Point) -> List[Point]:
        """
        Overlap of two collinear segments p1-p2 and p3-p4.

        Returns an empty list when they do not overlap, a single point when
        only one endpoint of the overlap could be determined, or the two
        endpoints of the shared sub-segment.
        """
        tol = self.tolerance
        result = []
        if self.are_between(p1, p2, p3):
            result.append(p3)
            if self.are_between(p1, p2, p4):
                result.append(p4)
            elif self.are_between(p3, p4, p1) and p3.distance(p1) > tol:
                result.append(p1)
            elif self.are_between(p3, p4, p2) and p3.distance(p2) > tol:
                result.append(p2)
        elif self.are_between(p1, p2, p4):
            result.append(p4)
            if self.are_between(p3, p4, p1) and p4.distance(p1) > tol:
                result.append(p1)
            elif self.are_between(p3, p4, p2) and p2.distance(p4) > tol:
                result.append(p2)
        elif self.are_between(p3, p4, p1) and self.are_between(p3, p4, p2):
            result.append(p1)
            result.append(p2)
        return result

    def between_mask(self, a: Point, b: Point, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorized are_between for many query points against one segment."""
        length = a.distance(b)
        dist_a = np.hypot(xs - a.x, ys - a.y)
        if length == 0:
            return dist_a == 0
        dist_b = np.hypot(xs - b.x, ys - b.y)

        if abs(b.y - a.y) < self.tolerance:
            perp = np.abs(ys - b.y)
        elif abs(b.x - a.x) < self.tolerance:
            perp = np.abs(xs - b.x)
        else:
            perp = np.abs((b.y - a.y) * xs - (b.x - a.x) * ys + b.x * a.y - b.y * a.x) / length

        max_dist = np.maximum(np.maximum(dist_a, dist_b), length)
        collinear = perp / max_dist < self.tolerance
        return collinear & (dist_a <= length) & (dist_b <= length)


class Polygon:
    """
    Simple polygon given by an ordered ring of distinct vertices.

    An empty polygon (no vertices) is allowed and stands for a vanished cell.
    Construction validates the ring unless ``validate`` is False, in which case
    only the vertex count is checked.
    """

    def __init__(self, vertices: Iterable = (), validate: bool = True):
        self.vertices: Tuple[Point, ...] = tuple(as_point(v) for v in vertices)
        n = len(self.vertices)
        if 0 < n < 3:
            raise GeometryError("List of vertices must contain at least 3 points")

        if n:
            self._xy = np.array([(p.x, p.y) for p in self.vertices], dtype=float)
            self.min_x, self.min_y = (float(v) for v in self._xy.min(axis=0))
            self.max_x, self.max_y = (float(v) for v in self._xy.max(axis=0))
        else:
            self._xy = np.zeros((0, 2))
            self.min_x = self.min_y = math.inf
            self.max_x = self.max_y = -math.inf

        if validate and n:
            self._validate()

    def _validate(self):
        if not np.all(np.isfinite(self._xy)):
            raise GeometryError("Polygon vertices cannot be infinite")
        if len(set(self.vertices)) != len(self.vertices):
            raise GeometryError("Polygon vertices must all be distinct")
        if self.min_x == self.max_x or self.min_y == self.max_y:
            raise GeometryError("Polygon must have non-zero nominal area")

    @classmethod
    def empty(cls) -> "Polygon":
        return cls(())

    def __len__(self) -> int:
        return len(self.vertices)

    def __iter__(self):
        return iter(self.vertices)

    def __repr__(self) -> str:
        return f"Polygon({[tuple(p) for p in self.vertices]})"

    @property
    def is_empty(self) -> bool:
        return not self.vertices

    @property
    def extrema(self) -> Tuple[float, float, float, float]:
        """Bounding box as (min_x, min_y, max_x, max_y)."""
        return self.min_x, self.min_y, self.max_x, self.max_y

    def edges(self):
        """Yield consecutive vertex pairs, closing the ring."""
        n = len(self.vertices)
        for k in range(n):
            yield self.vertices[k], self.vertices[(k + 1) % n]

    def area(self) -> float:
        """Unweighted area by the shoelace formula."""
        if self.is_empty:
            return 0.0
        x, y = self._xy[:, 0], self._xy[:, 1]
        return 0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))

    def contains_points(self, xs, ys, context: GeometryContext) -> np.ndarray:
        """
        Boundary-inclusive point-in-polygon test for arrays of coordinates.

        A point on any edge (within the context tolerance) is inside;
        otherwise the even-odd crossing rule decides.
        """
        if self.is_empty:
            raise GeometryError("Polygon vertices have not been initialized")

        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        inside = np.zeros(xs.shape, dtype=bool)
        on_edge = np.zeros(xs.shape, dtype=bool)

        for start, end in zip(self.vertices[-1:] + self.vertices[:-1], self.vertices):
            on_edge |= context.between_mask(start, end, xs, ys)
            spans = ((start.y < ys) & (ys <= end.y)) | ((ys <= start.y) & (end.y < ys))
            spans &= (start.x <= xs) | (end.x <= xs)
            with np.errstate(divide="ignore", invalid="ignore"):
                x_cross = start.x + (ys - start.y) * (end.x - start.x) / (end.y - start.y)
            inside ^= spans & (x_cross < xs)

        return inside | on_edge

    def contains(self, point: Point, context: GeometryContext) -> bool:
        return bool(self.contains_points([point.x], [point.y], context)[0])

    def to_list(self) -> List[List[float]]:
        return [[p.x, p.y] for p in self.vertices]


def polygon_from_coordinates(coordinates: Optional[Sequence[Sequence[float]]]) -> Polygon:
    """Build a validated polygon from a list of [x, y] pairs (None gives an empty polygon)."""
    if not coordinates:
        return Polygon.empty()
    return Polygon([Point(float(x), float(y)) for x, y in coordinates])
