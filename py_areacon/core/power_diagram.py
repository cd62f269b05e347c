"""
Power diagram (Laguerre diagram) construction restricted to a convex region.

Each cell is built by intersecting the region with one half-plane per
competing site. The boundary between two sites passes through their radical
point, found by a bisection search along the segment joining them.
"""

from typing import List, Sequence, Tuple

import numpy as np
import structlog

from .clipping import CLEAN_DISTANCE, SNAP_DISTANCE, PolygonClipper
from .errors import ConfigurationError, GeometryError, OperationCancelled
from .geometry import GeometryContext, Point, Polygon, perpendicular_direction, point_along_line

logger = structlog.get_logger()

Quad = Tuple[Point, Point, Point, Point]


def power(center: Point, weight: float, point: Point) -> float:
    """Power of a point with respect to a weighted site."""
    return center.distance(point) ** 2 - weight


def _check_cancel(cancel):
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("Power diagram construction cancelled")


def radical_point(
    center_i: Point,
    weight_i: float,
    center_j: Point,
    weight_j: float,
    tolerance: float,
    max_iterations: int = 10000,
    cancel=None,
) -> Tuple[Point, int]:
    """
    Locate the point on the line through two sites where their powers agree.

    The search starts at the midpoint and walks in steps of the segment
    length; the step halves every time the sign of the power difference flips.

    Args:
        center_i, weight_i: First site
        center_j, weight_j: Second site
        tolerance: Power difference accepted as equal
        max_iterations: Bisection iteration cap
        cancel: Optional token with an ``is_set()`` method

    Returns:
        Tuple of (radical point, number of iterations used)
    """
    if max_iterations < 1:
        raise ConfigurationError("max_iterations must be at least 1")

    t = 0.5
    step = 1.0
    count = 0
    previous_i = previous_j = 0.0
    first = True

    while count < max_iterations:
        _check_cancel(cancel)
        test = point_along_line(center_i, center_j, t)
        value_i = power(center_i, weight_i, test)
        value_j = power(center_j, weight_j, test)
        if abs(value_j - value_i) < tolerance:
            break

        if first:
            first = False
            previous_i, previous_j = value_i, value_j
            t += -step if value_i > value_j else step
            continue

        if value_j > value_i and previous_j > previous_i:
            t += step
            previous_i, previous_j = value_i, value_j
        elif value_i > value_j and previous_i > previous_j:
            t -= step
            previous_i, previous_j = value_i, value_j
        elif value_j > value_i and previous_i > previous_j:
            step /= 2
            t += step
        else:
            step /= 2
            t -= step
        count += 1

    if count >= max_iterations:
        logger.debug("Radical point search hit iteration cap",
                     residual=abs(value_j - value_i), iterations=count)
    return test, count


def half_plane_quads(
    radical: Point,
    center_i: Point,
    center_j: Point,
    extrema: Tuple[float, float, float, float],
    max_expansions: int = 200,
    boost: bool = False,
) -> Tuple[Quad, Quad]:
    """
    Two quadrilaterals covering the region on either side of the radical line.

    Rays perpendicular to the site segment are pushed out from the radical
    point, doubling in length, until their endpoints straddle the bounding box
    on one axis. When ``boost`` is set (the radical search did not converge)
    the growth is multiplied by a further 500 at every step.

    Returns:
        (quad_a, quad_b): quad_a lies below / left of the line through the two
        far points, quad_b above / right of it

    Raises:
        GeometryError: If the sites coincide or no straddle is found within
            ``max_expansions`` steps
    """
    min_x, min_y, max_x, max_y = extrema
    base = center_i.distance(center_j)
    if base == 0:
        raise GeometryError("Cannot separate coincident sites")

    increment = 1.0
    for _ in range(max_expansions):
        offset = perpendicular_direction(center_i, center_j, base * increment)
        p1 = radical + offset
        p2 = radical - offset
        if not (p1.is_finite() and p2.is_finite()):
            break

        if (p1.x < min_x and p2.x > max_x) or (p1.x > max_x and p2.x < min_x):
            low = min(min_y, p1.y, p2.y) - 1
            high = max(max_y, p1.y, p2.y) + 1
            p3, p4 = Point(p1.x, low), Point(p2.x, low)
            p5, p6 = Point(p2.x, high), Point(p1.x, high)
            return (p3, p4, p2, p1), (p5, p6, p1, p2)

        if (p1.y < min_y and p2.y > max_y) or (p1.y > max_y and p2.y < min_y):
            low = min(min_x, p1.x, p2.x) - 1
            high = max(max_x, p1.x, p2.x) + 1
            p3, p4 = Point(low, p1.y), Point(low, p2.y)
            p5, p6 = Point(high, p2.y), Point(high, p1.y)
            return (p3, p4, p2, p1), (p5, p6, p1, p2)

        increment *= 2
        if boost:
            increment *= 500

    raise GeometryError("Unable to construct a half-plane spanning the region")


class PowerDiagramBuilder:
    """Builds the covering of a region induced by a set of weighted sites."""

    def __init__(
        self,
        region: Polygon,
        context: GeometryContext,
        max_bisection_iterations: int = 10000,
        max_boundary_expansions: int = 200,
    ):
        self.region = region
        self.context = context
        self.clipper = PolygonClipper(context.tolerance)
        self.max_bisection_iterations = max_bisection_iterations
        self.max_boundary_expansions = max_boundary_expansions
        self._region_path = self.clipper.oriented(self.clipper.to_path(region.vertices))

    def build(self, centers: Sequence[Point], weights: Sequence[float], cancel=None) -> List[Polygon]:
        """
        Construct the power diagram of the sites restricted to the region.

        Args:
            centers: Site positions
            weights: Site weights (same length as centers)
            cancel: Optional token with an ``is_set()`` method

        Returns:
            One polygon per site; vanished cells are empty polygons
        """
        if len(centers) != len(weights):
            raise GeometryError("Centers and weights must have the same length")

        covering = [self._build_cell(i, centers, weights, cancel) for i in range(len(centers))]
        return self.clean_covering(covering)

    def _build_cell(self, i: int, centers: Sequence[Point], weights: Sequence[float], cancel) -> Polygon:
        solution = [self._region_path]
        extrema = self.region.extrema

        for j in range(len(centers)):
            if j == i:
                continue
            if not solution:
                break

            radical, steps = radical_point(
                centers[i], weights[i], centers[j], weights[j],
                self.context.tolerance, self.max_bisection_iterations, cancel,
            )
            quad_a, quad_b = half_plane_quads(
                radical, centers[i], centers[j], extrema,
                self.max_boundary_expansions, boost=steps >= self.max_bisection_iterations,
            )
            keep = self._side_of(quad_a, i, j, centers, weights)
            clip = self.clipper.oriented(self.clipper.to_path(quad_a if keep else quad_b))
            solution = self.clipper.clean(self.clipper.intersect(solution, clip))

        if not solution:
            return Polygon.empty()
        return self.clipper.to_polygon(solution[0])

    def _side_of(self, quad: Quad, i: int, j: int, centers, weights) -> bool:
        """True if site i's cell lies on the side covered by ``quad``."""
        contains = Polygon(quad, validate=False).contains(centers[i], self.context)
        # Site i sits in site j's half when its own power exceeds its power w.r.t. j
        if -weights[i] > power(centers[j], weights[j], centers[i]):
            return not contains
        return contains

    def clean_covering(self, covering: List[Polygon]) -> List[Polygon]:
        """
        Snap nearly shared vertices of neighbouring cells together.

        Works on the integer lattice: every vertex of a later cell within
        SNAP_DISTANCE units of a vertex of an earlier cell is moved onto the
        nearest such vertex, then every cell is cleaned of the duplicate and
        collinear vertices this introduces.
        """
        paths = [np.array(self.clipper.to_path(polygon.vertices), dtype=np.int64).reshape(-1, 2)
                 for polygon in covering]

        for i in range(len(paths)):
            for j in range(i + 1, len(paths)):
                if not len(paths[i]) or not len(paths[j]):
                    continue
                delta = paths[j][:, None, :] - paths[i][None, :, :]
                dist2 = (delta ** 2).sum(axis=-1)
                nearest = dist2.argmin(axis=1)
                close = dist2[np.arange(len(paths[j])), nearest] <= SNAP_DISTANCE ** 2
                paths[j][close] = paths[i][nearest[close]]

        cleaned = []
        for path in paths:
            result = self.clipper.clean([path.tolist()], CLEAN_DISTANCE) if len(path) else []
            cleaned.append(self.clipper.to_polygon(result[0]) if result else Polygon.empty())
        return cleaned
