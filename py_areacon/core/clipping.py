"""Convex polygon clipping on a scaled integer lattice (pyclipper)."""

from typing import List, Sequence

import pyclipper

from .errors import GeometryError
from .geometry import Point, Polygon

Path = List[List[int]]

# pyclipper's default cleaning radius, in lattice units
CLEAN_DISTANCE = 1.415

# Copies of one diagram vertex clipped in different cells land up to 2*sqrt(2)
# lattice units apart
SNAP_DISTANCE = 4


class PolygonClipper:
    """
    Thin adapter around pyclipper.

    Coordinates are scaled by ``1 / tolerance`` and rounded to integers, so
    one lattice unit equals the robustness tolerance.
    """

    def __init__(self, tolerance: float):
        self.scale = max(1, int(round(1.0 / tolerance)))
        self.unit = 1.0 / self.scale

    def to_path(self, points: Sequence[Point]) -> Path:
        return [[int(round(p.x * self.scale)), int(round(p.y * self.scale))] for p in points]

    def to_points(self, path: Sequence[Sequence[int]]) -> List[Point]:
        return [Point(x / self.scale, y / self.scale) for x, y in path]

    def oriented(self, path: Path) -> Path:
        """Return the path with positive (counter-clockwise) orientation."""
        if not pyclipper.Orientation(path):
            return pyclipper.ReversePath(path)
        return path

    def intersect(self, subject: List[Path], clip: Path) -> List[Path]:
        """
        Intersect the subject paths with a single clip path.

        An empty subject gives an empty result.
        """
        if not subject:
            return []
        pc = pyclipper.Pyclipper()
        try:
            pc.AddPaths(subject, pyclipper.PT_SUBJECT, True)
            pc.AddPath(clip, pyclipper.PT_CLIP, True)
            return pc.Execute(pyclipper.CT_INTERSECTION, pyclipper.PFT_NONZERO, pyclipper.PFT_NONZERO)
        except pyclipper.ClipperException as e:
            raise GeometryError(f"Clipping failed: {e}") from e

    def clean(self, paths: List[Path], distance: float = 1) -> List[Path]:
        """Remove near-duplicate and collinear vertices, dropping paths that collapse."""
        cleaned = pyclipper.CleanPolygons(paths, distance)
        return [path for path in cleaned if len(path) >= 3]

    def to_polygon(self, path: Sequence[Sequence[int]]) -> Polygon:
        """
        Convert a lattice path back to a polygon.

        A path that no longer spans three distinct vertices yields an empty
        polygon.
        """
        points = []
        for point in self.to_points(path):
            if point not in points:
                points.append(point)
        if len(points) < 3:
            return Polygon.empty()
        if len({p.x for p in points}) < 2 or len({p.y for p in points}) < 2:
            return Polygon.empty()
        return Polygon(points)
