"""
Density field over a convex region.

This module implements:
- Piecewise-bilinear interpolation of lattice samples
- Closed-form per-cell integrals and first moments of the bilinear surface
- Normalization so the density integrates to 1 over the region
- Conservative weighted-area and centroid queries over arbitrary polygons
- Composite-trapezoid line integrals along segments
"""

import copy
import math
from typing import Optional, Sequence

import numpy as np
import structlog

from .errors import ConfigurationError, GeometryError, UnpreparedFieldError
from .geometry import NO_POINT, GeometryContext, Point, Polygon

logger = structlog.get_logger()


class DensityField:
    """
    Lattice-sampled density over the bounding box of a region.

    Samples are laid out so that ``values[i * ny + j]`` is the density at
    ``(min_x + i * dx, min_y + j * dy)``. Once values are set, every grid cell
    carries a bilinear surface ``a*x + b*y + c*x*y + d`` and the normalized
    integrals ``(int f, int x*f, int y*f)`` over the cell.
    """

    def __init__(
        self,
        region: Polygon,
        nx: int = 0,
        ny: int = 0,
        values: Optional[Sequence[float]] = None,
        context: Optional[GeometryContext] = None,
        volume_lower_bound: float = 0.0,
    ):
        """
        Initialize the density field.

        Args:
            region: Convex region the density is defined on
            nx: Number of lattice nodes along x (0 leaves the field unset)
            ny: Number of lattice nodes along y (0 leaves the field unset)
            values: Flat sequence of nx*ny samples
            context: Geometry context used for region membership tests
            volume_lower_bound: Floor applied to weighted-area queries
        """
        self.context = context or GeometryContext()
        self.volume_lower_bound = volume_lower_bound
        self.set_region(region, nx, ny, values)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_region(self, region: Polygon, nx: int = 0, ny: int = 0,
                   values: Optional[Sequence[float]] = None):
        if region.is_empty:
            raise GeometryError("Density region must be a non-empty polygon")
        self.region = region
        self.min_x, self.min_y, self.max_x, self.max_y = region.extrema
        self.set_values(nx, ny, values)

    def set_values(self, nx: int, ny: int, values: Optional[Sequence[float]] = None):
        """Replace the lattice samples and rerun preprocessing."""
        samples = np.asarray([] if values is None else values, dtype=float).ravel()

        if nx < 0 or ny < 0:
            raise ConfigurationError("Nx and Ny cannot be negative")
        if nx == 0 or ny == 0:
            nx, ny = 0, 0
            samples = np.zeros(0)
        elif nx * ny != samples.size:
            raise ConfigurationError("The size of values must be equal to Nx*Ny")
        elif nx < 2 or ny < 2:
            raise ConfigurationError("A density lattice needs at least 2 nodes per axis")
        elif not np.all(np.isfinite(samples)):
            raise ConfigurationError("Density values must be finite")

        self.nx = nx
        self.ny = ny
        self.values = samples.reshape(nx, ny)

        if nx:
            self.node_x = np.linspace(self.min_x, self.max_x, nx)
            self.node_y = np.linspace(self.min_y, self.max_y, ny)
            self.dx = (self.max_x - self.min_x) / (nx - 1)
            self.dy = (self.max_y - self.min_y) / (ny - 1)
            self._preprocess()
        else:
            self.node_x = self.node_y = np.zeros(0)
            self.dx = self.dy = 0.0
            self.grid_in_region = np.zeros((0, 0), dtype=bool)
            self.coefficients = np.zeros((0, 0, 4))
            self.cell_integral = self.cell_moment_x = self.cell_moment_y = np.zeros((0, 0))
            self.unweighted_area = 0.0

    def copy_for(self, context: GeometryContext, volume_lower_bound: float) -> "DensityField":
        """
        Copy of this field bound to another tolerance and volume floor.

        Preprocessing is rerun only when the tolerance changes, since region
        membership of the lattice nodes depends on it.
        """
        field = copy.copy(self)
        field.volume_lower_bound = volume_lower_bound
        if context != self.context:
            field.context = context
            if field.is_prepared:
                field._preprocess()
        return field

    @property
    def is_prepared(self) -> bool:
        return self.values.size > 0

    def _require_values(self):
        if not self.is_prepared:
            raise UnpreparedFieldError("Values have not been set!")

    # ------------------------------------------------------------------
    # Preprocessing
    # ------------------------------------------------------------------

    def _preprocess(self):
        X, Y = np.meshgrid(self.node_x, self.node_y, indexing="ij")
        self.grid_in_region = self.region.contains_points(X, Y, self.context)

        self._fit_bilinear()
        self._integrate_cells()

        inside = self._full_cells(self.grid_in_region)
        total = float(self.cell_integral[inside].sum())
        self.unweighted_area = float(inside.sum()) * self.dx * self.dy

        logger.info("Density preprocessed", nx=self.nx, ny=self.ny,
                    interior_cells=int(inside.sum()), total=total)

        if total == 0:
            if self.unweighted_area == 0:
                raise ConfigurationError(
                    "Density lattice is too coarse: no grid cell lies inside the region"
                )
            logger.warning("Density values do not have sufficient support; treated as uniform")
            self.values = np.full((self.nx, self.ny), 1.0 / self.unweighted_area)
            self._preprocess()
            return

        self.cell_integral /= total
        self.cell_moment_x /= total
        self.cell_moment_y /= total

    def _fit_bilinear(self):
        """Solve a*x + b*y + c*x*y + d through the four corners of every cell."""
        V = self.values
        v00, v10, v01, v11 = V[:-1, :-1], V[1:, :-1], V[:-1, 1:], V[1:, 1:]
        x0 = self.node_x[:-1, None]
        y0 = self.node_y[None, :-1]

        gamma = (v00 - v10 - v01 + v11) / (self.dx * self.dy)
        eta = (v10 - v00) / self.dx
        xi = (v01 - v00) / self.dy

        a = eta - gamma * y0
        b = xi - gamma * x0
        c = gamma
        d = v00 - eta * x0 - xi * y0 + gamma * x0 * y0
        self.coefficients = np.stack(np.broadcast_arrays(a, b, c, d), axis=-1)

    def _integrate_cells(self):
        """Exact integrals of f, x*f and y*f over each rectangular cell."""
        a, b, c, d = (self.coefficients[..., k] for k in range(4))
        x0, x1 = self.node_x[:-1, None], self.node_x[1:, None]
        y0, y1 = self.node_y[None, :-1], self.node_y[None, 1:]

        wx, wy = x1 - x0, y1 - y0
        x2, y2 = x1 ** 2 - x0 ** 2, y1 ** 2 - y0 ** 2
        x3, y3 = x1 ** 3 - x0 ** 3, y1 ** 3 - y0 ** 3

        self.cell_integral = d * wx * wy + a * wy * x2 / 2 + b * wx * y2 / 2 + c * x2 * y2 / 4
        self.cell_moment_x = d * wy * x2 / 2 + a * wy * x3 / 3 + b * x2 * y2 / 4 + c * y2 * x3 / 6
        self.cell_moment_y = d * wx * y2 / 2 + a * x2 * y2 / 4 + b * wx * y3 / 3 + c * x2 * y3 / 6

    @staticmethod
    def _full_cells(node_mask: np.ndarray) -> np.ndarray:
        """Cells whose four corner nodes are all set in the mask."""
        return node_mask[:-1, :-1] & node_mask[1:, :-1] & node_mask[:-1, 1:] & node_mask[1:, 1:]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def interpolate_many(self, xs, ys) -> np.ndarray:
        """Bilinear interpolation at many points (clamped to the lattice box)."""
        self._require_values()
        xs = np.clip(np.asarray(xs, dtype=float), self.min_x, self.max_x)
        ys = np.clip(np.asarray(ys, dtype=float), self.min_y, self.max_y)

        i = np.clip(((xs - self.min_x) / self.dx).astype(int), 0, self.nx - 1)
        j = np.clip(((ys - self.min_y) / self.dy).astype(int), 0, self.ny - 1)
        i1 = np.minimum(i + 1, self.nx - 1)
        j1 = np.minimum(j + 1, self.ny - 1)

        # Upper grid edge collapses onto the last cell
        xr = np.where(i == self.nx - 1, 0.0, (xs - self.node_x[i]) / self.dx)
        yr = np.where(j == self.ny - 1, 0.0, (ys - self.node_y[j]) / self.dy)

        V = self.values
        return (V[i, j] * (1 - xr) * (1 - yr)
                + V[i1, j] * xr * (1 - yr)
                + V[i, j1] * (1 - xr) * yr
                + V[i1, j1] * xr * yr)

    def interpolate(self, point: Point) -> float:
        return float(self.interpolate_many([point.x], [point.y])[0])

    def _cells_in_polygon(self, polygon: Polygon) -> np.ndarray:
        mask = np.zeros((self.nx, self.ny), dtype=bool)
        cols = np.nonzero((self.node_x >= polygon.min_x) & (self.node_x <= polygon.max_x))[0]
        rows = np.nonzero((self.node_y >= polygon.min_y) & (self.node_y <= polygon.max_y))[0]
        if cols.size and rows.size:
            X, Y = np.meshgrid(self.node_x[cols], self.node_y[rows], indexing="ij")
            mask[np.ix_(cols, rows)] = polygon.contains_points(X, Y, self.context)
        return self._full_cells(mask)

    def weighted_area(self, polygon: Polygon) -> float:
        """
        Density-weighted area of a polygon.

        Only grid cells whose four corners lie in the polygon contribute.
        Results below the volume lower bound are raised to it.
        """
        self._require_values()
        if polygon.is_empty:
            return self.volume_lower_bound
        total = float(self.cell_integral[self._cells_in_polygon(polygon)].sum())
        return total if total >= self.volume_lower_bound else self.volume_lower_bound

    def centroid(self, polygon: Polygon, volume: Optional[float] = None) -> Point:
        """
        Density-weighted centroid of a polygon.

        Args:
            polygon: Query polygon
            volume: Weighted area of the polygon if already known

        Returns:
            Centroid; the polygon's lower-left bounding corner when the volume
            is at or below the lower bound; NO_POINT for an empty polygon
        """
        self._require_values()
        if polygon.is_empty:
            return NO_POINT
        if volume is None:
            volume = self.weighted_area(polygon)
        if volume <= self.volume_lower_bound:
            return Point(polygon.min_x, polygon.min_y)
        cells = self._cells_in_polygon(polygon)
        return Point(float(self.cell_moment_x[cells].sum()) / volume,
                     float(self.cell_moment_y[cells].sum()) / volume)

    def line_integral(self, spacing: float, p1: Point, p2: Point) -> float:
        """
        Integral of the interpolated density along the segment p1-p2.

        Args:
            spacing: Trapezoid step as a fraction of the segment, in (0, 1]
            p1: Segment start
            p2: Segment end
        """
        self._require_values()
        if not 0 < spacing <= 1:
            raise ConfigurationError("Spacing must be greater than 0 and at most 1")

        n_steps = max(1, math.ceil(1.0 / spacing - 1e-9))
        ts = np.minimum(np.arange(n_steps + 1) * spacing, 1.0)
        samples = self.interpolate_many(p1.x + (p2.x - p1.x) * ts, p1.y + (p2.y - p1.y) * ts)
        return float(np.sum((samples[1:] + samples[:-1]) * np.diff(ts)) / 2 * p1.distance(p2))
