"""
Area-constrained partitioning engine.

Splits a convex region into N cells whose density-weighted areas match
prescribed fractions while each generating center converges to its cell's
weighted centroid. Two nested gradient loops drive the process:

- Weight correction (inner): adjusts site weights of the power diagram until
  the weighted areas match the targets
- Center correction (outer): moves every center toward its cell centroid
"""

import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np
import structlog

from ..config import Settings, settings as default_settings
from .density import DensityField
from .dual_graph import DualGraph, build_dual_graph
from .errors import AlgorithmFailure, ConfigurationError, OperationCancelled, UnpreparedFieldError
from .geometry import GeometryContext, Point, Polygon, as_point, perpendicular_direction, point_along_line
from .parameters import Parameters
from .power_diagram import PowerDiagramBuilder
from .trace import IterationSnapshot

logger = structlog.get_logger()

Observer = Callable[[IterationSnapshot], None]


@dataclass
class PartitionResult:
    """Outcome of a partition run."""

    covering: List[Polygon]
    centers: List[Point]
    weights: List[float]
    volumes: List[float]
    volume_error: float  # Sum of squared area deviations at the end of the run
    center_error: float  # Summed center-to-centroid distance of the last outer iteration
    outer_iterations: int
    converged: bool
    inner_iterations: List[int] = field(default_factory=list)
    volume_error_history: List[float] = field(default_factory=list)


def _is_omitted(values) -> bool:
    """None or an empty sequence (numpy arrays included)."""
    return values is None or len(values) == 0


def normalize_desired_areas(
    n_regions: int, desired_areas: Optional[Sequence[float]], lower_bound: float
) -> List[float]:
    """
    Validate target area fractions and scale them to sum to 1.

    Omitted areas default to 1/N each.

    Raises:
        ConfigurationError: On a size mismatch or an entry at or below the
            lower bound (before or after renormalization)
    """
    if n_regions and _is_omitted(desired_areas):
        if lower_bound >= 1.0 / n_regions:
            raise ConfigurationError(
                "volume_lower_bound is too large for the number of regions. "
                "Decrease volume_lower_bound or the number of regions"
            )
        return [1.0 / n_regions] * n_regions

    areas = [] if desired_areas is None else [float(a) for a in desired_areas]
    if len(areas) != n_regions:
        raise ConfigurationError("The size of desired_areas must equal the number of regions")
    for area in areas:
        if not area > lower_bound:
            raise ConfigurationError("Entries of desired_areas must be greater than volume_lower_bound")

    if not areas:
        return areas

    total = math.fsum(areas)
    if not math.isclose(total, 1.0, rel_tol=0.0, abs_tol=1e-12):
        logger.warning("Desired areas not normalized; normalizing automatically", total=total)
    areas = [a / total for a in areas]
    if any(a <= lower_bound for a in areas):
        raise ConfigurationError(
            "Normalized areas too small. Decrease the number of regions, increase "
            "desired areas, or decrease volume_lower_bound"
        )
    return areas


def place_default_centers(
    region: Polygon, n_regions: int, multiplier: float, context: GeometryContext
) -> Optional[List[Point]]:
    """
    Spread centers evenly along the region's first edge, offset inward.

    Returns None if any of the points falls outside the region.
    """
    p1, p2 = region.vertices[0], region.vertices[1]
    offset = perpendicular_direction(p1, p2, multiplier)
    if not region.contains(point_along_line(p1, p2, 0.5) + offset, context):
        offset = -offset

    spacing = 1.0 / (n_regions + 1)
    centers = []
    for k in range(n_regions):
        center = point_along_line(p1, p2, spacing * (k + 1)) + offset
        if not region.contains(center, context):
            return None
        centers.append(center)
    return centers


def seed_default_centers(
    region: Polygon,
    n_regions: int,
    context: GeometryContext,
    initial_multiplier: float = 0.01,
    max_halvings: int = 10,
) -> List[Point]:
    """
    Default center placement, halving the inward offset until every center is inside.

    Raises:
        AlgorithmFailure: If no offset within the retry budget works
    """
    multiplier = initial_multiplier
    for attempt in range(max_halvings + 1):
        centers = place_default_centers(region, n_regions, multiplier, context)
        if centers is not None:
            return centers
        logger.debug("Default centers left the region; halving offset",
                     attempt=attempt, multiplier=multiplier)
        multiplier /= 2
    raise AlgorithmFailure("Unable to create default centers")


class Partition:
    """Area-constrained partition of a region under a density prior."""

    def __init__(
        self,
        n_regions: int,
        prior: DensityField,
        desired_areas: Optional[Sequence[float]] = None,
        params: Optional[Parameters] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the partition engine.

        Args:
            n_regions: Number of cells N
            prior: Density field with values set
            desired_areas: Target weighted-area fractions (defaults to 1/N each)
            params: Algorithm parameters
            settings: Process settings (seeding and construction caps)
        """
        if n_regions < 0:
            raise ConfigurationError("Number of regions cannot be negative")
        if not prior.is_prepared:
            raise UnpreparedFieldError("Prior has not been initialized")

        self.params = params or Parameters()
        self.settings = settings or default_settings
        self.context = self.params.context
        self.n_regions = n_regions
        self.prior = prior.copy_for(self.context, self.params.volume_lower_bound)
        self.region = self.prior.region
        self.desired_areas = normalize_desired_areas(
            n_regions, desired_areas, self.params.volume_lower_bound
        )

        self.builder = PowerDiagramBuilder(
            self.region,
            self.context,
            max_bisection_iterations=self.settings.bisection_max_iterations,
            max_boundary_expansions=self.settings.boundary_max_expansions,
        )

        self.centers: List[Point] = []
        self.weights: List[float] = []
        self.covering: List[Polygon] = []
        self._initialized = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self, centers: Optional[Sequence] = None, weights: Optional[Sequence[float]] = None):
        """
        Seed centers and weights.

        Missing centers are placed along the region's first edge; missing
        weights start at zero.
        """
        if self.n_regions and _is_omitted(centers):
            self.centers = seed_default_centers(
                self.region, self.n_regions, self.context,
                self.settings.default_center_multiplier,
                self.settings.default_center_max_halvings,
            )
        else:
            points = [] if centers is None else [as_point(c) for c in centers]
            if len(points) != self.n_regions:
                raise ConfigurationError("Centers must be the same size as the number of regions")
            for point in points:
                if not self.region.contains(point, self.context):
                    raise ConfigurationError("Centers must be located inside the region of interest")
            self.centers = points

        if self.n_regions and _is_omitted(weights):
            self.weights = [0.0] * self.n_regions
        else:
            values = [] if weights is None else [float(w) for w in weights]
            if len(values) != self.n_regions:
                raise ConfigurationError("Weights must be the same size as the number of regions")
            self.weights = values

        self.covering = [Polygon.empty() for _ in range(self.n_regions)]
        self._initialized = True
        logger.info("Partition initialized", n_regions=self.n_regions)

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def build_diagram(self, cancel=None) -> List[Polygon]:
        self.covering = self.builder.build(self.centers, self.weights, cancel)
        return self.covering

    def dual_graph(self, graph: Optional[DualGraph] = None) -> DualGraph:
        """Adjacency graph of the current covering."""
        return build_dual_graph(self.covering, self.context, graph)

    def calculate_volumes(self) -> List[float]:
        return [self.prior.weighted_area(polygon) for polygon in self.covering]

    def calculate_error(self, volumes: Sequence[float]) -> float:
        """Sum of squared deviations from the desired areas."""
        return float(sum((v - d) ** 2 for v, d in zip(volumes, self.desired_areas)))

    def gradient_step_weights(self, volumes: Sequence[float], graph: DualGraph):
        """One gradient step on the weights using the shared-edge line integrals."""
        n = self.n_regions
        xy = np.array([(c.x, c.y) for c in self.centers], dtype=float)
        dist = np.linalg.norm(xy[:, None, :] - xy[None, :, :], axis=-1)

        ratio = np.asarray(self.desired_areas) / np.asarray(volumes, dtype=float)
        inv_area = ratio[None, :] - ratio[:, None]

        integrals = np.zeros((n, n))
        for i, j, (p, q) in graph.shared_edges():
            integrals[i, j] = integrals[j, i] = self.prior.line_integral(self.params.line_int_step, p, q)

        with np.errstate(divide="ignore", invalid="ignore"):
            terms = np.where(dist > 0, inv_area * integrals / dist, 0.0)
        totals = terms.sum(axis=1)

        bump = self.settings.empty_cell_weight_bump * self.params.weights_step
        for i in range(n):
            if self.covering[i].is_empty:
                logger.warning("Cell vanished; bumping its weight", region=i, bump=bump)
                self.weights[i] += bump
            else:
                self.weights[i] -= self.params.weights_step * float(totals[i])

    def gradient_step_centers(self, volumes: Sequence[float]) -> float:
        """
        Move each center part of the way toward its weighted centroid.

        Returns:
            Total distance between the centers and their centroids before the move
        """
        error = 0.0
        for i in range(self.n_regions):
            centroid = self.prior.centroid(self.covering[i], volumes[i])
            if not centroid.is_finite():
                continue
            delta = centroid - self.centers[i]
            error += delta.norm()
            self.centers[i] = self.centers[i] + delta * self.params.centers_step
        return error

    def move_centers_along_line(self, step: float, volumes: Sequence[float]):
        """Move each center a normalized distance ``step`` toward its centroid."""
        if not 0 < step <= 1:
            raise ConfigurationError("step must be greater than 0 and less than or equal to 1")
        for i in range(self.n_regions):
            centroid = self.prior.centroid(self.covering[i], volumes[i])
            if centroid.is_finite():
                self.centers[i] = point_along_line(self.centers[i], centroid, step)

    # ------------------------------------------------------------------
    # Optimization loop
    # ------------------------------------------------------------------

    def _notify(self, observer, stage, outer=0, inner=0, volume_error=None):
        if observer is None:
            return
        observer(IterationSnapshot(
            stage=stage,
            outer_iteration=outer,
            inner_iteration=inner,
            centers=tuple(self.centers),
            covering=tuple(self.covering),
            volume_error=volume_error,
        ))

    @staticmethod
    def _check_cancel(cancel):
        if cancel is not None and cancel.is_set():
            raise OperationCancelled("Partition run cancelled")

    def run(self, observer: Optional[Observer] = None, cancel=None) -> PartitionResult:
        """
        Run the optimization until the centers settle or the iteration caps are hit.

        Args:
            observer: Called with an IterationSnapshot after every diagram rebuild
            cancel: Optional token with an ``is_set()`` method (e.g. threading.Event)

        Returns:
            PartitionResult describing the final state
        """
        if not self._initialized:
            raise ConfigurationError("Centers and weights have not been initialized")
        if self.n_regions == 0:
            return PartitionResult([], [], [], [], 0.0, 0.0, 0, True)

        params = self.params
        logger.info("Starting partition", n_regions=self.n_regions, **params.to_dict())

        self._notify(observer, "initial")
        self._check_cancel(cancel)
        self.build_diagram(cancel)
        self._notify(observer, "diagram")

        volumes = self.calculate_volumes()
        self.move_centers_along_line(params.initial_centers_step, volumes)
        self.build_diagram(cancel)
        self._notify(observer, "centers_seeded")

        graph = DualGraph(self.n_regions)
        history: List[float] = []
        inner_counts: List[int] = []
        center_error = math.inf
        outer = 0

        while center_error > params.convergence_criterion and outer < params.max_iterations_centers:
            self._check_cancel(cancel)
            volumes = self.calculate_volumes()
            volume_error = self.calculate_error(volumes)
            history.append(volume_error)
            logger.debug("Outer iteration", iteration=outer, volume_error=volume_error)

            inner = 0
            while volume_error > params.volume_tolerance and inner < params.max_iterations_volume:
                self._check_cancel(cancel)
                self.dual_graph(graph)
                self.gradient_step_weights(volumes, graph)
                self.build_diagram(cancel)
                inner += 1
                volumes = self.calculate_volumes()
                volume_error = self.calculate_error(volumes)
                history.append(volume_error)
                self._notify(observer, "weights", outer, inner, volume_error)
                logger.debug("Weight iteration", iteration=inner, volume_error=volume_error)
            inner_counts.append(inner)

            center_error = self.gradient_step_centers(volumes)
            self.build_diagram(cancel)
            outer += 1
            self._notify(observer, "centers", outer, inner, volume_error)
            logger.debug("Center step", iteration=outer, center_error=center_error)

        volumes = self.calculate_volumes()
        volume_error = self.calculate_error(volumes)
        converged = center_error <= params.convergence_criterion
        self._notify(observer, "final", outer, 0, volume_error)

        logger.info("Partition finished", outer_iterations=outer, converged=converged,
                    volume_error=volume_error, center_error=center_error)

        return PartitionResult(
            covering=list(self.covering),
            centers=list(self.centers),
            weights=list(self.weights),
            volumes=volumes,
            volume_error=volume_error,
            center_error=center_error,
            outer_iterations=outer,
            converged=converged,
            inner_iterations=inner_counts,
            volume_error_history=history,
        )
