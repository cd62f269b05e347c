"""Algorithm parameters for area-constrained partitioning."""

from dataclasses import dataclass, fields

from .errors import ConfigurationError
from .geometry import GeometryContext


@dataclass(frozen=True)
class Parameters:
    """Numeric configuration of the optimization loop.

    Defaults give reasonable partitions with reasonable effort in most
    scenarios.
    """

    line_int_step: float = 0.1  # Trapezoid step along shared edges, fraction of edge length
    weights_step: float = 0.1  # Gradient step on the weights
    centers_step: float = 1.0  # Fraction of the way each center moves toward its centroid
    volume_tolerance: float = 0.002  # Inner loop stops below this squared area error
    convergence_criterion: float = 0.02  # Outer loop stops below this total center movement
    max_iterations_volume: int = 200
    max_iterations_centers: int = 500
    volume_lower_bound: float = 1e-5  # Floor on any weighted area
    robustness_tolerance: float = 1e-7
    initial_centers_step: float = 1.0  # Step of the very first centroid move

    def __post_init__(self):
        for name in ("max_iterations_volume", "max_iterations_centers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer")

        if not self.line_int_step > 0 or self.line_int_step > 1:
            raise ConfigurationError("line_int_step must be greater than 0 and less than or equal to 1")
        if not self.weights_step > 0:
            raise ConfigurationError("weights_step must be greater than 0")
        if not self.centers_step > 0 or self.centers_step > 1:
            raise ConfigurationError("centers_step must be greater than 0 and less than or equal to 1")
        if not self.initial_centers_step > 0 or self.initial_centers_step > 1:
            raise ConfigurationError("initial_centers_step must be greater than 0 and less than or equal to 1")
        if not self.volume_tolerance > 0:
            raise ConfigurationError("volume_tolerance must be greater than 0")
        if not self.convergence_criterion > 0:
            raise ConfigurationError("convergence_criterion must be greater than 0")
        if self.max_iterations_volume < 1:
            raise ConfigurationError("max_iterations_volume must be greater than 0")
        if self.max_iterations_centers < 1:
            raise ConfigurationError("max_iterations_centers must be greater than 0")
        if not 0 < self.volume_lower_bound < 1:
            raise ConfigurationError("volume_lower_bound must be between 0 and 1")
        if not self.robustness_tolerance > 0:
            raise ConfigurationError("robustness_tolerance must be greater than 0")

    @property
    def context(self) -> GeometryContext:
        return GeometryContext(self.robustness_tolerance)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
