"""Exception hierarchy for the partitioning engine."""


class AreaConError(Exception):
    """Base class for all partitioning errors."""


class ConfigurationError(AreaConError, ValueError):
    """Invalid parameters, mismatched sizes or unusable desired areas."""


class GeometryError(AreaConError, ValueError):
    """A geometric invariant was violated (degenerate polygon, size mismatch...)."""


class AlgorithmFailure(AreaConError, RuntimeError):
    """A bounded internal search ran out of retries."""


class UnpreparedFieldError(AreaConError, RuntimeError):
    """A density query was made before any sample values were set."""


class OperationCancelled(AreaConError):
    """The caller's cancellation token was set while the engine was running."""
