"""
Core partitioning functionality.
"""

from .errors import (AreaConError, ConfigurationError, GeometryError, AlgorithmFailure,
                     UnpreparedFieldError, OperationCancelled)
from .geometry import Point, Polygon, GeometryContext, polygon_from_coordinates
from .density import DensityField
from .power_diagram import PowerDiagramBuilder
from .dual_graph import DualGraph, build_dual_graph
from .parameters import Parameters
from .partition import Partition, PartitionResult, normalize_desired_areas
from .trace import IterationSnapshot, TraceWriter

__all__ = ['AreaConError', 'ConfigurationError', 'GeometryError', 'AlgorithmFailure',
           'UnpreparedFieldError', 'OperationCancelled',
           'Point', 'Polygon', 'GeometryContext', 'polygon_from_coordinates',
           'DensityField', 'PowerDiagramBuilder', 'DualGraph', 'build_dual_graph',
           'Parameters', 'Partition', 'PartitionResult', 'normalize_desired_areas',
           'IterationSnapshot', 'TraceWriter']
