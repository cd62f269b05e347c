"""FastAPI main application."""

from typing import List, Optional

import structlog
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .. import __version__
from ..config import configure_logging, settings
from ..core.density import DensityField
from ..core.errors import (AlgorithmFailure, ConfigurationError, GeometryError,
                           UnpreparedFieldError)
from ..core.geometry import polygon_from_coordinates
from ..core.parameters import Parameters
from ..core.partition import Partition

configure_logging(settings)

logger = structlog.get_logger()

app = FastAPI(
    title="AreaCon API",
    description="Area-constrained partitioning of convex regions",
    version=__version__,
)


# Request/Response models
class DensityModel(BaseModel):
    """Lattice samples over the bounding box of the region."""

    nx: int = Field(..., ge=2, description="Lattice nodes along x")
    ny: int = Field(..., ge=2, description="Lattice nodes along y")
    values: List[float] = Field(..., description="Samples, values[i * ny + j] at node (i, j)")


class ParametersModel(BaseModel):
    """Algorithm parameters; omitted fields keep their defaults."""

    line_int_step: float = Field(0.1, gt=0, le=1)
    weights_step: float = Field(0.1, gt=0)
    centers_step: float = Field(1.0, gt=0, le=1)
    volume_tolerance: float = Field(0.002, gt=0)
    convergence_criterion: float = Field(0.02, gt=0)
    max_iterations_volume: int = Field(200, ge=1)
    max_iterations_centers: int = Field(500, ge=1)
    volume_lower_bound: float = Field(1e-5, gt=0, lt=1)
    robustness_tolerance: float = Field(1e-7, gt=0)
    initial_centers_step: float = Field(1.0, gt=0, le=1)


class PartitionRequest(BaseModel):
    """Request to partition a region."""

    region: List[List[float]] = Field(..., min_length=3, description="Convex region vertices as [x, y]")
    density: DensityModel
    n_regions: int = Field(..., ge=0, le=1000, description="Number of cells")
    desired_areas: Optional[List[float]] = Field(None, description="Target area fractions")
    centers: Optional[List[List[float]]] = Field(None, description="Initial centers as [x, y]")
    weights: Optional[List[float]] = Field(None, description="Initial weights")
    parameters: ParametersModel = Field(default_factory=ParametersModel)


class PartitionResponse(BaseModel):
    """Final partition state."""

    cells: List[List[List[float]]]
    centers: List[List[float]]
    weights: List[float]
    volumes: List[float]
    volume_error: float
    center_error: float
    outer_iterations: int
    converged: bool


class WeightedAreaRequest(BaseModel):
    """Request to evaluate the normalized density over a polygon."""

    region: List[List[float]] = Field(..., min_length=3)
    density: DensityModel
    polygon: List[List[float]] = Field(..., min_length=3)


class WeightedAreaResponse(BaseModel):
    weighted_area: float
    centroid: Optional[List[float]] = None


def _build_field(region, density: DensityModel) -> DensityField:
    return DensityField(polygon_from_coordinates(region), density.nx, density.ny, density.values)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.post("/partition", response_model=PartitionResponse)
def create_partition(request: PartitionRequest):
    """Run the partition engine to completion and return the final covering."""
    logger.info("Partition requested", n_regions=request.n_regions)
    try:
        prior = _build_field(request.region, request.density)
        partition = Partition(
            request.n_regions,
            prior,
            request.desired_areas,
            Parameters(**request.parameters.model_dump()),
        )
        partition.initialize(request.centers, request.weights)
        result = partition.run()
    except (ConfigurationError, GeometryError, UnpreparedFieldError) as e:
        logger.warning("Partition rejected", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    except AlgorithmFailure as e:
        logger.error("Partition failed", error=str(e))
        raise HTTPException(status_code=409, detail=str(e))

    return PartitionResponse(
        cells=[cell.to_list() for cell in result.covering],
        centers=[[c.x, c.y] for c in result.centers],
        weights=result.weights,
        volumes=result.volumes,
        volume_error=result.volume_error,
        center_error=result.center_error,
        outer_iterations=result.outer_iterations,
        converged=result.converged,
    )


@app.post("/density/weighted-area", response_model=WeightedAreaResponse)
def weighted_area(request: WeightedAreaRequest):
    """Weighted area and centroid of a polygon under the normalized density."""
    try:
        prior = _build_field(request.region, request.density)
        polygon = polygon_from_coordinates(request.polygon)
        area = prior.weighted_area(polygon)
        centroid = prior.centroid(polygon, area)
    except (ConfigurationError, GeometryError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return WeightedAreaResponse(
        weighted_area=area,
        centroid=[centroid.x, centroid.y] if centroid.is_finite() else None,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
