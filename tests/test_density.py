"""Tests for the density field."""

from unittest.mock import patch

import numpy as np
import pytest
from scipy.integrate import dblquad

from py_areacon.core.density import DensityField
from py_areacon.core.errors import ConfigurationError, UnpreparedFieldError
from py_areacon.core.geometry import GeometryContext, Point, Polygon


def lattice_values(fn, size=4.0, n=5):
    """Sample fn(x, y) on an n x n lattice over [0, size]^2 in values[i * n + j] order."""
    nodes = np.linspace(0, size, n)
    return [fn(x, y) for x in nodes for y in nodes]


def box(x0, y0, x1, y1):
    return Polygon([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])


class TestSetup:
    """Test lattice validation and preprocessing."""

    def test_unprepared_field(self, region):
        field = DensityField(region)
        assert not field.is_prepared
        with pytest.raises(UnpreparedFieldError):
            field.weighted_area(region)
        with pytest.raises(UnpreparedFieldError):
            field.interpolate(Point(1, 1))

    def test_size_mismatch(self, region):
        with pytest.raises(ConfigurationError):
            DensityField(region, 2, 2, [1.0, 2.0, 3.0])

    def test_negative_size(self, region):
        with pytest.raises(ConfigurationError):
            DensityField(region, -2, 2, [1.0, 1.0, 1.0, 1.0])

    def test_non_finite_values(self, region):
        with pytest.raises(ConfigurationError):
            DensityField(region, 2, 2, [1.0, np.nan, 1.0, 1.0])

    def test_grid_without_interior_cells(self):
        triangle = Polygon([(0, 0), (1, 0), (0, 1)])
        with pytest.raises(ConfigurationError):
            DensityField(triangle, 2, 2, [1.0] * 4)

    def test_node_membership(self, uniform_prior):
        assert uniform_prior.grid_in_region.shape == (5, 5)
        assert uniform_prior.grid_in_region.all()
        assert uniform_prior.unweighted_area == pytest.approx(16)

    def test_zero_density_falls_back_to_uniform(self, region):
        with patch("py_areacon.core.density.logger") as mock_logger:
            field = DensityField(region, 5, 5, [0.0] * 25)

        mock_logger.warning.assert_called_once()
        assert field.weighted_area(region) == pytest.approx(1.0)
        assert field.weighted_area(box(0, 0, 2, 4)) == pytest.approx(0.5)


class TestWeightedArea:
    """Test weighted-area and centroid queries."""

    def test_uniform_whole_region(self, uniform_prior, region):
        assert uniform_prior.weighted_area(region) == pytest.approx(1.0)

    def test_uniform_half_region(self, uniform_prior):
        assert uniform_prior.weighted_area(box(0, 0, 2, 4)) == pytest.approx(0.5)

    def test_partial_cells_are_ignored(self, uniform_prior):
        # Only the four cells of [1, 3]^2 lie wholly inside
        assert uniform_prior.weighted_area(box(0.5, 0.5, 3.5, 3.5)) == pytest.approx(0.25)

    def test_lower_bound_clamp(self, region):
        field = DensityField(region, 5, 5, [1.0] * 25, volume_lower_bound=0.01)
        tiny = Polygon([(0.1, 0.1), (0.5, 0.1), (0.1, 0.5)])

        assert field.weighted_area(tiny) == 0.01
        assert field.weighted_area(Polygon.empty()) == 0.01
        assert field.centroid(tiny) == Point(0.1, 0.1)
        assert type(field.centroid(tiny).x) is float

    def test_uniform_centroid(self, uniform_prior, region):
        centroid = uniform_prior.centroid(region)
        assert centroid.x == pytest.approx(2.0)
        assert centroid.y == pytest.approx(2.0)

    def test_empty_polygon_centroid_is_undefined(self, uniform_prior):
        assert not uniform_prior.centroid(Polygon.empty()).is_finite()

    @pytest.mark.parametrize("fn", [
        lambda x, y: 1 + x + 2 * y,
        lambda x, y: 1 + x * y,
    ])
    def test_matches_numerical_integration(self, fn, region):
        field = DensityField(region, 5, 5, lattice_values(fn))
        total, _ = dblquad(lambda y, x: fn(x, y), 0, 4, 0, 4)
        part, _ = dblquad(lambda y, x: fn(x, y), 0, 2, 0, 2)
        moment_x, _ = dblquad(lambda y, x: x * fn(x, y), 0, 4, 0, 4)
        moment_y, _ = dblquad(lambda y, x: y * fn(x, y), 0, 4, 0, 4)

        assert field.weighted_area(box(0, 0, 2, 2)) == pytest.approx(part / total)
        centroid = field.centroid(region)
        assert centroid.x == pytest.approx(moment_x / total)
        assert centroid.y == pytest.approx(moment_y / total)


class TestInterpolation:
    """Test pointwise interpolation and line integrals."""

    def test_linear_field(self, region):
        field = DensityField(region, 5, 5, lattice_values(lambda x, y: x + 2 * y))
        assert field.interpolate(Point(1.5, 2.3)) == pytest.approx(1.5 + 4.6)
        assert field.interpolate(Point(4, 4)) == pytest.approx(12)

    def test_bilinear_field(self, region):
        field = DensityField(region, 5, 5, lattice_values(lambda x, y: x * y))
        assert field.interpolate(Point(1.5, 2.5)) == pytest.approx(3.75)

    def test_points_outside_are_clamped(self, region):
        field = DensityField(region, 5, 5, lattice_values(lambda x, y: x))
        assert field.interpolate(Point(-3, 1)) == pytest.approx(0)
        assert field.interpolate(Point(9, 1)) == pytest.approx(4)

    def test_line_integral_of_constant(self, region):
        field = DensityField(region, 5, 5, [3.0] * 25)
        assert field.line_integral(0.1, Point(0, 0), Point(4, 0)) == pytest.approx(12)

    def test_line_integral_of_linear_field(self, region):
        field = DensityField(region, 5, 5, lattice_values(lambda x, y: x))
        assert field.line_integral(0.1, Point(0, 1), Point(4, 1)) == pytest.approx(8)
        assert field.line_integral(0.3, Point(0, 1), Point(4, 1)) == pytest.approx(8)

    def test_line_integral_rejects_bad_spacing(self, uniform_prior):
        with pytest.raises(ConfigurationError):
            uniform_prior.line_integral(0, Point(0, 0), Point(1, 0))
        with pytest.raises(ConfigurationError):
            uniform_prior.line_integral(1.5, Point(0, 0), Point(1, 0))


class TestCopy:
    """Test rebinding a field to other engine settings."""

    def test_copy_leaves_source_untouched(self, uniform_prior):
        copy = uniform_prior.copy_for(GeometryContext(1e-6), 0.05)

        assert copy is not uniform_prior
        assert copy.volume_lower_bound == 0.05
        assert uniform_prior.volume_lower_bound == 0.0
        assert copy.weighted_area(box(0, 0, 4, 4)) == pytest.approx(1.0)
