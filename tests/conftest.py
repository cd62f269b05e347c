"""Shared fixtures for partitioning tests."""

import pytest

from py_areacon.core.density import DensityField
from py_areacon.core.geometry import GeometryContext, Polygon


def square(size=4.0):
    return Polygon([(0, 0), (size, 0), (size, size), (0, size)])


@pytest.fixture
def context():
    return GeometryContext(1e-7)


@pytest.fixture
def region():
    return square()


@pytest.fixture
def uniform_prior(region):
    return DensityField(region, 5, 5, [1.0] * 25)
