"""Tests for the HTTP interface."""

import pytest
from fastapi.testclient import TestClient

from py_areacon.api.main import app


SQUARE = [[0, 0], [4, 0], [4, 4], [0, 4]]
UNIFORM = {"nx": 5, "ny": 5, "values": [1.0] * 25}


class TestHealth:
    """Test the health endpoint."""

    def setup_method(self):
        self.client = TestClient(app)

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestPartitionEndpoint:
    """Test the /partition endpoint."""

    def setup_method(self):
        self.client = TestClient(app)

    def test_equal_split(self):
        response = self.client.post("/partition", json={
            "region": SQUARE,
            "density": UNIFORM,
            "n_regions": 2,
            "desired_areas": [0.5, 0.5],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["converged"] is True
        assert len(data["cells"]) == 2
        assert data["volumes"] == pytest.approx([0.5, 0.5], abs=0.002)
        assert data["centers"][0] == pytest.approx([1, 2])

    def test_custom_parameters(self):
        response = self.client.post("/partition", json={
            "region": SQUARE,
            "density": UNIFORM,
            "n_regions": 2,
            "desired_areas": [0.25, 0.75],
            "parameters": {"max_iterations_centers": 1, "max_iterations_volume": 1},
        })

        assert response.status_code == 200
        assert response.json()["outer_iterations"] == 1

    def test_mismatched_desired_areas(self):
        response = self.client.post("/partition", json={
            "region": SQUARE,
            "density": UNIFORM,
            "n_regions": 2,
            "desired_areas": [1.0],
        })
        assert response.status_code == 422

    def test_degenerate_region(self):
        response = self.client.post("/partition", json={
            "region": [[0, 0], [1, 0], [2, 0]],
            "density": {"nx": 2, "ny": 2, "values": [1.0] * 4},
            "n_regions": 1,
        })
        assert response.status_code == 422

    def test_request_validation(self):
        response = self.client.post("/partition", json={
            "region": SQUARE,
            "density": UNIFORM,
            "n_regions": -1,
        })
        assert response.status_code == 422


class TestWeightedAreaEndpoint:
    """Test the /density/weighted-area endpoint."""

    def setup_method(self):
        self.client = TestClient(app)

    def test_half_square(self):
        response = self.client.post("/density/weighted-area", json={
            "region": SQUARE,
            "density": UNIFORM,
            "polygon": [[0, 0], [2, 0], [2, 4], [0, 4]],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["weighted_area"] == pytest.approx(0.5)
        assert data["centroid"] == pytest.approx([1, 2])

    def test_size_mismatch(self):
        response = self.client.post("/density/weighted-area", json={
            "region": SQUARE,
            "density": {"nx": 5, "ny": 5, "values": [1.0] * 24},
            "polygon": SQUARE,
        })
        assert response.status_code == 422
