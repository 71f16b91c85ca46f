"""Tests for health check endpoints."""

from fastapi.testclient import TestClient

from api import app
from api.dependencies import ServiceContainer, get_container
from shared.config import Settings
from shared.exceptions import StoreError


client = TestClient(app)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self):
        """Health endpoint should return 200 with status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"

    def test_health_response_structure(self):
        response = client.get("/api/health")
        assert set(response.json().keys()) == {"status", "version"}

    def test_readiness_check(self, monkeypatch):
        """Readiness loads the bundled catalog with the memory backend."""
        for name in ("FAL_API_KEY", "REPLICATE_API_TOKEN", "GOOGLE_AI_API_KEY", "STORE_BACKEND"):
            monkeypatch.delenv(name, raising=False)
        container = ServiceContainer(Settings(_env_file=None, fal_api_key="fal-key"))
        app.dependency_overrides[get_container] = lambda: container
        try:
            response = client.get("/api/ready")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        data = response.json()
        assert set(data.keys()) == {"status", "store", "models", "providers"}
        assert data["status"] == "ready"
        assert data["store"] == "memory"
        assert data["models"] > 0
        assert data["providers"] == ["fal"]

    def test_readiness_degraded_on_store_error(self):
        class BrokenRegistry:
            def list_models(self):
                raise StoreError("list_models", "connection refused")

        container = ServiceContainer(Settings(_env_file=None))
        container._registry = BrokenRegistry()
        app.dependency_overrides[get_container] = lambda: container
        try:
            response = client.get("/api/ready")
        finally:
            app.dependency_overrides.clear()

        assert response.json()["status"] == "degraded"
        assert response.json()["models"] == 0
