"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from relgraph.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_endpoint_all_services_healthy():
    with (
        patch(
            "relgraph.routes.health.db_health_check",
            AsyncMock(return_value={"healthy": True, "pool_size": 3, "pool_available": 2}),
        ),
        patch("relgraph.routes.health.validate_encryption_config", return_value=True),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"]["ok"] is True
    assert data["checks"]["database"]["pool_size"] == 3
    assert data["checks"]["encryption"]["ok"] is True


def test_readyz_endpoint_database_unhealthy():
    with (
        patch(
            "relgraph.routes.health.db_health_check",
            AsyncMock(return_value={"healthy": False, "error": "Pool not initialized"}),
        ),
        patch("relgraph.routes.health.validate_encryption_config", return_value=True),
    ):
        response = client.get("/readyz")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"]["error"] == "Pool not initialized"


def test_readyz_endpoint_encryption_unusable():
    with (
        patch(
            "relgraph.routes.health.db_health_check",
            AsyncMock(return_value={"healthy": True}),
        ),
        patch("relgraph.routes.health.validate_encryption_config", return_value=False),
    ):
        response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["encryption"]["ok"] is False
