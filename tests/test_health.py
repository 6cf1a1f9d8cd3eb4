"""Tests for health endpoints."""

from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness_without_backends(client: TestClient) -> None:
    """Without a database the service reports itself degraded."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] is False
    assert data["redis"] is False


def test_readiness_with_database(client: TestClient) -> None:
    client.app.state.auth_service = object()

    data = client.get("/health/ready").json()

    assert data["status"] == "ready"
    assert data["database"] is True


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "learninghub"
    assert "version" in data
    assert "environment" in data


def test_root(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "LearningHub" in data["message"]
    assert "version" in data
