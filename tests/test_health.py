"""Tests for health endpoints."""

from fastapi import status
from fastapi.testclient import TestClient


def test_liveness(client: TestClient) -> None:
    response = client.get("/health/live")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "alive"}


def test_readiness_with_services(client: TestClient) -> None:
    response = client.get("/health/ready")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ready"


def test_readiness_without_database() -> None:
    from coursetrack.main import create_app

    response = TestClient(create_app()).get("/health/ready")

    assert response.json()["status"] == "degraded"
    assert response.json()["database"] is False


def test_health(client: TestClient) -> None:
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["environment"] == "testing"


def test_root(client: TestClient) -> None:
    assert "coursetrack" in client.get("/").json()["message"]


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"
