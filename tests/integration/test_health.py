"""Integration tests for health check endpoints."""

from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_healthy_status(self, client: TestClient) -> None:
        """Test that /health endpoint returns 200 and healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["timestamp"] is not None


class TestReadinessEndpoint:
    """Tests for /health/ready endpoint."""

    def test_readiness_returns_200_when_healthy(self, client: TestClient) -> None:
        """Test that /health/ready returns 200 when the datastore answers."""
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        check_names = [check["name"] for check in data["checks"]]
        assert check_names == ["database", "session_sweeper"]

    def test_readiness_database_check_includes_latency(self, client: TestClient) -> None:
        """Test that database check includes latency measurement."""
        data = client.get("/health/ready").json()

        db_check = next(c for c in data["checks"] if c["name"] == "database")
        assert db_check["latency_ms"] is not None

    def test_readiness_returns_503_when_database_unhealthy(self, client: TestClient) -> None:
        """Test that /health/ready returns 503 when database is unhealthy."""
        with patch(
            "src.api.routes.health.check_database_connection",
            return_value={"healthy": False, "error": "Connection timeout"},
        ):
            response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        db_check = next(c for c in data["checks"] if c["name"] == "database")
        assert db_check["healthy"] is False
        assert db_check["error"] == "Connection timeout"


class TestAuthenticatedHealth:
    """Tests for /health/auth endpoint."""

    def test_requires_token(self, client: TestClient) -> None:
        response = client.get("/health/auth")

        assert response.status_code == 401

    def test_rejects_expired_token(self, client: TestClient, auth_headers) -> None:
        response = client.get("/health/auth", headers=auth_headers(str(uuid4()), exp_offset=-60))

        assert response.status_code == 401

    def test_returns_identity(self, client: TestClient, auth_headers) -> None:
        user_id = str(uuid4())

        response = client.get("/health/auth", headers=auth_headers(user_id, email="sam@example.com"))

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == user_id
        assert data["email"] == "sam@example.com"


class TestErrorResponseSchema:
    """Tests for error response schema compliance."""

    def test_api_errors_use_error_response_format(self, client: TestClient, auth_headers) -> None:
        """Service errors are rendered with error type, message and timestamp."""
        response = client.get("/api/v1/feeds/unknown-topic", headers=auth_headers(str(uuid4())))

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "not_found"
        assert "message" in data
        assert "timestamp" in data


class TestReadinessDetails:
    """Sweeper and relay figures in /health/ready."""

    def test_disabled_sweeper_is_reported_healthy(self, client: TestClient) -> None:
        data = client.get("/health/ready").json()

        sweeper = next(c for c in data["checks"] if c["name"] == "session_sweeper")
        assert sweeper["healthy"] is True
        assert sweeper["error"] == "disabled"

    def test_reports_feed_subscribers(self, client: TestClient) -> None:
        from src.core.relay import AVAILABILITY_FEED, get_relay

        subscription = get_relay().subscribe(AVAILABILITY_FEED)
        try:
            data = client.get("/health/ready").json()
        finally:
            subscription.close()

        assert data["feed_subscribers"] >= 1

    def test_timestamp_is_utc(self, client: TestClient) -> None:
        data = client.get("/health").json()

        assert data["timestamp"].endswith(("Z", "+00:00"))
