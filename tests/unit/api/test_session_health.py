"""Route tests for the demo session status and health endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

from src.api.routes import health as health_routes
from src.api.routes import session as session_routes
from src.config.settings import config


class TestSessionStatus:
    def test_new_session_sets_cookie(self, client) -> None:
        response = client.get("/api/session/status")

        assert response.status_code == 200
        assert response.json() == {
            "searchesRemaining": config.DEMO_SEARCHES_ALLOWED,
            "searchesUsed": 0,
            "isSubscriber": False,
            "isAuthenticated": False,
            "totalAllowed": config.DEMO_SEARCHES_ALLOWED,
        }
        assert "rh_demo=" in response.headers["set-cookie"]

    def test_subscriber_is_unlimited(self, user_client) -> None:
        row = {"status": "active", "current_period_end": None}
        with patch.object(session_routes, "get_subscription_row", AsyncMock(return_value=row)):
            response = user_client.get("/api/session/status")

        body = response.json()
        assert body["searchesRemaining"] == -1
        assert body["totalAllowed"] == -1
        assert body["isSubscriber"] is True
        assert "set-cookie" not in response.headers

    def test_signed_in_free_user(self, user_client) -> None:
        with patch.object(session_routes, "get_subscription_row", AsyncMock(return_value=None)):
            body = user_client.get("/api/session/status").json()
        assert body["isAuthenticated"] is True
        assert body["isSubscriber"] is False


class TestHealth:
    def test_degraded_without_ai(self, client) -> None:
        with patch.object(health_routes, "get_ai_service", return_value=None):
            body = client.get("/api/health").json()
        assert body["status"] == "degraded"
        assert body["ai"]["available"] is False

    def test_healthy(self, client) -> None:
        service = MagicMock()
        service.is_healthy.return_value = True
        service.get_circuit_state.return_value = "CLOSED"
        service.get_stats.return_value = {"failures": 0}
        with patch.object(health_routes, "get_ai_service", return_value=service):
            body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["ai"]["circuitState"] == "CLOSED"
        assert "timestamp" in body
