"""Route tests for the credits balance, deduction and debug endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from postgrest.exceptions import APIError as PostgrestAPIError

from src.api.routes import credits as credits_routes
from src.config.settings import config
from src.services.billing.credits_ledger import CreditsSource, InsufficientCreditsError, generate_stable_anon_id

DEDUCT_BODY = {"amount": 1, "refType": "query", "refId": "q-1"}


@pytest.fixture()
def ledger():
    mocks = {
        "get_credits_status": AsyncMock(return_value={"balance": 10, "isSubscriber": False}),
        "initialize_user_credits": AsyncMock(return_value=15),
        "deduct_credits": AsyncMock(return_value=9),
        "add_credits": AsyncMock(return_value=20),
        "get_credits_debug_info": AsyncMock(return_value={"userId": "x", "balance": 10}),
        "is_admin": AsyncMock(return_value=False),
    }
    with patch.multiple(credits_routes, **mocks):
        yield MagicMock(**mocks)


# ---------------------------------------------------------------------------
# GET /api/credits/balance
# ---------------------------------------------------------------------------
class TestBalance:
    def test_new_visitor_gets_cookie_and_grant(self, client, ledger) -> None:
        ledger.get_credits_status.return_value = {"balance": config.INITIAL_ANON_CREDITS, "isSubscriber": False}

        response = client.get("/api/credits/balance")

        assert response.status_code == 200
        assert response.json() == {"credits": config.INITIAL_ANON_CREDITS, "isSubscriber": False}
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("ria-hunter-anon-id=anon-")
        assert "samesite=strict" in cookie.lower()
        ledger.initialize_user_credits.assert_awaited_once()
        assert ledger.initialize_user_credits.await_args.args[1] == config.INITIAL_ANON_CREDITS

    def test_returning_visitor_uses_hashed_id(self, client, ledger) -> None:
        response = client.get("/api/credits/balance", headers={"Cookie": "ria-hunter-anon-id=anon-abc"})

        assert "set-cookie" not in response.headers
        ledger.initialize_user_credits.assert_not_awaited()
        ledger.get_credits_status.assert_awaited_once_with(generate_stable_anon_id("anon-abc"))

    def test_signed_in_user(self, user_client, ledger) -> None:
        body = user_client.get("/api/credits/balance").json()
        assert body == {"credits": 10, "isSubscriber": False, "userId": "user-1"}
        ledger.get_credits_status.assert_awaited_once_with("user-1")


# ---------------------------------------------------------------------------
# POST /api/credits/deduct
# ---------------------------------------------------------------------------
class TestDeduct:
    def test_requires_some_identity(self, client, ledger) -> None:
        response = client.post("/api/credits/deduct", json=DEDUCT_BODY)
        assert response.status_code == 400
        assert response.json()["error"] == "No anonymous ID found"

    def test_deducts(self, user_client, ledger) -> None:
        response = user_client.post("/api/credits/deduct", json={**DEDUCT_BODY, "idempotencyKey": "k1"})

        assert response.json() == {"success": True, "deducted": 1, "credits": 9, "remaining": 9, "isSubscriber": False}
        args = ledger.deduct_credits.await_args
        assert args.args == ("user-1", 1, CreditsSource.USAGE)
        assert args.kwargs["idempotency_key"] == "k1"
        assert args.kwargs["ref_id"] == "q-1"

    def test_subscriber_is_not_charged(self, user_client, ledger) -> None:
        ledger.get_credits_status.return_value = {"balance": 50, "isSubscriber": True}

        body = user_client.post("/api/credits/deduct", json=DEDUCT_BODY).json()

        assert body == {"success": True, "deducted": 0, "remaining": 50, "isSubscriber": True}
        ledger.deduct_credits.assert_not_awaited()

    def test_insufficient_balance(self, user_client, ledger) -> None:
        ledger.get_credits_status.return_value = {"balance": 0, "isSubscriber": False}

        response = user_client.post("/api/credits/deduct", json=DEDUCT_BODY)

        assert response.status_code == 402
        assert response.json() == {
            "error": "Insufficient credits",
            "code": "INSUFFICIENT_CREDITS",
            "credits": 0,
            "remaining": 0,
            "requested": 1,
        }

    def test_race_on_deduct(self, user_client, ledger) -> None:
        ledger.deduct_credits.side_effect = InsufficientCreditsError(0, 1)
        response = user_client.post("/api/credits/deduct", json=DEDUCT_BODY)
        assert response.status_code == 402
        assert response.json()["requested"] == 1

    def test_amount_must_be_positive(self, user_client, ledger) -> None:
        assert user_client.post("/api/credits/deduct", json={**DEDUCT_BODY, "amount": 0}).status_code == 400


# ---------------------------------------------------------------------------
# /api/credits/debug
# ---------------------------------------------------------------------------
class TestDebug:
    def test_anonymous_blocked_in_production(self, client, ledger) -> None:
        with patch.object(config, "ENVIRONMENT", "production"):
            assert client.get("/api/credits/debug").status_code == 401

    def test_signed_in_debug(self, user_client, ledger) -> None:
        assert user_client.get("/api/credits/debug").json()["balance"] == 10
        ledger.get_credits_debug_info.assert_awaited_once_with("user-1")

    def test_admin_adjust_forbidden_in_production(self, user_client, ledger) -> None:
        with patch.object(config, "ENVIRONMENT", "production"):
            response = user_client.post("/api/credits/debug", json={"action": "add", "amount": 5, "reason": "gift"})
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required", "code": "FORBIDDEN"}
        ledger.add_credits.assert_not_awaited()

    def test_admin_adds_credits_to_target(self, user_client, ledger) -> None:
        ledger.is_admin.return_value = True
        payload = {"action": "add", "amount": 5, "reason": "gift", "targetUserId": "user-2"}

        with patch.object(config, "ENVIRONMENT", "production"):
            body = user_client.post("/api/credits/debug", json=payload).json()

        assert body == {"success": True, "action": "add", "amount": 5, "userId": "user-2", "newBalance": 20}
        args = ledger.add_credits.await_args
        assert args.args == ("user-2", 5, CreditsSource.ADMIN_ADJUST)
        assert args.kwargs["metadata"] == {"adminUserId": "user-1", "reason": "gift"}

    def test_development_allows_self_deduct(self, user_client, ledger) -> None:
        payload = {"action": "deduct", "amount": 2, "reason": "test"}
        with patch.object(config, "ENVIRONMENT", "development"):
            body = user_client.post("/api/credits/debug", json=payload).json()
        assert body["userId"] == "user-1"
        assert body["newBalance"] == 9
        ledger.is_admin.assert_not_awaited()

    def test_admin_lookup_failure_is_500(self, user_client, ledger) -> None:
        ledger.is_admin.side_effect = PostgrestAPIError({"message": "user_roles unavailable"})
        with patch.object(config, "ENVIRONMENT", "production"):
            response = user_client.post("/api/credits/debug", json={"action": "add", "amount": 5, "reason": "gift"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to perform credit operation"
        ledger.add_credits.assert_not_awaited()
