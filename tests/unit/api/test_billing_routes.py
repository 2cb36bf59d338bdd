"""Route tests for subscription status, Stripe sessions and the webhook endpoint."""

from unittest.mock import AsyncMock, patch

import stripe

from src.api.routes import billing as billing_routes
from src.services.billing.stripe_webhook import WebhookResult
from src.services.billing.subscriptions import NoCustomerError, StripeNotConfiguredError


class TestSubscriptionStatus:
    def test_requires_auth(self, client) -> None:
        assert client.get("/api/subscription-status").status_code == 401

    def test_returns_status(self, user_client) -> None:
        status = {"hasActiveSubscription": True, "status": "active"}
        with patch.object(billing_routes, "get_subscription_status", AsyncMock(return_value=status)) as lookup:
            response = user_client.get("/api/subscription-status")
        assert response.json() == status
        lookup.assert_awaited_once_with("user-1", "user@example.com")


class TestCheckoutAndPortal:
    def test_checkout_url(self, user_client) -> None:
        session = {"sessionId": "cs_1", "url": "https://checkout.stripe.com/x"}
        with patch.object(billing_routes, "create_checkout_session", AsyncMock(return_value=session)):
            response = user_client.post("/api/create-checkout-session")
        assert response.status_code == 200
        assert response.json()["url"] == session["url"]

    def test_checkout_without_stripe(self, user_client) -> None:
        error = StripeNotConfiguredError("Stripe not configured")
        with patch.object(billing_routes, "create_checkout_session", AsyncMock(side_effect=error)):
            response = user_client.post("/api/create-checkout-session")
        assert response.status_code == 500
        assert response.json()["error"] == "Stripe not configured"

    def test_checkout_stripe_failure(self, user_client) -> None:
        error = stripe.StripeError("card network down")
        with patch.object(billing_routes, "create_checkout_session", AsyncMock(side_effect=error)):
            response = user_client.post("/api/create-checkout-session")
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create checkout session"

    def test_portal_without_customer(self, user_client) -> None:
        with patch.object(billing_routes, "create_portal_session", AsyncMock(side_effect=NoCustomerError("none"))):
            response = user_client.post("/api/create-portal-session")
        assert response.status_code == 404
        assert response.json()["error"] == "No subscription found"

    def test_portal_requires_auth(self, client) -> None:
        assert client.post("/api/create-portal-session").status_code == 401


class TestWebhookRoute:
    def test_passes_raw_body_and_signature(self, client) -> None:
        handler = AsyncMock(return_value=WebhookResult(200, {"received": True}))
        with patch.object(billing_routes, "handle_stripe_webhook", handler):
            response = client.post(
                "/api/stripe-webhook", content=b'{"id": "evt_1"}', headers={"Stripe-Signature": "t=1,v1=abc"}
            )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        handler.assert_awaited_once_with(b'{"id": "evt_1"}', "t=1,v1=abc")

    def test_handler_status_is_returned(self, client) -> None:
        handler = AsyncMock(return_value=WebhookResult(400, {"error": "Invalid signature"}))
        with patch.object(billing_routes, "handle_stripe_webhook", handler):
            response = client.post("/api/stripe-webhook", content=b"{}")
        assert response.status_code == 400
        handler.assert_awaited_once_with(b"{}", None)
