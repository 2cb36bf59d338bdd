"""
Stripe webhook processing.

The signature is verified against the raw body, then the event payload is
handled as plain dicts. Every event is written to ``stripe_events`` first;
an event already marked processed is acknowledged without side effects.
Credit grants use deterministic idempotency keys so a redelivered event
cannot double-credit.
"""

import asyncio
import json
import time

import stripe
from postgrest.exceptions import APIError as PostgrestAPIError

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.billing.credits_ledger import (
    CreditsSource,
    add_credits,
    is_stripe_event_processed,
    record_stripe_event,
)
from src.services.billing.subscriptions import ACTIVE_STATUSES, epoch_to_iso, upsert_subscription
from src.services.supabase_client import get_supabase_client
from src.utils.retry import with_retry

logger = setup_logger(__name__)

PRODUCT_CREDIT_MAP = {
    "prod_basic": 100,
    "prod_pro": 1000,
    "prod_enterprise": 10000,
}
RENEWAL_WINDOW_SECONDS = 3600


class WebhookResult:
    """HTTP status plus JSON body for the route to return."""

    def __init__(self, status_code: int, body: dict):
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        return f"WebhookResult({self.status_code}, {self.body})"


# ---------------------------------------------------------------------------
# Stripe lookups
# ---------------------------------------------------------------------------
@with_retry(retries=2)
def _price_product(price_id: str) -> str | None:
    price = stripe.Price.retrieve(price_id)
    product = getattr(price, "product", None)
    return product if isinstance(product, str) or product is None else getattr(product, "id", None)


@with_retry(retries=2)
def _line_item_credits(session_id: str) -> int:
    total = 0
    for item in stripe.checkout.Session.list_line_items(session_id).data:
        price = getattr(item, "price", None)
        metadata = getattr(price, "metadata", None) or {}
        amount = metadata.get("credits_amount") if hasattr(metadata, "get") else None
        if amount:
            total += int(amount) * int(getattr(item, "quantity", 1) or 1)
    return total


async def subscription_credits(subscription: dict) -> int:
    """Credits granted for this subscription's product, or the default grant."""
    items = (subscription.get("items") or {}).get("data") or []
    price_id = ((items[0].get("price") or {}).get("id")) if items else None
    if not price_id:
        return config.DEFAULT_SUBSCRIPTION_CREDITS
    try:
        product_id = await asyncio.to_thread(_price_product, price_id)
    except stripe.StripeError as e:
        logger.warning("Could not resolve price %s: %s", price_id, e)
        return config.DEFAULT_SUBSCRIPTION_CREDITS
    return PRODUCT_CREDIT_MAP.get(product_id, config.DEFAULT_SUBSCRIPTION_CREDITS)


def _period(subscription: dict) -> tuple[int | None, int | None]:
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start or items[0].get("current_period_start")
            end = end or items[0].get("current_period_end")
    return start, end


def _customer_id(obj: dict) -> str | None:
    customer = obj.get("customer")
    return customer.get("id") if isinstance(customer, dict) else customer


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------
async def _handle_subscription_change(event_id: str, event_type: str, subscription: dict) -> None:
    user_id = (subscription.get("metadata") or {}).get("user_id")
    if not user_id:
        logger.warning("Subscription %s has no user_id in metadata", subscription.get("id"))
        await record_stripe_event(event_id, event_type, False, "No user_id in metadata")
        return

    period_start, period_end = _period(subscription)
    status = subscription.get("status")
    try:
        await upsert_subscription(
            user_id,
            {
                "stripe_subscription_id": subscription.get("id"),
                "stripe_customer_id": _customer_id(subscription),
                "status": status,
                "current_period_start": epoch_to_iso(period_start),
                "current_period_end": epoch_to_iso(period_end),
                "trial_end": epoch_to_iso(subscription.get("trial_end")),
            },
        )
    except PostgrestAPIError as e:
        await record_stripe_event(event_id, event_type, False, f"Error upserting subscription: {e.message}")
        return

    if status not in ACTIVE_STATUSES:
        await record_stripe_event(event_id, event_type, True)
        return

    credits = await subscription_credits(subscription)
    is_renewal = (
        event_type == "customer.subscription.updated"
        and bool(period_start)
        and time.time() - period_start < RENEWAL_WINDOW_SECONDS
    )
    ref_type = "subscription_renewal" if is_renewal else "subscription_created"
    ref_id = f"{subscription.get('id')}_{period_start}" if is_renewal else subscription.get("id")
    try:
        await add_credits(
            user_id,
            credits,
            CreditsSource.SUBSCRIPTION,
            ref_type=ref_type,
            ref_id=ref_id,
            idempotency_key=f"{event_id}_{ref_type}_{ref_id}",
            metadata={"subscriptionId": subscription.get("id"), "eventId": event_id, "creditsAmount": credits},
        )
    except (PostgrestAPIError, ValueError) as e:
        await record_stripe_event(event_id, event_type, False, f"Error adding credits: {e}")
        return
    await record_stripe_event(event_id, event_type, True)


async def _handle_subscription_deleted(event_id: str, event_type: str, subscription: dict) -> None:
    user_id = (subscription.get("metadata") or {}).get("user_id")
    if not user_id:
        await record_stripe_event(event_id, event_type, False, "No user_id in metadata")
        return

    client = await get_supabase_client()
    try:
        await (
            client.table("subscriptions")
            .update({"status": "cancelled", "cancelled_at": epoch_to_iso(time.time())})
            .eq("user_id", user_id)
            .execute()
        )
    except PostgrestAPIError as e:
        await record_stripe_event(event_id, event_type, False, f"Error updating subscription: {e.message}")
        return
    logger.info("Subscription cancelled for user %s", user_id)
    await record_stripe_event(event_id, event_type, True)


async def _handle_checkout_completed(event_id: str, event_type: str, session: dict) -> None:
    user_id = session.get("client_reference_id") or (session.get("metadata") or {}).get("user_id")
    if not user_id:
        await record_stripe_event(event_id, event_type, False, "No user_id in session")
        return

    if session.get("mode") != "payment" or session.get("subscription"):
        await record_stripe_event(event_id, event_type, True, "Handled by subscription events")
        return

    session_id = session.get("id")
    try:
        amount = (session.get("metadata") or {}).get("credits_amount")
        if amount:
            credits = int(amount)
        else:
            credits = await asyncio.to_thread(_line_item_credits, session_id)

        if credits <= 0:
            await record_stripe_event(event_id, event_type, True, "No credits amount determined")
            return

        await add_credits(
            user_id,
            credits,
            CreditsSource.COUPON,
            ref_type="checkout_credits",
            ref_id=session_id,
            idempotency_key=f"checkout_{session_id}",
            metadata={"checkoutId": session_id, "eventId": event_id, "creditsAmount": credits},
        )
    except (stripe.StripeError, PostgrestAPIError, ValueError) as e:
        await record_stripe_event(event_id, event_type, False, f"Error adding credits: {e}")
        return
    await record_stripe_event(event_id, event_type, True)


async def process_event(event: dict) -> None:
    """Dispatch a verified event by type and record the outcome."""
    event_id = event["id"]
    event_type = event["type"]
    obj = (event.get("data") or {}).get("object") or {}

    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await _handle_subscription_change(event_id, event_type, obj)
    elif event_type == "customer.subscription.deleted":
        await _handle_subscription_deleted(event_id, event_type, obj)
    elif event_type == "invoice.payment_succeeded":
        # Subscription invoices are credited through the subscription events.
        await record_stripe_event(event_id, event_type, True)
    elif event_type == "invoice.payment_failed":
        await record_stripe_event(event_id, event_type, True, "Payment failed")
    elif event_type == "checkout.session.completed":
        await _handle_checkout_completed(event_id, event_type, obj)
    else:
        await record_stripe_event(event_id, event_type, True, "Unhandled event type")


async def handle_stripe_webhook(payload: bytes, signature: str | None) -> WebhookResult:
    if not config.STRIPE_SECRET_KEY or not config.STRIPE_WEBHOOK_SECRET:
        return WebhookResult(500, {"error": "Stripe not configured"})

    try:
        stripe.Webhook.construct_event(payload, signature or "", config.STRIPE_WEBHOOK_SECRET)
    except (stripe.SignatureVerificationError, ValueError) as e:
        message = str(e)
        event_id = f"invalid_{int(time.time() * 1000)}" if "timestamp" in message.lower() else "invalid_signature"
        logger.warning("Stripe signature verification failed: %s", message)
        await record_stripe_event(event_id, "signature_error", False, message)
        return WebhookResult(400, {"error": "Invalid signature"})

    event = json.loads(payload)
    event_id = event.get("id")
    event_type = event.get("type")
    logger.info("Stripe event %s (%s)", event_id, event_type)

    try:
        if await is_stripe_event_processed(event_id):
            return WebhookResult(200, {"received": True, "status": "already_processed"})
        await record_stripe_event(event_id, event_type)
        await process_event(event)
    except (PostgrestAPIError, stripe.StripeError, KeyError, OSError) as e:
        logger.error("Stripe webhook %s failed: %s", event_id, e)
        await record_stripe_event(
            event_id or f"error_{int(time.time() * 1000)}", event_type or "processing_error", False, str(e)
        )
        return WebhookResult(500, {"error": "Webhook processing failed"})

    return WebhookResult(200, {"received": True})
