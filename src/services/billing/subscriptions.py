"""
Subscription status, Stripe Checkout and Customer Portal.

The ``subscriptions`` table is the source of truth. When a signed-in user
has no row there, Stripe is queried directly by email; an active
subscription found that way is written back so the next lookup is local.
"""

import asyncio
from datetime import datetime, timezone

import stripe

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.supabase_client import get_supabase_client
from src.utils.retry import with_retry

logger = setup_logger(__name__)

ACTIVE_STATUSES = ("active", "trialing")


class StripeNotConfiguredError(RuntimeError):
    pass


class NoCustomerError(LookupError):
    pass


def _stripe() -> None:
    if not config.STRIPE_SECRET_KEY:
        raise StripeNotConfiguredError("Stripe not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY


def _parse_ts(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def epoch_to_iso(epoch) -> str | None:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat() if epoch else None


def subscription_period(sub) -> tuple[int | None, int | None]:
    """(current_period_start, current_period_end) epochs; newer API versions keep them on the first item."""
    start = getattr(sub, "current_period_start", None)
    end = getattr(sub, "current_period_end", None)
    if start is None or end is None:
        # ``items`` collides with dict.items on StripeObject; index instead.
        try:
            items = sub["items"].data or []
        except (KeyError, TypeError, AttributeError):
            items = []
        if items:
            start = start or getattr(items[0], "current_period_start", None)
            end = end or getattr(items[0], "current_period_end", None)
    return start, end


def is_subscription_active(row: dict | None, now: datetime | None = None) -> bool:
    """
    Whether a ``subscriptions`` row makes the user a subscriber.

    The only subscriber rule: subscription status, ask limits, session
    status and the credits endpoints all call it. active and trialing count
    until a recorded period end passes; past_due counts only while the paid
    period has not ended.
    """
    if not row:
        return False
    status = row.get("status")
    if status not in ACTIVE_STATUSES and status != "past_due":
        return False
    period_end = _parse_ts(row.get("current_period_end"))
    if period_end is None:
        return status in ACTIVE_STATUSES
    return period_end > (now or datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Stripe calls (blocking SDK, run in a worker thread)
# ---------------------------------------------------------------------------
@with_retry(retries=2)
def _find_customer_id(email: str) -> str | None:
    customers = stripe.Customer.list(email=email, limit=1)
    return customers.data[0].id if customers.data else None


@with_retry(retries=2)
def _list_subscriptions(customer_id: str) -> list:
    return list(stripe.Subscription.list(customer=customer_id, status="all", limit=10).data)


def _create_checkout(user_id: str, email: str | None):
    return stripe.checkout.Session.create(
        payment_method_types=["card"],
        mode="subscription",
        line_items=[{"price": config.STRIPE_PRICE_ID, "quantity": 1}],
        subscription_data={
            "trial_period_days": config.STRIPE_TRIAL_DAYS,
            "metadata": {"user_id": user_id},
        },
        customer_email=email,
        metadata={"user_id": user_id},
        success_url=f"{config.APP_URL}/?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{config.APP_URL}/",
        allow_promotion_codes=True,
    )


def _create_portal(customer_id: str):
    return stripe.billing_portal.Session.create(customer=customer_id, return_url=f"{config.APP_URL}/usage-billing")


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------
async def get_subscription_row(user_id: str) -> dict | None:
    client = await get_supabase_client()
    result = await client.table("subscriptions").select("*").eq("user_id", user_id).limit(1).execute()
    return result.data[0] if result.data else None


async def upsert_subscription(user_id: str, values: dict) -> None:
    client = await get_supabase_client()
    now = datetime.now(timezone.utc).isoformat()
    await (
        client.table("subscriptions")
        .upsert({"user_id": user_id, **values, "updated_at": now}, on_conflict="user_id")
        .execute()
    )


async def find_stripe_subscription(email: str) -> tuple[str, object] | None:
    """(customer_id, subscription) for a live Stripe subscription that is not cancelling, or None."""
    _stripe()
    customer_id = await asyncio.to_thread(_find_customer_id, email)
    if not customer_id:
        return None
    for sub in await asyncio.to_thread(_list_subscriptions, customer_id):
        if getattr(sub, "status", None) in ACTIVE_STATUSES and not getattr(sub, "cancel_at_period_end", False):
            return customer_id, sub
    return None


def _status_payload(user_id: str, row: dict | None) -> dict:
    active = is_subscription_active(row)
    return {
        "hasActiveSubscription": active,
        "status": row.get("status") if row else "none",
        "subscription": (
            {
                "status": row.get("status"),
                "currentPeriodEnd": row.get("current_period_end"),
                "trialEnd": row.get("trial_end"),
                "stripeCustomerId": row.get("stripe_customer_id"),
                "stripeSubscriptionId": row.get("stripe_subscription_id"),
                "cancelledAt": row.get("cancelled_at"),
            }
            if row
            else None
        ),
        "isSubscriber": active,
        "unlimited": active,
        "userId": user_id,
    }


async def get_subscription_status(user_id: str, email: str | None = None) -> dict:
    row = await get_subscription_row(user_id)
    if row:
        return _status_payload(user_id, row)

    if email and config.STRIPE_SECRET_KEY:
        try:
            found = await find_stripe_subscription(email)
        except stripe.StripeError as e:
            logger.error("Stripe lookup for %s failed: %s", user_id, e)
            found = None
        if found:
            customer_id, sub = found
            _, period_end = subscription_period(sub)
            values = {
                "stripe_customer_id": customer_id,
                "stripe_subscription_id": sub.id,
                "status": sub.status,
                "current_period_end": epoch_to_iso(period_end),
            }
            await upsert_subscription(user_id, values)
            logger.info("Backfilled subscription %s for user %s from Stripe", sub.id, user_id)
            payload = _status_payload(user_id, values)
            payload["subscription"]["source"] = "stripe-direct"
            return payload

    return _status_payload(user_id, None)


# ---------------------------------------------------------------------------
# Checkout / portal
# ---------------------------------------------------------------------------
async def create_checkout_session(user_id: str, email: str | None) -> dict:
    _stripe()
    session = await asyncio.to_thread(_create_checkout, user_id, email)
    logger.info("Created checkout session %s for user %s", session.id, user_id)
    return {"id": session.id, "url": session.url}


async def create_portal_session(user_id: str, email: str | None) -> dict:
    """Raises NoCustomerError when neither the database nor Stripe knows a customer for this user."""
    _stripe()
    row = await get_subscription_row(user_id)
    customer_id = (row or {}).get("stripe_customer_id")
    if not customer_id and email:
        try:
            customer_id = await asyncio.to_thread(_find_customer_id, email)
        except stripe.StripeError as e:
            logger.error("Stripe customer lookup for %s failed: %s", user_id, e)
    if not customer_id:
        raise NoCustomerError("No subscription found")

    session = await asyncio.to_thread(_create_portal, customer_id)
    return {"url": session.url}
