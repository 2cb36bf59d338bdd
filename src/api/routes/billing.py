"""Subscription status, Stripe Checkout / Customer Portal sessions and the Stripe webhook."""

import stripe
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from src.api.auth import AuthUser, get_current_user
from src.api.errors import internal_error, not_found
from src.config.logging_config import setup_logger
from src.services.billing.stripe_webhook import handle_stripe_webhook
from src.services.billing.subscriptions import (
    NoCustomerError,
    StripeNotConfiguredError,
    create_checkout_session,
    create_portal_session,
    get_subscription_status,
)
from src.services.supabase_client import DATABASE_ERRORS

logger = setup_logger(__name__)

router = APIRouter(prefix="/api", tags=["billing"])


@router.get("/subscription-status")
async def subscription_status(user: AuthUser = Depends(get_current_user)):
    try:
        return await get_subscription_status(user.id, user.email)
    except DATABASE_ERRORS as e:
        logger.error("Subscription status for %s failed: %s", user.id, e)
        raise internal_error("Failed to check subscription status", str(e)) from e


@router.post("/create-checkout-session")
async def checkout_session(user: AuthUser = Depends(get_current_user)):
    try:
        return await create_checkout_session(user.id, user.email)
    except StripeNotConfiguredError as e:
        raise internal_error("Stripe not configured") from e
    except stripe.StripeError as e:
        logger.error("Checkout session for %s failed: %s", user.id, e)
        raise internal_error("Failed to create checkout session", str(e)) from e


@router.post("/create-portal-session")
async def portal_session(user: AuthUser = Depends(get_current_user)):
    try:
        return await create_portal_session(user.id, user.email)
    except NoCustomerError as e:
        raise not_found("No subscription found") from e
    except StripeNotConfiguredError as e:
        raise internal_error("Stripe not configured") from e
    except (stripe.StripeError, *DATABASE_ERRORS) as e:
        logger.error("Portal session for %s failed: %s", user.id, e)
        raise internal_error("Failed to create portal session", str(e)) from e


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, stripe_signature: str | None = Header(default=None)):
    payload = await request.body()
    result = await handle_stripe_webhook(payload, stripe_signature)
    return JSONResponse(result.body, status_code=result.status_code)
