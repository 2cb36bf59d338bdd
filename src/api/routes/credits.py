"""
Credits balance, deduction and debug endpoints.

Signed-in users are keyed by their user id. Anonymous visitors get a
random ``ria-hunter-anon-id`` cookie which is hashed into a stable ledger
id; a brand new anonymous visitor starts with a small grant.
"""

import secrets
import time

from fastapi import APIRouter, Depends, Request, Response

from src.api.auth import AuthUser, get_current_user, get_optional_user
from src.api.errors import bad_request, forbidden, insufficient_credits, internal_error, unauthorized
from src.api.schemas import AdminCreditsRequest, DeductRequest
from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.billing.credits_ledger import (
    CreditsSource,
    InsufficientCreditsError,
    add_credits,
    deduct_credits,
    generate_stable_anon_id,
    get_credits_debug_info,
    get_credits_status,
    initialize_user_credits,
    is_admin,
)
from src.services.supabase_client import DATABASE_ERRORS

logger = setup_logger(__name__)

router = APIRouter(prefix="/api/credits", tags=["credits"])

ANON_ID_COOKIE = "ria-hunter-anon-id"
ANON_ID_MAX_AGE = 30 * 24 * 60 * 60


def _ledger_user_id(request: Request, user: AuthUser | None) -> str | None:
    if user:
        return user.id
    anon_id = request.cookies.get(ANON_ID_COOKIE)
    return generate_stable_anon_id(anon_id) if anon_id else None


@router.get("/balance")
async def balance(request: Request, response: Response, user: AuthUser | None = Depends(get_optional_user)):
    user_id = _ledger_user_id(request, user)
    is_new = False
    if user_id is None:
        anon_id = f"anon-{int(time.time() * 1000)}-{secrets.token_hex(6)}"
        response.set_cookie(
            ANON_ID_COOKIE,
            anon_id,
            max_age=ANON_ID_MAX_AGE,
            path="/",
            samesite="strict",
            secure=config.is_production,
        )
        user_id = generate_stable_anon_id(anon_id)
        is_new = True

    try:
        if is_new:
            await initialize_user_credits(user_id, config.INITIAL_ANON_CREDITS)
        status = await get_credits_status(user_id)
    except DATABASE_ERRORS as e:
        logger.error("Balance lookup for %s failed: %s", user_id, e)
        raise internal_error("Failed to get credit balance", str(e)) from e

    body = {"credits": status["balance"], "isSubscriber": status["isSubscriber"]}
    if user:
        body["userId"] = user_id
    return body


@router.post("/deduct")
async def deduct(body: DeductRequest, request: Request, user: AuthUser | None = Depends(get_optional_user)):
    user_id = _ledger_user_id(request, user)
    if user_id is None:
        raise bad_request("No anonymous ID found")

    try:
        status = await get_credits_status(user_id)
        if status["isSubscriber"]:
            return {"success": True, "deducted": 0, "remaining": status["balance"], "isSubscriber": True}
        if status["balance"] < body.amount:
            raise insufficient_credits(status["balance"], body.amount)

        new_balance = await deduct_credits(
            user_id,
            body.amount,
            CreditsSource.USAGE,
            ref_type=body.refType,
            ref_id=body.refId,
            idempotency_key=body.idempotencyKey or f"{body.refType}_{body.refId}_{int(time.time() * 1000)}",
            metadata=body.metadata,
        )
    except InsufficientCreditsError as e:
        raise insufficient_credits(e.current, e.requested) from e
    except DATABASE_ERRORS as e:
        logger.error("Deduction for %s failed: %s", user_id, e)
        raise internal_error("Failed to deduct credits", str(e)) from e

    return {
        "success": True,
        "deducted": body.amount,
        "credits": new_balance,
        "remaining": new_balance,
        "isSubscriber": False,
    }


@router.get("/debug")
async def debug(request: Request, user: AuthUser | None = Depends(get_optional_user)):
    if config.is_production and not user:
        raise unauthorized()
    user_id = _ledger_user_id(request, user)
    if user_id is None:
        raise bad_request("No anonymous ID found")
    try:
        return await get_credits_debug_info(user_id)
    except DATABASE_ERRORS as e:
        logger.error("Credits debug for %s failed: %s", user_id, e)
        raise internal_error("Failed to get credit debug information", str(e)) from e


@router.post("/debug")
async def admin_adjust(body: AdminCreditsRequest, user: AuthUser = Depends(get_current_user)):
    """Add or remove credits by hand. Admins only in production."""
    target = body.targetUserId or user.id
    key = f"admin_{body.action}_{target}_{int(time.time() * 1000)}"
    operation = add_credits if body.action == "add" else deduct_credits
    try:
        if config.is_production and not await is_admin(user.id):
            raise forbidden("Admin access required")
        new_balance = await operation(
            target,
            body.amount,
            CreditsSource.ADMIN_ADJUST,
            ref_type="admin_adjustment",
            ref_id=key,
            idempotency_key=key,
            metadata={"adminUserId": user.id, "reason": body.reason},
        )
    except DATABASE_ERRORS as e:
        logger.error("Admin credit %s for %s failed: %s", body.action, target, e)
        raise internal_error("Failed to perform credit operation", str(e)) from e

    logger.info("Admin %s: %s %s credits for %s", user.id, body.action, body.amount, target)
    return {
        "success": True,
        "action": body.action,
        "amount": body.amount,
        "userId": target,
        "newBalance": new_balance,
    }
