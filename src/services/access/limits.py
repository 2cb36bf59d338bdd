"""
Usage limits for the ask endpoints.

Signed-in users: subscribers are unlimited; everyone else gets a monthly
allowance of free queries plus a bonus per share. Anonymous visitors are
counted in the ``rh_qc`` cookie. The ``rh_demo`` cookie meters the demo
search session.
"""

import asyncio
import json
import time
from datetime import datetime, timezone

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.billing.subscriptions import get_subscription_row, is_subscription_active
from src.services.supabase_client import DATABASE_ERRORS, get_supabase_client

logger = setup_logger(__name__)

ANON_COOKIE = "rh_qc"
ANON_COOKIE_MAX_AGE = 30 * 24 * 60 * 60
DEMO_COOKIE = "rh_demo"


class LimitCheck:
    def __init__(self, allowed: bool, remaining: int, is_subscriber: bool):
        self.allowed = allowed
        self.remaining = remaining
        self.is_subscriber = is_subscriber

    def __iter__(self):
        return iter((self.allowed, self.remaining, self.is_subscriber))

    def __repr__(self) -> str:
        return f"LimitCheck(allowed={self.allowed}, remaining={self.remaining}, is_subscriber={self.is_subscriber})"


def _start_of_month(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def free_allowance(share_count: int) -> int:
    return config.FREE_BASE_QUERIES + min(share_count, config.MAX_SHARE_BONUS) * config.SHARE_BONUS_QUERIES


async def check_query_limit(user_id: str) -> LimitCheck:
    """
    Whether ``user_id`` may run another query this month.

    Database errors allow the query (remaining 0) rather than locking
    users out.
    """
    month_start = _start_of_month().isoformat()
    try:
        if is_subscription_active(await get_subscription_row(user_id)):
            return LimitCheck(True, -1, True)

        client = await get_supabase_client()
        queries, shares = await asyncio.gather(
            client.table("user_queries")
            .select("*", count="exact", head=True)
            .eq("user_id", user_id)
            .gte("created_at", month_start)
            .execute(),
            client.table("user_shares")
            .select("*", count="exact", head=True)
            .eq("user_id", user_id)
            .gte("shared_at", month_start)
            .execute(),
        )
    except (*DATABASE_ERRORS, ValueError) as e:
        logger.error("Query limit check for %s failed: %s", user_id, e)
        return LimitCheck(True, 0, False)

    allowed = free_allowance(shares.count or 0)
    used = queries.count or 0
    return LimitCheck(used < allowed, max(0, allowed - used), False)


async def log_query_usage(user_id: str) -> None:
    try:
        client = await get_supabase_client()
        await client.table("user_queries").insert({"user_id": user_id}).execute()
    except DATABASE_ERRORS as e:
        logger.error("Could not log query usage for %s: %s", user_id, e)


def limit_message(check: LimitCheck) -> str:
    if check.is_subscriber:
        return "Subscription expired. Please renew your subscription to continue."
    return "Free query limit reached. Upgrade to continue."


# ---------------------------------------------------------------------------
# Anonymous query cookie
# ---------------------------------------------------------------------------
def parse_anon_count(value: str | None) -> int:
    try:
        return max(0, int(value)) if value else 0
    except ValueError:
        return 0


def anon_limit_reached(count: int) -> bool:
    return count >= config.ANON_QUERY_LIMIT


def set_anon_cookie(response, count: int) -> None:
    response.set_cookie(ANON_COOKIE, str(count), max_age=ANON_COOKIE_MAX_AGE, path="/", samesite="lax")


# ---------------------------------------------------------------------------
# Demo session cookie
# ---------------------------------------------------------------------------
def demo_ttl_seconds() -> int:
    return config.DEMO_SESSION_HOURS * 60 * 60


def parse_demo_session(value: str | None, now_ms: int | None = None) -> dict | None:
    """``{"searchesUsed", "expiresAt"}`` from the cookie, or None when missing, malformed or expired."""
    if not value:
        return None
    try:
        session = json.loads(value)
        used = int(session["searchesUsed"])
        expires_at = int(session["expiresAt"])
    except (ValueError, TypeError, KeyError):
        return None
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    if expires_at < now_ms:
        return None
    return {"searchesUsed": max(0, used), "expiresAt": expires_at}


def new_demo_session(searches_used: int = 0) -> dict:
    return {"searchesUsed": searches_used, "expiresAt": int(time.time() * 1000) + demo_ttl_seconds() * 1000}


def demo_status(session: dict | None, is_subscriber: bool) -> dict:
    if is_subscriber:
        return {"allowed": True, "searchesUsed": 0, "searchesRemaining": -1}
    used = (session or {}).get("searchesUsed", 0)
    return {
        "allowed": used < config.DEMO_SEARCHES_ALLOWED,
        "searchesUsed": used,
        "searchesRemaining": max(0, config.DEMO_SEARCHES_ALLOWED - used),
    }


def set_demo_cookie(response, session: dict) -> None:
    response.set_cookie(
        DEMO_COOKIE,
        json.dumps(session, separators=(",", ":")),
        max_age=demo_ttl_seconds(),
        path="/",
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
    )
