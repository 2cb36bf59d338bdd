# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Credits ledger.

Every balance change is an append-only row in ``credits_ledger`` keyed by a
unique idempotency key; replaying an operation with the same key is a no-op
that returns the current balance. ``credits_account.balance_cache`` holds
the ledger sum and is recomputed after each write.

Stripe webhook receipts are tracked in ``stripe_events`` so retries are
processed once.
"""

import hashlib
import secrets
import uuid
from datetime import datetime, timezone
from enum import Enum

from src.config.logging_config import setup_logger
from src.services.billing.subscriptions import get_subscription_row, is_subscription_active
from src.services.supabase_client import get_supabase_client

logger = setup_logger(__name__)


class CreditsSource(str, Enum):
    USAGE = "usage"
    SUBSCRIPTION = "subscription"
    COUPON = "coupon"
    ADMIN_ADJUST = "admin_adjust"
    REFUND = "refund"
    MIGRATION = "migration"


class InsufficientCreditsError(ValueError):
    def __init__(self, current: int, requested: int):
        super().__init__(f"Insufficient credits: current={current}, requested={requested}")
        self.current = current
        self.requested = requested


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_stable_anon_id(identifier: str) -> str:
    """Deterministic ledger user id for an anonymous visitor's cookie value."""
    return hashlib.sha256(f"ria-hunter-anon-{identifier}".encode()).hexdigest()


def generate_idempotency_key(user_id: str, operation: str, ref_id: str) -> str:
    nonce = secrets.token_hex(8)
    return hashlib.sha256(f"{user_id}-{operation}-{ref_id}-{nonce}".encode()).hexdigest()


async def _entry_exists(client, idempotency_key: str) -> bool:
    result = await (
        client.table("credits_ledger").select("id").eq("idempotency_key", idempotency_key).limit(1).execute()
    )
    return bool(result.data)


async def recalculate_balance(user_id: str) -> int:
    """Sum the user's ledger deltas and upsert the cached balance."""
    client = await get_supabase_client()
    result = await client.table("credits_ledger").select("delta").eq("user_id", user_id).execute()
    balance = sum(int(row.get("delta") or 0) for row in result.data or [])
    await (
        client.table("credits_account")
        .upsert({"user_id": user_id, "balance_cache": balance, "updated_at": _now()}, on_conflict="user_id")
        .execute()
    )
    return balance


async def get_balance(user_id: str) -> int:
    client = await get_supabase_client()
    result = await client.table("credits_account").select("balance_cache").eq("user_id", user_id).limit(1).execute()
    if result.data:
        return int(result.data[0].get("balance_cache") or 0)
    return await recalculate_balance(user_id)


async def _append_entry(
    user_id: str,
    delta: int,
    source: CreditsSource,
    ref_type: str,
    ref_id: str,
    idempotency_key: str,
    metadata: dict | None,
) -> None:
    client = await get_supabase_client()
    await (
        client.table("credits_ledger")
        .insert(
            {
                "id": str(uuid.uuid4()),
                "user_id": user_id,
                "delta": delta,
                "source": CreditsSource(source).value,
                "ref_type": ref_type,
                "ref_id": ref_id,
                "idempotency_key": idempotency_key,
                "metadata": metadata or {},
            }
        )
        .execute()
    )


async def add_credits(
    user_id: str,
    amount: int,
    source: CreditsSource,
    ref_type: str,
    ref_id: str,
    idempotency_key: str | None = None,
    metadata: dict | None = None,
) -> int:
    """Credit ``amount`` to the user. Returns the new balance."""
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    key = idempotency_key or generate_idempotency_key(user_id, f"add-{ref_type}", ref_id)
    client = await get_supabase_client()
    if await _entry_exists(client, key):
        logger.info("Credit operation %s already applied", key)
        return await get_balance(user_id)

    await _append_entry(user_id, amount, source, ref_type, ref_id, key, metadata)
    balance = await recalculate_balance(user_id)
    logger.info("Added %s credits to %s (%s/%s), balance=%s", amount, user_id, ref_type, ref_id, balance)
    return balance


async def deduct_credits(
    user_id: str,
    amount: int,
    source: CreditsSource,
    ref_type: str,
    ref_id: str,
    idempotency_key: str | None = None,
    metadata: dict | None = None,
) -> int:
    """
    Debit ``amount``. Raises InsufficientCreditsError when the balance is too
    low, except for admin adjustments which may drive it negative.
    """
    if amount <= 0:
        raise ValueError("Deduction amount must be positive")

    key = idempotency_key or generate_idempotency_key(user_id, f"deduct-{ref_type}", ref_id)
    client = await get_supabase_client()
    if await _entry_exists(client, key):
        logger.info("Debit operation %s already applied", key)
        return await get_balance(user_id)

    current = await get_balance(user_id)
    if current < amount and CreditsSource(source) is not CreditsSource.ADMIN_ADJUST:
        raise InsufficientCreditsError(current, amount)

    await _append_entry(user_id, -amount, source, ref_type, ref_id, key, metadata)
    balance = await recalculate_balance(user_id)
    logger.info("Deducted %s credits from %s (%s/%s), balance=%s", amount, user_id, ref_type, ref_id, balance)
    return balance


async def get_credits_status(user_id: str) -> dict:
    balance = await get_balance(user_id)
    subscription = await get_subscription_row(user_id)
    return {"balance": balance, "isSubscriber": is_subscription_active(subscription)}


async def get_ledger_entries(user_id: str, limit: int = 20) -> list[dict]:
    client = await get_supabase_client()
    result = await (
        client.table("credits_ledger")
        .select("id, user_id, delta, source, ref_type, ref_id, metadata, created_at")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return [
        {
            "id": row.get("id"),
            "userId": row.get("user_id"),
            "delta": row.get("delta"),
            "source": row.get("source"),
            "refType": row.get("ref_type"),
            "refId": row.get("ref_id"),
            "metadata": row.get("metadata") or {},
            "createdAt": row.get("created_at"),
        }
        for row in result.data or []
    ]


async def initialize_user_credits(user_id: str, initial_credits: int = 5) -> int:
    """One-time starter grant; the fixed key makes repeats harmless."""
    return await add_credits(
        user_id,
        initial_credits,
        CreditsSource.MIGRATION,
        ref_type="user_initialization",
        ref_id=user_id,
        idempotency_key=f"init_{user_id}",
        metadata={"note": "Initial credits for new user"},
    )


# ---------------------------------------------------------------------------
# Stripe event bookkeeping
# ---------------------------------------------------------------------------
async def record_stripe_event(
    event_id: str, event_type: str, processed: bool = False, error: str | None = None
) -> None:
    client = await get_supabase_client()
    await (
        client.table("stripe_events")
        .upsert(
            {
                "event_id": event_id,
                "type": event_type,
                "processed_ok": processed,
                "processed_at": _now() if processed else None,
                "error": error,
            },
            on_conflict="event_id",
        )
        .execute()
    )


async def is_stripe_event_processed(event_id: str) -> bool:
    client = await get_supabase_client()
    try:
        result = await (
            client.table("stripe_events").select("processed_ok").eq("event_id", event_id).limit(1).execute()
        )
    except Exception as e:
        logger.error("Could not check Stripe event %s: %s", event_id, e)
        return False
    return bool(result.data and result.data[0].get("processed_ok"))


async def get_stripe_events(limit: int = 50) -> list[dict]:
    client = await get_supabase_client()
    result = await client.table("stripe_events").select("*").order("received_at", desc=True).limit(limit).execute()
    return result.data or []


async def get_credits_debug_info(user_id: str) -> dict:
    subscription = await get_subscription_row(user_id)
    return {
        "userId": user_id,
        "balance": await get_balance(user_id),
        "isSubscriber": is_subscription_active(subscription),
        "ledgerEntries": await get_ledger_entries(user_id, 20),
        "stripeEvents": await get_stripe_events(50),
    }


async def is_admin(user_id: str) -> bool:
    client = await get_supabase_client()
    result = await (
        client.table("user_roles").select("role").eq("user_id", user_id).eq("role", "admin").limit(1).execute()
    )
    return bool(result.data)
