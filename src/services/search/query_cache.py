"""
Fast query path: answer common questions from the query cache, the
pre-aggregated materialized views, or a direct adviser query before the
caller falls back to full AI search.
"""

import hashlib
import re
import time
from datetime import datetime, timedelta, timezone

from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.supabase_client import get_supabase_client
from src.utils.us_states import extract_state_from_query, has_superlative

logger = setup_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_TOP_N_RE = re.compile(r"(top|largest|biggest)\s*(\d+)", re.IGNORECASE)
_LAST_N_RE = re.compile(r"(last|past)\s*(\d+)\s*(months?|years?)", re.IGNORECASE)

ADVISER_SELECT = "legal_name, main_office_location, filings(total_aum, filing_date, private_fund_count)"
MV_LIMIT = 10


def normalize_query(query: str) -> str:
    normalized = _WHITESPACE_RE.sub(" ", query.lower())
    normalized = _TOP_N_RE.sub("top N", normalized)
    normalized = _LAST_N_RE.sub("last N timeunit", normalized)
    return normalized.strip()


def cache_key(normalized_query: str) -> str:
    return hashlib.sha256(normalized_query.encode("utf-8")).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _wants_top(query_lower: str) -> bool:
    return "top" in query_lower or "largest" in query_lower or "biggest" in query_lower


async def check_cache(client: AsyncClient, key: str):
    """Return the cached result_data for ``key`` and bump its hit count, or None."""
    response = await (
        client.table("query_cache")
        .select("result_data, hit_count")
        .eq("query_hash", key)
        .gt("expires_at", _now())
        .limit(1)
        .execute()
    )
    if not response.data:
        return None

    row = response.data[0]
    await (
        client.table("query_cache")
        .update({"hit_count": (row.get("hit_count") or 0) + 1, "last_accessed": _now()})
        .eq("query_hash", key)
        .execute()
    )
    return row.get("result_data")


async def cache_result(client: AsyncClient, key: str, query: str, query_type: str, data, ttl_seconds: int) -> None:
    expires_at = (datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)).isoformat()
    await (
        client.table("query_cache")
        .upsert(
            {
                "query_hash": key,
                "query_text": query,
                "query_type": query_type,
                "result_data": data,
                "expires_at": expires_at,
                "updated_at": _now(),
            },
            on_conflict="query_hash",
        )
        .execute()
    )


async def track_popular_query(client: AsyncClient, query: str, normalized: str) -> None:
    existing = await (
        client.table("popular_queries").select("query_count").eq("normalized_query", normalized).limit(1).execute()
    )
    count = (existing.data[0].get("query_count") or 0) + 1 if existing.data else 1
    await (
        client.table("popular_queries")
        .upsert(
            {"query_text": query, "normalized_query": normalized, "query_count": count, "last_asked": _now()},
            on_conflict="normalized_query",
        )
        .execute()
    )


async def try_materialized_views(client: AsyncClient, query_text: str, normalized: str) -> list[dict] | None:
    """Match the query to a pre-aggregated view. None when no pattern applies."""
    if _wants_top(normalized):
        query = client.table("mv_top_rias_by_aum").select("*")
        state = extract_state_from_query(query_text)
        if state:
            query = query.eq("state", state)
        return (await query.limit(MV_LIMIT).execute()).data

    if "real estate" in normalized:
        return (await client.table("mv_commercial_re_activity").select("*").limit(MV_LIMIT).execute()).data

    if "recent" in normalized or "active" in normalized or "last" in normalized:
        return (await client.table("mv_recent_filing_activity").select("*").limit(MV_LIMIT).execute()).data

    return None


async def execute_direct_query(client: AsyncClient, query_text: str, normalized: str) -> list[dict] | None:
    """Top advisers by latest filing AUM, optionally within a state."""
    state = extract_state_from_query(query_text)
    if not state and not has_superlative(normalized):
        return None

    query = client.table("advisers").select(ADVISER_SELECT)
    if state:
        query = query.eq("main_office_location->>state", state)
    else:
        query = query.not_.is_("filings.total_aum", "null")
    response = await query.order("total_aum", desc=True, foreign_table="filings").limit(MV_LIMIT).execute()

    return [{**row, "latest_filing": (row.get("filings") or [None])[0]} for row in response.data or []]


async def fast_query(query: str, query_type: str = "general", client: AsyncClient | None = None) -> dict:
    """Cache → materialized view → direct query. ``fallbackToAI`` tells the caller to run full search."""
    start = time.time()
    client = client or await get_supabase_client()
    normalized = normalize_query(query)
    key = cache_key(normalized)

    def _elapsed() -> int:
        return int((time.time() - start) * 1000)

    cached = await check_cache(client, key)
    if cached:
        logger.info("Fast query cache hit: %s", normalized)
        payload = cached if isinstance(cached, dict) else {"data": cached}
        return {**payload, "cached": True, "executionTime": _elapsed(), "source": "cache"}

    mv_result = await try_materialized_views(client, query, normalized)
    if mv_result:
        await cache_result(client, key, query, query_type, mv_result, config.CACHE_TTL_MATERIALIZED)
        return {"data": mv_result, "cached": False, "executionTime": _elapsed(), "source": "materialized_view"}

    db_result = await execute_direct_query(client, query, normalized)
    if db_result:
        await cache_result(client, key, query, query_type, db_result, config.CACHE_TTL_DATABASE)
        await track_popular_query(client, query, normalized)
        return {"data": db_result, "cached": False, "executionTime": _elapsed(), "source": "database"}

    return {"data": None, "cached": False, "executionTime": _elapsed(), "source": "no_results", "fallbackToAI": True}
