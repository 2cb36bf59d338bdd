"""
Search endpoints: natural-language ask (JSON and SSE), hybrid comprehensive
search, browse, fast query and profile lookups.
"""

import json
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from src.api.auth import AuthUser, get_optional_user
from src.api.errors import bad_request, internal_error, not_found, payment_required
from src.api.schemas import AskRequest, FastQueryRequest, HybridSearchRequest
from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.access.limits import (
    ANON_COOKIE,
    DEMO_COOKIE,
    anon_limit_reached,
    check_query_limit,
    demo_status,
    limit_message,
    log_query_usage,
    new_demo_session,
    parse_anon_count,
    parse_demo_session,
    set_anon_cookie,
    set_demo_cookie,
)
from src.services.ai.providers import get_ai_provider
from src.services.billing.subscriptions import get_subscription_row, is_subscription_active
from src.services.search.browse import browse_rias
from src.services.search.context_builder import build_answer_context
from src.services.search.generator import AnswerGenerator
from src.services.search.hybrid_ranking import HybridComprehensiveSearch
from src.services.search.profiles import get_profile_by_cik, get_profile_by_crd
from src.services.search.query_cache import fast_query
from src.services.search.unified import unified_semantic_search
from src.services.supabase_client import DATABASE_ERRORS

logger = setup_logger(__name__)

router = APIRouter(prefix="/api", tags=["search"])


class AskAccess:
    """Outcome of the usage check for one ask request."""

    def __init__(self, user: AuthUser | None, remaining: int, is_subscriber: bool, anon_count: int = 0):
        self.user = user
        self.remaining = remaining
        self.is_subscriber = is_subscriber
        self.anon_count = anon_count

    async def record_usage(self) -> None:
        if self.user:
            await log_query_usage(self.user.id)

    def apply_cookie(self, response) -> None:
        if not self.user:
            set_anon_cookie(response, self.anon_count + 1)

    def metadata(self) -> dict:
        if self.is_subscriber:
            remaining = -1
        elif self.user:
            remaining = max(0, self.remaining - 1)
        else:
            remaining = max(0, config.ANON_QUERY_LIMIT - self.anon_count - 1)
        return {"remaining": remaining, "isSubscriber": self.is_subscriber}


async def check_ask_access(request: Request, user: AuthUser | None) -> AskAccess:
    """Raise 402 when the caller has no queries left."""
    if user:
        check = await check_query_limit(user.id)
        if not check.allowed:
            raise payment_required(limit_message(check), check.remaining, check.is_subscriber)
        return AskAccess(user, check.remaining, check.is_subscriber)

    anon_count = parse_anon_count(request.cookies.get(ANON_COOKIE))
    if anon_limit_reached(anon_count):
        raise payment_required("Free query limit reached. Create an account for more searches.", 0, False)
    return AskAccess(None, config.ANON_QUERY_LIMIT - anon_count, False, anon_count)


async def _search(query: str, limit: int, filters: dict | None) -> dict:
    try:
        return await unified_semantic_search(query, limit, filters)
    except DATABASE_ERRORS as e:
        logger.error("Search failed for %r: %s", query, e)
        raise internal_error("Failed to process query", str(e)) from e


# ---------------------------------------------------------------------------
# Ask
# ---------------------------------------------------------------------------
@router.post("/ask")
async def ask(body: AskRequest, request: Request, user: AuthUser | None = Depends(get_optional_user)):
    access = await check_ask_access(request, user)
    filters = body.filters.to_search_filters() if body.filters else None
    search = await _search(body.query, body.limit, filters)

    context = build_answer_context(search["results"], body.query)
    answer = await AnswerGenerator().generate(body.query, context)
    await access.record_usage()

    response = JSONResponse(
        {
            "answer": answer,
            "sources": search["results"],
            "metadata": {**search["metadata"], **access.metadata()},
            "aiProvider": body.aiProvider or get_ai_provider(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
    access.apply_cookie(response)
    return response


def _sse(payload) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.get("/ask-stream")
async def ask_stream(
    request: Request,
    query: str = Query(min_length=1, max_length=config.MAX_QUERY_LENGTH),
    user: AuthUser | None = Depends(get_optional_user),
):
    query = query.strip()
    if not query:
        raise bad_request("Query cannot be empty")
    access = await check_ask_access(request, user)
    search = await _search(query, 10, None)
    context = build_answer_context(search["results"], query)
    await access.record_usage()

    async def events() -> AsyncIterator[str]:
        async for token in AnswerGenerator().stream(query, context):
            yield _sse({"token": token})
        yield "data: [DONE]\n\n"

    response = StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
    )
    access.apply_cookie(response)
    return response


# ---------------------------------------------------------------------------
# Hybrid comprehensive search (demo-session metered)
# ---------------------------------------------------------------------------
async def _is_subscriber(user: AuthUser | None) -> bool:
    if not user:
        return False
    try:
        return is_subscription_active(await get_subscription_row(user.id))
    except DATABASE_ERRORS as e:
        logger.error("Subscription check for %s failed: %s", user.id, e)
        return False


@router.post("/ask/search")
async def hybrid_search(
    body: HybridSearchRequest, request: Request, user: AuthUser | None = Depends(get_optional_user)
):
    is_subscriber = await _is_subscriber(user)
    session = parse_demo_session(request.cookies.get(DEMO_COOKIE)) or new_demo_session()
    status = demo_status(session, is_subscriber)
    if not status["allowed"]:
        raise payment_required("Demo limit reached. Sign up to continue searching.", 0, False)

    try:
        result = await HybridComprehensiveSearch().search(
            body.query,
            body.filters.model_dump(exclude_none=True),
            body.limit,
            body.semanticWeight,
            body.databaseWeight,
        )
    except DATABASE_ERRORS as e:
        logger.error("Hybrid search failed: %s", e)
        raise internal_error("Database query failed", str(e)) from e

    if is_subscriber:
        result["demo"] = {"searchesUsed": 0, "searchesRemaining": -1, "isSubscriber": True}
        return JSONResponse(result)

    session["searchesUsed"] += 1
    result["demo"] = {
        "searchesUsed": session["searchesUsed"],
        "searchesRemaining": max(0, config.DEMO_SEARCHES_ALLOWED - session["searchesUsed"]),
        "isSubscriber": False,
    }
    response = JSONResponse(result)
    set_demo_cookie(response, session)
    return response


@router.get("/ask/browse")
async def browse(
    state: str | None = None,
    city: str | None = None,
    fundType: str | None = None,
    hasVcActivity: bool = False,
    minAum: int | None = Query(default=None, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    sortBy: str = "aum",
    sortOrder: str = Query(default="desc", pattern="^(asc|desc)$"),
):
    try:
        return await browse_rias(state, city, fundType, hasVcActivity, minAum, limit, offset, sortBy, sortOrder)
    except DATABASE_ERRORS as e:
        logger.error("Browse failed: %s", e)
        raise internal_error("Database query failed", str(e)) from e


@router.get("/ask/profile/{crd}")
async def ria_profile_by_crd(crd: str):
    if not crd.isdigit():
        raise bad_request("Invalid CRD number")
    try:
        profile = await get_profile_by_crd(crd)
    except DATABASE_ERRORS as e:
        logger.error("Profile lookup for CRD %s failed: %s", crd, e)
        raise internal_error("Failed to load profile", str(e)) from e
    if profile is None:
        raise not_found("RIA profile not found")
    return profile


# ---------------------------------------------------------------------------
# RIA Hunter fast path and CIK profiles
# ---------------------------------------------------------------------------
@router.post("/ria-hunter/fast-query")
async def ria_fast_query(body: FastQueryRequest):
    try:
        return await fast_query(body.query, body.queryType)
    except DATABASE_ERRORS as e:
        logger.error("Fast query failed: %s", e)
        raise internal_error("Query execution failed", str(e)) from e


@router.get("/ria-hunter/profile/{cik}")
async def ria_profile_by_cik(cik: str):
    # Literal user-data paths (/profile/tags and the rest) are routed before this one.
    try:
        cik_number = int(cik)
    except ValueError:
        raise bad_request("Invalid CIK provided") from None
    try:
        profile = await get_profile_by_cik(cik_number)
    except ValidationError as e:
        logger.error("Profile for CIK %s failed validation: %s", cik, e)
        raise internal_error("Invalid profile data structure", str(e)) from e
    except DATABASE_ERRORS as e:
        logger.error("Profile lookup for CIK %s failed: %s", cik, e)
        raise internal_error("Failed to load profile", str(e)) from e
    if profile is None:
        raise not_found("RIA not found")
    return profile.model_dump()
