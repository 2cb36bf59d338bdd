"""
Unified RIA search.

Decomposes the question, merges LLM-extracted filters with explicit ones,
then either runs a plain relational query (superlative + location, or when
forced) or a semantic search through the
``hybrid_search_rias_with_string_embedding`` procedure. A failing semantic
search degrades to the relational query. Results are enriched with
executives and private funds.
"""

import json
import re
import time

from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.ai.resilience import get_ai_service
from src.services.protocols import AIService
from src.services.search.planner import QueryPlan, decompose_query
from src.services.supabase_client import DATABASE_ERRORS, get_supabase_client
from src.utils.us_states import US_STATES, normalize_state

logger = setup_logger(__name__)

_SUPERLATIVE_RE = re.compile(r"\b(largest|biggest|top\s+\d+|leading|major)\b", re.IGNORECASE)

# Filter keys reported back in the response metadata.
_FILTER_KEYS = ("state", "city", "min_aum", "fund_type", "has_vc_activity")


class EmbeddingUnavailableError(RuntimeError):
    """Raised when no usable 768-dimension embedding could be produced."""


def parse_filters_from_plan(plan: QueryPlan) -> dict:
    """Turn the plan's location / min_aum into flat state, city, min_aum filters."""
    filters: dict = {}
    sf = plan.structured_filters

    if sf.location:
        parts = [p.strip() for p in sf.location.split(",") if p.strip()]
        if len(parts) == 2:
            filters["city"] = parts[0]
            filters["state"] = normalize_state(parts[1])
        elif len(parts) == 1:
            if len(parts[0]) == 2 or parts[0].lower() in US_STATES:
                filters["state"] = normalize_state(parts[0])
            else:
                filters["city"] = parts[0]

    if sf.min_aum:
        filters["min_aum"] = sf.min_aum

    return filters


def merge_filters(decomposed: dict, explicit: dict | None) -> dict:
    """Explicit (request) filters win over LLM-extracted ones; None values never override."""
    merged = dict(decomposed)
    for key, value in (explicit or {}).items():
        if value is not None and value != "":
            merged[key] = value
    if merged.get("state"):
        merged["state"] = normalize_state(merged["state"])
    return merged


def should_use_structured(query: str, filters: dict, force_structured: bool = False) -> bool:
    has_location = bool(filters.get("state") or filters.get("city"))
    return force_structured or (bool(_SUPERLATIVE_RE.search(query)) and has_location)


def average_confidence(results: list[dict]) -> float:
    if not results:
        return 0
    scores = [r["similarity_score"] for r in results if r.get("similarity_score")]
    if not scores:
        return 0.5
    return sum(scores) / len(scores)


class UnifiedSearch:
    """Semantic-first RIA search with a relational fallback."""

    def __init__(self, client: AsyncClient | None = None, ai_service: AIService | None = None):
        self.client = client
        self.ai_service = ai_service

    async def _get_client(self) -> AsyncClient:
        if self.client is None:
            self.client = await get_supabase_client()
        return self.client

    def _get_ai_service(self) -> AIService | None:
        if self.ai_service is None:
            self.ai_service = get_ai_service()
        return self.ai_service

    async def embed(self, text: str) -> list[float]:
        service = self._get_ai_service()
        if service is None:
            raise EmbeddingUnavailableError("No AI provider configured")
        embedding = await service.generate_embedding(text)
        if not embedding or len(embedding) != config.EMBEDDING_DIMENSIONS:
            raise EmbeddingUnavailableError(f"Embedding generation failed: {len(embedding or [])} dimensions")
        # The resilience layer's last resort is a zero vector, useless for similarity.
        if not any(embedding):
            raise EmbeddingUnavailableError("Embedding provider returned a zero vector")
        return embedding

    async def semantic_query(self, plan: QueryPlan, filters: dict, limit: int = 10) -> list[dict]:
        """Embed the semantic query and call the hybrid procedure; post-filter by city."""
        embedding = await self.embed(plan.semantic_query)
        client = await self._get_client()
        response = await client.rpc(
            "hybrid_search_rias_with_string_embedding",
            {
                "query_text": plan.semantic_query,
                "query_embedding_string": json.dumps(embedding),
                "match_threshold": config.MATCH_THRESHOLD,
                "match_count": limit * 2,
                "state_filter": filters.get("state") or None,
                "min_vc_activity": 0,
                "min_aum": filters.get("min_aum") or 0,
            },
        ).execute()

        results = response.data or []
        if filters.get("city"):
            city = filters["city"].lower()
            results = [r for r in results if city in (r.get("city") or "").lower()]
        return results[:limit]

    async def structured_query(self, filters: dict, limit: int = 10) -> list[dict]:
        """Plain ria_profiles lookup ordered by AUM."""
        client = await self._get_client()
        query = client.table("ria_profiles").select("*").order("aum", desc=True).limit(limit)
        if filters.get("state"):
            query = query.eq("state", filters["state"].upper())
        if filters.get("city"):
            query = query.ilike("city", f"%{filters['city']}%")
        if filters.get("min_aum"):
            query = query.gte("aum", filters["min_aum"])
        response = await query.execute()
        return response.data or []

    async def enrich(self, results: list[dict]) -> list[dict]:
        """Attach executives and private_funds rows to each result by crd_number."""
        crds = [r["crd_number"] for r in results if r.get("crd_number")]
        if not crds:
            return [{**r, "executives": [], "private_funds": []} for r in results]

        client = await self._get_client()
        try:
            executives = (await client.table("executives").select("*").in_("crd_number", crds).execute()).data or []
            funds = (await client.table("private_funds").select("*").in_("crd_number", crds).execute()).data or []
        except DATABASE_ERRORS as e:
            logger.error("Enrichment query failed: %s", e)
            executives, funds = [], []

        return [
            {
                **r,
                "executives": [e for e in executives if e.get("crd_number") == r.get("crd_number")],
                "private_funds": [f for f in funds if f.get("crd_number") == r.get("crd_number")],
            }
            for r in results
        ]

    async def search(
        self,
        query: str,
        limit: int = 10,
        structured_filters: dict | None = None,
        force_structured: bool = False,
    ) -> dict:
        start = time.time()
        plan = await decompose_query(query, self._get_ai_service())
        filters = merge_filters(parse_filters_from_plan(plan), structured_filters)

        if should_use_structured(query, filters, force_structured):
            strategy = "structured"
            results = await self.structured_query(filters, limit)
        else:
            strategy = "semantic"
            try:
                results = await self.semantic_query(plan, filters, limit)
            except (EmbeddingUnavailableError, *DATABASE_ERRORS) as e:
                logger.warning("Semantic search failed, falling back to structured query: %s", e)
                strategy = "structured_fallback"
                results = await self.structured_query(filters, limit)

        if results:
            results = await self.enrich(results)

        logger.info(
            "Unified search done in %.2fs: strategy=%s results=%s", time.time() - start, strategy, len(results)
        )
        return {
            "results": results,
            "metadata": {
                "searchStrategy": strategy,
                "query": plan.semantic_query,
                "filters": {k: v for k, v in filters.items() if k in _FILTER_KEYS and v is not None},
                "resultCount": len(results),
                "confidence": average_confidence(results),
            },
        }


async def unified_semantic_search(
    query: str,
    limit: int = 10,
    structured_filters: dict | None = None,
    force_structured: bool = False,
) -> dict:
    return await UnifiedSearch().search(query, limit, structured_filters, force_structured)
