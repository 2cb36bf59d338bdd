# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Hybrid comprehensive search.

Pulls every matching ria_profiles row (bounded by COMPREHENSIVE_FETCH_LIMIT),
filters by fund type / VC activity in memory, then ranks by a weighted
blend of semantic rank (from ``hybrid_search_rias``) and a database score
built from AUM and private fund count. Without a query, or when the
semantic side fails, rows are ordered by AUM.
"""

import time
import uuid
from datetime import datetime, timezone

from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.ai.resilience import get_ai_service
from src.services.protocols import AIService
from src.services.search.funds import analyze_funds, apply_city_filter, filter_by_funds, has_vc_activity
from src.services.supabase_client import DATABASE_ERRORS, get_supabase_client

logger = setup_logger(__name__)

PROFILE_SELECT = """
    crd_number, legal_name, city, state, aum, private_fund_count, private_fund_aum,
    phone, website, fax, cik,
    narratives!inner(narrative),
    control_persons(person_name, title),
    ria_private_funds(fund_name, fund_type, gross_asset_value)
"""

# Rows without a semantic match keep only this share of their database score.
NO_MATCH_PENALTY = 0.3
MAX_SEMANTIC_MATCHES = 500


def database_score(row: dict, max_aum: float) -> float:
    aum_score = (row.get("aum") or 0) / max_aum if max_aum > 0 else 0
    fund_score = (row.get("private_fund_count") or 0) / 100
    return aum_score * 0.7 + fund_score * 0.3


def rank_rows(
    rows: list[dict],
    semantic_matches: list[dict],
    semantic_weight: float,
    database_weight: float,
) -> list[dict]:
    """
    Attach relevance scores and sort descending by combined score.

    A match at position i of n gets rank score ``1 - i/n``.
    """
    scores: dict = {}
    total = len(semantic_matches)
    for i, match in enumerate(semantic_matches):
        scores[match.get("crd_number")] = {
            "similarity": match.get("similarity") or 0,
            "text_rank": match.get("text_rank") or 0,
            "rank_score": 1 - (i / total),
        }

    max_aum = max((r.get("aum") or 0 for r in rows), default=0)
    ranked = []
    for row in rows:
        semantic = scores.get(row.get("crd_number"))
        db_score = database_score(row, max_aum)
        if semantic is not None:
            combined = semantic["rank_score"] * semantic_weight + db_score * database_weight
        else:
            combined = db_score * NO_MATCH_PENALTY
        ranked.append(
            {
                **row,
                "_scores": {
                    "semantic_similarity": semantic["similarity"] if semantic else 0,
                    "semantic_text_rank": semantic["text_rank"] if semantic else 0,
                    "semantic_rank": semantic["rank_score"] if semantic else 0,
                    "database_score": db_score,
                    "combined_score": combined,
                    "has_semantic_match": semantic is not None,
                },
            }
        )

    ranked.sort(key=lambda r: r["_scores"]["combined_score"], reverse=True)
    return ranked


def sort_by_aum(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: r.get("aum") or 0, reverse=True)


def format_result(row: dict) -> dict:
    funds = row.get("ria_private_funds") or []
    analysis = analyze_funds(funds)
    narratives = row.get("narratives") or []
    scores = row.get("_scores") or {}
    return {
        "crd_number": row.get("crd_number"),
        "legal_name": row.get("legal_name"),
        "city": row.get("city"),
        "state": row.get("state"),
        "aum": row.get("aum") or 0,
        "private_fund_count": row.get("private_fund_count") or 0,
        "private_fund_aum": row.get("private_fund_aum") or analysis["total_fund_aum"],
        "website": row.get("website"),
        "phone": row.get("phone"),
        "narrative": narratives[0].get("narrative") if narratives else None,
        "executives": [
            {"name": p.get("person_name"), "title": p.get("title")} for p in row.get("control_persons") or []
        ],
        "funds": [
            {"name": f.get("fund_name"), "type": f.get("fund_type"), "aum": f.get("gross_asset_value")}
            for f in funds[:5]
        ],
        "fund_types": analysis["fund_types"],
        "vc_fund_count": analysis["vc_fund_count"],
        "pe_fund_count": analysis["pe_fund_count"],
        "has_vc_activity": analysis["vc_fund_count"] > 0 or analysis["pe_fund_count"] > 0,
        "relevance_scores": {
            "semantic_similarity": scores.get("semantic_similarity", 0),
            "semantic_rank": scores.get("semantic_rank", 0),
            "database_score": scores.get("database_score", 0),
            "combined_score": scores.get("combined_score", 0),
            "has_semantic_match": scores.get("has_semantic_match", False),
        },
    }


class HybridComprehensiveSearch:
    """Comprehensive database retrieval ranked by semantic relevance."""

    def __init__(self, client: AsyncClient | None = None, ai_service: AIService | None = None):
        self.client = client
        self.ai_service = ai_service

    async def _get_client(self) -> AsyncClient:
        if self.client is None:
            self.client = await get_supabase_client()
        return self.client

    async def fetch_candidates(self, filters: dict) -> list[dict]:
        client = await self._get_client()
        query = client.table("ria_profiles").select(PROFILE_SELECT)
        if filters.get("state"):
            query = query.eq("state", filters["state"].upper())
        if filters.get("city"):
            query = apply_city_filter(query, filters["city"])
        if filters.get("minAum"):
            query = query.gte("aum", filters["minAum"])
        response = await query.limit(config.COMPREHENSIVE_FETCH_LIMIT).execute()
        return response.data or []

    async def semantic_matches(self, query: str, filters: dict, candidate_count: int) -> list[dict] | None:
        """Ranked crd matches from hybrid_search_rias, or None when embedding or RPC fails."""
        service = self.ai_service or get_ai_service()
        if service is None:
            logger.warning("No AI service for hybrid ranking; using AUM order")
            return None

        embedding = await service.generate_embedding(query)
        if len(embedding) != config.EMBEDDING_DIMENSIONS or not any(embedding):
            logger.warning("Unusable embedding (%s dims); using AUM order", len(embedding))
            return None

        client = await self._get_client()
        try:
            response = await client.rpc(
                "hybrid_search_rias",
                {
                    "query_text": query,
                    "query_embedding": embedding,
                    "match_threshold": config.HYBRID_MATCH_THRESHOLD,
                    "match_count": min(candidate_count, MAX_SEMANTIC_MATCHES),
                    "state_filter": filters.get("state") or None,
                    "min_vc_activity": 0,
                    "min_aum": filters.get("minAum") or 0,
                    "fund_type_filter": filters.get("fundType") or None,
                },
            ).execute()
        except DATABASE_ERRORS as e:
            logger.error("hybrid_search_rias failed: %s", e)
            return None
        return response.data or []

    async def search(
        self,
        query: str = "",
        filters: dict | None = None,
        limit: int = 100,
        semantic_weight: float = 0.7,
        database_weight: float = 0.3,
    ) -> dict:
        start = time.time()
        filters = filters or {}
        all_rows = await self.fetch_candidates(filters)
        filtered = filter_by_funds(all_rows, filters.get("fundType"), filters.get("hasVcActivity"))

        query = (query or "").strip()
        matches = await self.semantic_matches(query, filters, len(filtered)) if query and filtered else None
        if matches is None:
            ranked = sort_by_aum(filtered)
        else:
            ranked = rank_rows(filtered, matches, semantic_weight, database_weight)

        results = [format_result(r) for r in ranked[:limit]]
        summary = {
            "total_database_results": len(all_rows),
            "total_filtered_results": len(filtered),
            "total_with_semantic_match": sum(1 for r in ranked if (r.get("_scores") or {}).get("has_semantic_match")),
            "total_returned": len(results),
            "total_vc_pe_firms": sum(1 for r in ranked if has_vc_activity(r.get("ria_private_funds"))),
            "search_strategy": "hybrid-semantic-database" if query else "database-only",
            "ranking_method": "semantic-database-combined" if query else "aum-based",
            "semantic_weight": semantic_weight,
            "database_weight": database_weight,
        }
        logger.info("Hybrid comprehensive search done in %.2fs: %s results", time.time() - start, len(results))
        return {
            "success": True,
            "query": query,
            "filters": {
                "state": filters.get("state"),
                "city": filters.get("city"),
                "fundType": filters.get("fundType"),
                "hasVcActivity": filters.get("hasVcActivity"),
                "minAum": filters.get("minAum"),
            },
            "summary": summary,
            "results": results,
            "metadata": {
                "requestId": f"hybrid-search-{uuid.uuid4().hex[:12]}",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "searchStrategy": "hybrid-comprehensive",
            },
        }
