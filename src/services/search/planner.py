"""
Query planner: split a natural-language RIA question into a semantic
query and structured filters using the configured LLM.

Any failure (no provider, bad JSON, missing keys, provider error) falls
back to the unchanged query with no filters.
"""

import json
import re

from pydantic import BaseModel, ValidationError

from src.config.logging_config import setup_logger
from src.services.ai.resilience import get_ai_service
from src.services.protocols import AIService

logger = setup_logger(__name__)


class StructuredFilters(BaseModel):
    location: str | None = None
    city: str | None = None
    state: str | None = None
    min_aum: float | None = None
    max_aum: float | None = None
    services: list[str] | None = None
    fund_type: str | None = None
    has_vc_activity: bool | None = None


class QueryPlan(BaseModel):
    semantic_query: str
    structured_filters: StructuredFilters


FEW_SHOT_EXAMPLES = """
Examples of query decomposition:

Query: "Find the largest RIAs in St. Louis Missouri"
{"semantic_query": "largest RIAs", "structured_filters": {"city": "St. Louis", "state": "Missouri", "location": "St. Louis, Missouri"}}

Query: "Show me venture capital firms in California with over $1 billion AUM"
{"semantic_query": "venture capital firms", "structured_filters": {"state": "California", "min_aum": 1000000000, "fund_type": "venture capital", "has_vc_activity": true}}

Query: "RIAs offering private placements in New York"
{"semantic_query": "RIAs offering private placements", "structured_filters": {"state": "New York", "services": ["private placements"]}}

Query: "What are the top 10 largest RIAs in Missouri"
{"semantic_query": "top 10 largest RIAs", "structured_filters": {"state": "Missouri"}}
"""

PLANNER_PROMPT = """You are a sophisticated financial data analyst. Analyze this query about Registered Investment Advisors (RIAs): "{query}"

Return a JSON object with exactly two keys:

1. "semantic_query": An enhanced version of the query for semantic search. Simply clarify and expand the intent naturally to match well against database narratives. Keep superlatives such as "largest" or "top" in it.

2. "structured_filters": Extract these specific filters if mentioned:
   - "location": Any location mentioned (city, state, or both). Return exactly as semantically understood, in "City, State" format if both are present.
   - "city": The city name if mentioned separately
   - "state": The state name if mentioned separately
   - "min_aum": Minimum assets under management if specified (in dollars)
   - "max_aum": Maximum assets under management if specified (in dollars)
   - "services": Specific services like "private placements", "401k", "financial planning"
   - "fund_type": Type of fund if mentioned ("venture capital", "private equity", "hedge fund")
   - "has_vc_activity": true if looking for VC/PE activity

Important: "St. Louis", "St Louis", and "Saint Louis" all refer to the same city. Recognize state abbreviations (MO = Missouri, NY = New York).
{examples}
Return ONLY the raw JSON object, no markdown or explanations."""

_FENCE_START_RE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"```$")


def basic_decomposition(query: str) -> QueryPlan:
    return QueryPlan(semantic_query=query, structured_filters=StructuredFilters())


def parse_plan(text: str) -> QueryPlan:
    """Parse the LLM's JSON reply. Raises ValueError on anything unusable."""
    stripped = _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", (text or "").strip())).strip()
    parsed = json.loads(stripped)
    if not isinstance(parsed, dict):
        raise ValueError("Invalid JSON structure from AI")
    if not parsed.get("semantic_query") or not isinstance(parsed.get("structured_filters"), dict):
        raise ValueError("Missing required keys in AI response")

    try:
        plan = QueryPlan.model_validate(parsed)
    except ValidationError as e:
        raise ValueError(f"Invalid search plan: {e}") from e

    filters = plan.structured_filters
    if not filters.location and filters.city and filters.state:
        filters.location = f"{filters.city}, {filters.state}"
    return plan


async def decompose_query(query: str, ai_service: AIService | None = None) -> QueryPlan:
    """Ask the LLM for a search plan; fall back to the raw query on any failure."""
    service = ai_service or get_ai_service()
    if service is None:
        logger.warning("No AI service for query decomposition, using basic decomposition")
        return basic_decomposition(query)

    prompt = PLANNER_PROMPT.format(query=query, examples=FEW_SHOT_EXAMPLES)
    try:
        text = await service.generate_text(prompt)
        plan = parse_plan(text)
    except (ValueError, json.JSONDecodeError) as e:
        logger.warning("Query decomposition failed, using basic decomposition: %s", e)
        return basic_decomposition(query)
    except Exception as e:
        logger.error("LLM error during query decomposition: %s: %s", type(e).__name__, e)
        return basic_decomposition(query)

    logger.info(
        "Query decomposed: semantic_query=%r filters=%s",
        plan.semantic_query,
        plan.structured_filters.model_dump(exclude_none=True),
    )
    return plan
