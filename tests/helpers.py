"""
Shared test helpers. Used across unit tests to avoid duplication.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

_BUILDER_METHODS = (
    "select",
    "insert",
    "update",
    "upsert",
    "delete",
    "eq",
    "neq",
    "gt",
    "gte",
    "lt",
    "lte",
    "ilike",
    "in_",
    "or_",
    "is_",
    "order",
    "limit",
    "range",
)


def _response(item):
    if isinstance(item, (SimpleNamespace, BaseException)):
        return item
    return SimpleNamespace(data=item, count=None)


def make_query(data=None, count=None, responses: list | None = None) -> MagicMock:
    """
    Chainable stand-in for a postgrest request builder.

    Every builder method returns the same mock, so calls can be asserted on
    it afterwards. ``execute`` resolves to ``data``/``count``, or to each of
    ``responses`` in turn (an exception in the list is raised).
    """
    query = MagicMock(name="query")
    for method in _BUILDER_METHODS:
        getattr(query, method).return_value = query
    query.not_ = query
    if responses is not None:
        query.execute = AsyncMock(side_effect=[_response(r) for r in responses])
    else:
        query.execute = AsyncMock(return_value=SimpleNamespace(data=data, count=count))
    return query


def make_response(data=None, count=None) -> SimpleNamespace:
    return SimpleNamespace(data=data, count=count)


def make_supabase_client(tables: dict | None = None, rpc_data=None) -> MagicMock:
    """Supabase client whose ``table(name)`` returns ``tables[name]`` (an empty query when unset)."""
    tables = {} if tables is None else tables
    client = MagicMock(name="supabase")
    client.table.side_effect = lambda name: tables.setdefault(name, make_query([]))
    client.rpc.return_value = rpc_data if isinstance(rpc_data, MagicMock) else make_query(rpc_data or [])
    return client


def make_ria_row(**overrides: object) -> dict:
    """A ria_profiles row with related data and sensible defaults."""
    defaults: dict[str, object] = {
        "crd_number": 1001,
        "legal_name": "Gateway Capital Advisors",
        "city": "ST. LOUIS",
        "state": "MO",
        "aum": 500_000_000,
        "private_fund_count": 2,
        "private_fund_aum": 120_000_000,
        "phone": "314-555-0100",
        "website": "https://gateway.example.com",
        "narratives": [{"narrative": "Wealth management for families."}],
        "control_persons": [{"person_name": "Jane Doe", "title": "CEO"}],
        "ria_private_funds": [
            {"fund_name": "Gateway Ventures I", "fund_type": "Venture Capital Fund", "gross_asset_value": 50_000_000}
        ],
    }
    defaults.update(overrides)
    return defaults


class FakeAIService:
    """In-memory AIService; set ``fail`` to make every call raise."""

    def __init__(self, text: str = "Answer text", embedding: list[float] | None = None, fail: bool = False):
        self.text = text
        self.embedding = embedding if embedding is not None else [0.1] * 768
        self.fail = fail
        self.prompts: list[str] = []

    async def generate_embedding(self, text: str) -> list[float]:
        if self.fail:
            raise RuntimeError("embedding failed")
        return self.embedding

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("generation failed")
        return self.text
