"""Request bodies for the HTTP API."""

from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from src.config.settings import config

_URL_ADAPTER = TypeAdapter(HttpUrl)


class SearchFilters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: str | None = None
    city: str | None = None
    minAum: float | None = None
    fundType: str | None = None
    hasVcActivity: bool | None = None

    def to_search_filters(self) -> dict:
        """Snake_case keys, as read by the unified search and its planner filters."""
        values = {
            "state": self.state,
            "city": self.city,
            "min_aum": self.minAum,
            "fund_type": self.fundType,
            "has_vc_activity": self.hasVcActivity,
        }
        return {k: v for k, v in values.items() if v is not None}


class AskRequest(BaseModel):
    query: str = Field(min_length=1, max_length=config.MAX_QUERY_LENGTH)
    limit: int = Field(default=10, ge=1, le=100)
    aiProvider: Literal["openai", "vertex"] | None = None
    filters: SearchFilters | None = None

    @field_validator("query")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Query cannot be empty")
        return value


class HybridSearchRequest(BaseModel):
    query: str = Field(default="", max_length=config.MAX_QUERY_LENGTH)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=100, ge=1, le=config.COMPREHENSIVE_FETCH_LIMIT)
    semanticWeight: float = Field(default=config.SEMANTIC_WEIGHT, ge=0)
    databaseWeight: float = Field(default=config.DATABASE_WEIGHT, ge=0)


class FastQueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=config.MAX_QUERY_LENGTH)
    queryType: str = "general"


# ---------------------------------------------------------------------------
# User research data
# ---------------------------------------------------------------------------
class TagCreate(BaseModel):
    ria_id: str | int
    tag_text: str = Field(min_length=1, max_length=50)

    @field_validator("ria_id")
    @classmethod
    def ria_id_as_str(cls, value) -> str:
        return str(value)


class NoteCreate(BaseModel):
    ria_id: str
    note_content: str = Field(min_length=1)


class NoteUpdate(BaseModel):
    note_content: str = Field(min_length=1)


def _check_url(value: str) -> str:
    # Validate but store the URL exactly as given.
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        raise ValueError("Invalid URL format") from None
    return value


class LinkCreate(BaseModel):
    ria_id: str
    link_url: str
    link_description: str | None = Field(default=None, max_length=255)

    @field_validator("link_url")
    @classmethod
    def valid_url(cls, value: str) -> str:
        return _check_url(value)


class LinkUpdate(BaseModel):
    link_url: str | None = None
    link_description: str | None = Field(default=None, max_length=255)

    @field_validator("link_url")
    @classmethod
    def valid_url(cls, value: str | None) -> str | None:
        return _check_url(value) if value is not None else value

    @model_validator(mode="after")
    def has_change(self):
        if not self.link_url and "link_description" not in self.model_fields_set:
            raise ValueError("At least link_url or link_description must be provided for update")
        return self


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------
class DeductRequest(BaseModel):
    amount: int = Field(gt=0)
    refType: str = Field(min_length=1)
    refId: str = Field(min_length=1)
    idempotencyKey: str | None = None
    metadata: dict | None = None


class AdminCreditsRequest(BaseModel):
    action: Literal["add", "deduct"]
    amount: int = Field(gt=0)
    reason: str = Field(min_length=1)
    targetUserId: str | None = None
