"""
Configuration settings for RIA Hunter
"""

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# Use find_dotenv() to locate .env regardless of the current working directory.
# Falls back to an explicit path relative to this file (project root) if not found.
_dotenv_path = find_dotenv(usecwd=True) or str(Path(__file__).resolve().parent.parent.parent / ".env")
load_dotenv(_dotenv_path)


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default)).strip().lower() in ("true", "1", "yes")


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# ============================================
# Environment-based Configuration
# ============================================


class Config:
    """
    Centralized configuration loaded from environment variables.
    Edit .env file to change these values.
    """

    ENVIRONMENT: str = (os.getenv("ENVIRONMENT") or "development").strip().lower()

    # AI provider: "openai", "vertex" (or "google"). Empty = pick from available credentials.
    AI_PROVIDER: str = (os.getenv("AI_PROVIDER") or "").strip().lower()
    OPENAI_CHAT_MODEL: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    GOOGLE_PROJECT_ID: str = (os.getenv("GOOGLE_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT") or "").strip()
    VERTEX_AI_LOCATION: str = os.getenv("VERTEX_AI_LOCATION", "us-central1")
    VERTEX_CHAT_MODEL: str = os.getenv("VERTEX_CHAT_MODEL", "gemini-2.0-flash")
    VERTEX_EMBEDDING_MODEL: str = os.getenv("VERTEX_EMBEDDING_MODEL", "text-embedding-005")
    # The stored procedures compare against vector(768) columns.
    EMBEDDING_DIMENSIONS: int = int(os.getenv("EMBEDDING_DIMENSIONS", "768"))

    # AI circuit breaker
    AI_TIMEOUT_SECONDS: float = float(os.getenv("AI_TIMEOUT_SECONDS", "2.5"))
    AI_ERROR_THRESHOLD_PERCENTAGE: float = float(os.getenv("AI_ERROR_THRESHOLD_PERCENTAGE", "25"))
    AI_RESET_TIMEOUT_SECONDS: float = float(os.getenv("AI_RESET_TIMEOUT_SECONDS", "30"))
    AI_VOLUME_THRESHOLD: int = int(os.getenv("AI_VOLUME_THRESHOLD", "10"))
    AI_ROLLING_WINDOW_SECONDS: float = float(os.getenv("AI_ROLLING_WINDOW_SECONDS", "10"))

    # Search
    MATCH_THRESHOLD: float = float(os.getenv("MATCH_THRESHOLD", "0.3"))
    HYBRID_MATCH_THRESHOLD: float = float(os.getenv("HYBRID_MATCH_THRESHOLD", "0.1"))
    SEMANTIC_WEIGHT: float = float(os.getenv("SEMANTIC_WEIGHT", "0.7"))
    DATABASE_WEIGHT: float = float(os.getenv("DATABASE_WEIGHT", "0.3"))
    # Upper bound on rows pulled into memory for hybrid ranking.
    COMPREHENSIVE_FETCH_LIMIT: int = int(os.getenv("COMPREHENSIVE_FETCH_LIMIT", "2000"))
    MAX_CONTEXT_ROWS: int = int(os.getenv("MAX_CONTEXT_ROWS", "25"))
    # Query length limit (chars) - reject oversize queries to avoid abuse and cost
    MAX_QUERY_LENGTH: int = int(os.getenv("MAX_QUERY_LENGTH", "2000"))

    # Fast-query cache TTLs (seconds)
    CACHE_TTL_MATERIALIZED: int = int(os.getenv("CACHE_TTL_MATERIALIZED", "3600"))
    CACHE_TTL_DATABASE: int = int(os.getenv("CACHE_TTL_DATABASE", "1800"))

    # Usage limits
    FREE_BASE_QUERIES: int = int(os.getenv("FREE_BASE_QUERIES", "5"))
    SHARE_BONUS_QUERIES: int = int(os.getenv("SHARE_BONUS_QUERIES", "1"))
    MAX_SHARE_BONUS: int = int(os.getenv("MAX_SHARE_BONUS", "5"))
    ANON_QUERY_LIMIT: int = int(os.getenv("ANON_QUERY_LIMIT", "2"))
    DEMO_SEARCHES_ALLOWED: int = int(os.getenv("DEMO_SEARCHES_ALLOWED", "5"))
    DEMO_SESSION_HOURS: int = int(os.getenv("DEMO_SESSION_HOURS", "24"))
    INITIAL_ANON_CREDITS: int = int(os.getenv("INITIAL_ANON_CREDITS", "5"))

    # Billing
    STRIPE_SECRET_KEY: str = (os.getenv("STRIPE_SECRET_KEY") or "").strip()
    STRIPE_WEBHOOK_SECRET: str = (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()
    STRIPE_PRICE_ID: str = (os.getenv("STRIPE_PRICE_ID") or "").strip()
    STRIPE_TRIAL_DAYS: int = int(os.getenv("STRIPE_TRIAL_DAYS", "7"))
    DEFAULT_SUBSCRIPTION_CREDITS: int = int(os.getenv("DEFAULT_SUBSCRIPTION_CREDITS", "100"))
    APP_URL: str = (os.getenv("APP_URL") or "https://www.ria-hunter.app").rstrip("/")

    # Auth: when set, bearer tokens are verified (HS256). Otherwise only decoded.
    SUPABASE_JWT_SECRET: str = (os.getenv("SUPABASE_JWT_SECRET") or "").strip()
    # Secure cookies only over HTTPS deployments.
    COOKIE_SECURE: bool = _env_bool("COOKIE_SECURE", "true")

    # HTTP
    CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS")
    HOST: str = os.getenv("HOST", "0.0.0.0")  # noqa: S104
    PORT: int = int(os.getenv("PORT", "8000"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Singleton instance
config = Config()


def validate_config_dependencies() -> list[str]:
    """
    Cross-field checks. Returns a list of human-readable problems (empty when valid).
    """
    errors: list[str] = []

    provider = config.AI_PROVIDER
    if provider and provider not in ("openai", "vertex", "google"):
        errors.append(f"AI_PROVIDER={provider!r} is not one of openai, vertex, google")
    if provider == "openai" and not os.getenv("OPENAI_API_KEY", "").strip():
        errors.append("AI_PROVIDER=openai but OPENAI_API_KEY is missing")
    if provider in ("vertex", "google") and not config.GOOGLE_PROJECT_ID:
        errors.append(f"AI_PROVIDER={provider} but GOOGLE_PROJECT_ID is missing")

    if config.STRIPE_SECRET_KEY and not config.STRIPE_WEBHOOK_SECRET:
        errors.append("STRIPE_SECRET_KEY is set but STRIPE_WEBHOOK_SECRET is missing")

    if not 0 < config.MATCH_THRESHOLD <= 1:
        errors.append(f"MATCH_THRESHOLD must be in (0, 1], got {config.MATCH_THRESHOLD}")
    if not 0 < config.HYBRID_MATCH_THRESHOLD <= 1:
        errors.append(f"HYBRID_MATCH_THRESHOLD must be in (0, 1], got {config.HYBRID_MATCH_THRESHOLD}")
    if config.SEMANTIC_WEIGHT < 0 or config.DATABASE_WEIGHT < 0:
        errors.append("SEMANTIC_WEIGHT and DATABASE_WEIGHT must be non-negative")
    if config.EMBEDDING_DIMENSIONS != 768:
        errors.append(
            f"EMBEDDING_DIMENSIONS must be 768 to match the search procedures, got {config.EMBEDDING_DIMENSIONS}"
        )
    if config.AI_TIMEOUT_SECONDS <= 0:
        errors.append(f"AI_TIMEOUT_SECONDS must be positive, got {config.AI_TIMEOUT_SECONDS}")
    if not 0 < config.AI_ERROR_THRESHOLD_PERCENTAGE <= 100:
        errors.append(
            f"AI_ERROR_THRESHOLD_PERCENTAGE must be in (0, 100], got {config.AI_ERROR_THRESHOLD_PERCENTAGE}"
        )

    return errors


def validate_env_for_app() -> None:
    """
    Validate required env vars for the API. Call at startup.
    Raises SystemExit with clear message if any required var is missing.
    """
    required = {
        "SUPABASE_URL": os.getenv("SUPABASE_URL", "").strip(),
        "SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY": (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY") or ""
        ).strip(),
    }
    missing = [k for k, v in required.items() if not v]
    if missing:
        msg = f"Missing required env vars: {', '.join(missing)}. Set them in .env or environment."
        raise SystemExit(msg)

    if not os.getenv("OPENAI_API_KEY", "").strip() and not config.GOOGLE_PROJECT_ID:
        raise SystemExit("No AI provider configured. Set OPENAI_API_KEY or GOOGLE_PROJECT_ID.")

    errors = validate_config_dependencies()
    if errors:
        raise SystemExit("Invalid configuration:\n- " + "\n- ".join(errors))


# ============================================
# Static values
# ============================================

APP_TITLE = "RIA Hunter API"

# Always allowed in addition to CORS_ORIGINS.
DEFAULT_CORS_ORIGINS = [
    "https://www.ria-hunter.app",
    "https://ria-hunter.app",
    "https://ria-hunter-app.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
]
