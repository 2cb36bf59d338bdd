"""
Circuit-breaker wrapper around an AI provider with a secondary fallback.

Embeddings fall back to the secondary provider, then to a zero vector.
Text generation falls back to the secondary provider, then to a fixed
apology message. Callers never see provider exceptions.
"""

from src.config.logging_config import setup_logger
from src.config.settings import config
from src.services.ai.providers import create_ai_service, get_ai_provider
from src.services.protocols import AIService
from src.utils.circuit_breaker import CircuitBreaker, CircuitState

logger = setup_logger(__name__)

FALLBACK_TEXT = (
    "I apologize, but I am temporarily unable to generate a detailed response. "
    "The search results above contain the information you requested."
)


def _make_breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name,
        timeout=config.AI_TIMEOUT_SECONDS,
        error_threshold_percentage=config.AI_ERROR_THRESHOLD_PERCENTAGE,
        reset_timeout=config.AI_RESET_TIMEOUT_SECONDS,
        volume_threshold=config.AI_VOLUME_THRESHOLD,
        rolling_window=config.AI_ROLLING_WINDOW_SECONDS,
    )


def zero_embedding() -> list[float]:
    return [0.0] * config.EMBEDDING_DIMENSIONS


class ResilientAIService:
    """AIService that routes calls through separate embedding and generation breakers."""

    def __init__(self, primary: AIService, fallback: AIService | None = None):
        self.primary = primary
        self.fallback = fallback
        self.embedding_breaker = _make_breaker("embedding")
        self.generation_breaker = _make_breaker("generation")

    async def generate_embedding(self, text: str) -> list[float]:
        try:
            return await self.embedding_breaker.call(lambda: self.primary.generate_embedding(text))
        except Exception as e:
            logger.error("Embedding generation failed: %s: %s", type(e).__name__, e)

        if self.fallback is not None:
            try:
                logger.info("Attempting fallback service for embedding")
                return await self.fallback.generate_embedding(text)
            except Exception as e:
                logger.error("Fallback embedding failed: %s: %s", type(e).__name__, e)

        logger.warning("Returning zero-vector embedding")
        return zero_embedding()

    async def generate_text(self, prompt: str) -> str:
        try:
            return await self.generation_breaker.call(lambda: self.primary.generate_text(prompt))
        except Exception as e:
            logger.error("Text generation failed: %s: %s", type(e).__name__, e)

        if self.fallback is not None:
            try:
                logger.info("Attempting fallback service for text generation")
                return await self.fallback.generate_text(prompt)
            except Exception as e:
                logger.error("Fallback text generation failed: %s: %s", type(e).__name__, e)

        logger.warning("Returning fallback message for resilience")
        return FALLBACK_TEXT

    def get_circuit_state(self) -> str:
        return f"Embedding: {self.embedding_breaker.state.value}, Generation: {self.generation_breaker.state.value}"

    def get_stats(self) -> dict:
        return {
            "embedding": dict(self.embedding_breaker.stats),
            "generation": dict(self.generation_breaker.stats),
            "state": self.get_circuit_state(),
        }

    def is_healthy(self) -> bool:
        return (
            self.embedding_breaker.state is CircuitState.CLOSED
            and self.generation_breaker.state is CircuitState.CLOSED
        )


def create_resilient_ai_service(
    primary: AIService | None, fallback: AIService | None = None
) -> ResilientAIService | None:
    """Wrap ``primary`` (or ``fallback`` alone when primary is missing). None when neither exists."""
    if primary is None:
        if fallback is not None:
            logger.warning("Primary AI service unavailable, using fallback service directly")
            return ResilientAIService(fallback)
        logger.error("No AI service available (neither primary nor fallback)")
        return None
    return ResilientAIService(primary, fallback)


_service_holder: list = []  # lazy singleton; list avoids global statement


def get_ai_service() -> ResilientAIService | None:
    """Process-wide resilient service: configured provider first, the other one as fallback."""
    if not _service_holder:
        provider = get_ai_provider()
        fallback_provider = "openai" if provider == "vertex" else "vertex"
        service = create_resilient_ai_service(create_ai_service(provider), create_ai_service(fallback_provider))
        _service_holder.append(service)
    return _service_holder[0]
