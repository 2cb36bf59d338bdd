"""
Answer generator: turns the context block into a natural-language answer
through the resilient AI service. Never raises; degrades to returning the
context itself.
"""

import time
from collections.abc import AsyncIterator

from src.config.logging_config import setup_logger
from src.services.ai.resilience import get_ai_service
from src.services.protocols import AIService

logger = setup_logger(__name__)

ANSWER_RULES = [
    "You are a factual analyst. Answer the user question using ONLY the provided context.",
    "IMPORTANT RULES:",
    "1. If the user asks for addresses: Note that only city and state are available, not street addresses",
    "2. If the user asks for private fund activity: Show the fund count and total private fund AUM if available",
    "3. If specific details are missing: Provide what information you can and clearly state what is not available",
    "4. Always be transparent about data limitations while providing the best possible answer with available data",
    "Be concise, structured, and include a brief ranked list if relevant.",
]


def build_answer_prompt(query: str, context: str) -> str:
    return "\n".join([*ANSWER_RULES, "", f"Context:\n{context}", "", f"Question: {query}"])


def unavailable_answer(context: str) -> str:
    return f"Based on the search results:\n\n{context}\n\nNote: AI summarization is temporarily unavailable."


def error_answer(context: str) -> str:
    return f"Based on the search results:\n\n{context}\n\nNote: AI summarization encountered an error."


class AnswerGenerator:
    """Generate answers over search context with the configured provider."""

    def __init__(self, ai_service: AIService | None = None):
        self.ai_service = ai_service

    def _service(self) -> AIService | None:
        return self.ai_service or get_ai_service()

    async def generate(self, query: str, context: str) -> str:
        service = self._service()
        if service is None:
            return unavailable_answer(context)

        start = time.time()
        try:
            text = await service.generate_text(build_answer_prompt(query, context))
        except Exception as e:
            logger.error("Answer generation failed: %s: %s", type(e).__name__, e)
            return error_answer(context)
        logger.info("Answer generated in %.1fs", time.time() - start)
        return (text or "").strip()

    async def stream(self, query: str, context: str) -> AsyncIterator[str]:
        """Yield the answer word by word (first word bare, later words space-prefixed)."""
        service = self._service()
        if service is None:
            yield unavailable_answer(context)
            return

        try:
            text = await service.generate_text(build_answer_prompt(query, context))
            if not text:
                raise ValueError("AI provider returned empty response")
        except Exception as e:
            logger.error("Streaming answer failed: %s: %s", type(e).__name__, e)
            yield (
                "I encountered an issue generating a response, but here's what I found in the database:"
                f"\n\n{context}\n\nBased on this information about {query.lower()}."
            )
            return

        for i, word in enumerate(text.split(" ")):
            yield word if i == 0 else " " + word
