# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Service Protocols (Interfaces)

Defines the contracts for key services so they can be mocked in tests and swapped
in production without coupling to concrete implementations.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# AI providers
# ---------------------------------------------------------------------------
@runtime_checkable
class AIService(Protocol):
    """Contract for an LLM provider.

    OpenAI and Vertex (Gemini) implementations satisfy it, as does the
    circuit-breaker wrapper that sits in front of them.
    """

    async def generate_embedding(self, text: str) -> list[float]:
        """Return a 768-dimension embedding for ``text``."""
        ...

    async def generate_text(self, prompt: str) -> str:
        """Return the model's completion for ``prompt``."""
        ...

