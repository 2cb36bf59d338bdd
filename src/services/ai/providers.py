"""
LLM provider implementations.

OpenAI: openai async client for embeddings, LangChain ChatOpenAI for text.
Vertex: google-genai client in Vertex AI mode (Gemini + text-embedding-005).

Both return 768-dimension embeddings, the width of the vector columns the
search procedures compare against.
"""

import os
import time

from google import genai
from google.genai import types
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import AsyncOpenAI

from src.config.logging_config import setup_logger
from src.config.settings import config

logger = setup_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions about Registered Investment Advisers (RIAs) "
    "based on provided data. Return only what is asked. For JSON tasks, output only valid JSON."
)

PROVIDERS = ("openai", "vertex")


class OpenAIService:
    """Embeddings via text-embedding-3-small (truncated to 768 dims), text via ChatOpenAI."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY required")
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model or config.OPENAI_CHAT_MODEL
        self.llm = ChatOpenAI(
            model=self.model,
            temperature=0.2,
            max_tokens=800,
            api_key=api_key,
        )

    async def generate_embedding(self, text: str) -> list[float]:
        response = await self.client.embeddings.create(
            model=config.OPENAI_EMBEDDING_MODEL,
            input=text,
            dimensions=config.EMBEDDING_DIMENSIONS,
        )
        return list(response.data[0].embedding)

    async def generate_text(self, prompt: str) -> str:
        messages = [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]
        start = time.time()
        response = await self.llm.ainvoke(messages)
        logger.info("OpenAI generation done in %.1fs", time.time() - start)
        return response.content or ""


class VertexAIService:
    """Gemini text generation and text-embedding-005 embeddings through Vertex AI."""

    def __init__(self, project: str | None = None, location: str | None = None):
        project = project or config.GOOGLE_PROJECT_ID
        if not project:
            raise ValueError("GOOGLE_PROJECT_ID required")
        self.client = genai.Client(
            vertexai=True,
            project=project,
            location=location or config.VERTEX_AI_LOCATION,
        )
        self.model = config.VERTEX_CHAT_MODEL

    async def generate_embedding(self, text: str) -> list[float]:
        response = await self.client.aio.models.embed_content(
            model=config.VERTEX_EMBEDDING_MODEL,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=config.EMBEDDING_DIMENSIONS),
        )
        if not response.embeddings:
            raise ValueError("Vertex AI returned no embeddings")
        return list(response.embeddings[0].values or [])

    async def generate_text(self, prompt: str) -> str:
        start = time.time()
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_PROMPT,
                temperature=0.2,
                max_output_tokens=800,
            ),
        )
        logger.info("Vertex generation done in %.1fs", time.time() - start)
        return response.text or ""


def get_ai_provider(requested: str | None = None) -> str:
    """
    Resolve which provider to use.

    Explicit request, then AI_PROVIDER ("google" is an alias for "vertex"),
    then whichever provider has credentials (OpenAI first).
    """
    choice = (requested or config.AI_PROVIDER or "").strip().lower()
    if choice == "google":
        choice = "vertex"
    if choice in PROVIDERS:
        return choice
    if os.getenv("OPENAI_API_KEY", "").strip():
        return "openai"
    if config.GOOGLE_PROJECT_ID:
        return "vertex"
    return "openai"


def create_ai_service(provider: str):
    """Build a provider client, or None when it is unknown or lacks credentials."""
    try:
        if provider == "openai":
            return OpenAIService()
        if provider == "vertex":
            return VertexAIService()
    except ValueError as e:
        logger.warning("AI provider %s unavailable: %s", provider, e)
        return None
    logger.error("Unknown AI provider: %s", provider)
    return None
