"""
Unit tests for provider selection and provider construction.
Clients are patched; nothing leaves the process.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config.settings import config
from src.services.ai import providers
from src.services.ai.providers import OpenAIService, create_ai_service, get_ai_provider


class TestGetAIProvider:
    def test_explicit_request_wins(self) -> None:
        with patch.object(config, "AI_PROVIDER", "openai"):
            assert get_ai_provider("vertex") == "vertex"

    def test_google_is_alias_for_vertex(self) -> None:
        assert get_ai_provider("google") == "vertex"

    def test_configured_provider(self) -> None:
        with patch.object(config, "AI_PROVIDER", "vertex"):
            assert get_ai_provider() == "vertex"

    def test_credentials_decide_when_unset(self) -> None:
        with patch.object(config, "AI_PROVIDER", ""), patch.object(config, "GOOGLE_PROJECT_ID", "proj"), patch.dict(
            os.environ, {"OPENAI_API_KEY": ""}
        ):
            assert get_ai_provider() == "vertex"

    def test_openai_preferred_when_both_available(self) -> None:
        with patch.object(config, "AI_PROVIDER", ""), patch.object(config, "GOOGLE_PROJECT_ID", "proj"), patch.dict(
            os.environ, {"OPENAI_API_KEY": "sk-test"}
        ):
            assert get_ai_provider() == "openai"

    def test_unknown_request_falls_through(self) -> None:
        with patch.object(config, "AI_PROVIDER", ""), patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            assert get_ai_provider("mystery") == "openai"


class TestCreateAIService:
    def test_missing_openai_key_returns_none(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
            assert create_ai_service("openai") is None

    def test_missing_google_project_returns_none(self) -> None:
        with patch.object(config, "GOOGLE_PROJECT_ID", ""):
            assert create_ai_service("vertex") is None

    def test_unknown_provider_returns_none(self) -> None:
        assert create_ai_service("mystery") is None

    def test_builds_openai_service(self) -> None:
        with patch.object(providers, "AsyncOpenAI"), patch.object(providers, "ChatOpenAI"):
            service = create_ai_service("openai")
        assert isinstance(service, OpenAIService)


class TestOpenAIService:
    @pytest.fixture()
    def service(self) -> OpenAIService:
        with patch.object(providers, "AsyncOpenAI") as client_cls, patch.object(providers, "ChatOpenAI") as llm_cls:
            client_cls.return_value = MagicMock()
            llm_cls.return_value = MagicMock()
            return OpenAIService(api_key="sk-test")

    async def test_embedding_requests_768_dimensions(self, service: OpenAIService) -> None:
        response = MagicMock()
        response.data = [MagicMock(embedding=[0.1] * 768)]
        service.client.embeddings.create = AsyncMock(return_value=response)

        embedding = await service.generate_embedding("hello")

        assert len(embedding) == 768
        assert service.client.embeddings.create.await_args.kwargs["dimensions"] == 768

    async def test_text_uses_system_prompt(self, service: OpenAIService) -> None:
        service.llm.ainvoke = AsyncMock(return_value=MagicMock(content="answer"))

        assert await service.generate_text("question") == "answer"
        messages = service.llm.ainvoke.await_args.args[0]
        assert messages[0].content == providers.SYSTEM_PROMPT
        assert messages[1].content == "question"
