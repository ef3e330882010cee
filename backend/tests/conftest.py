# tests/conftest.py
import os

# Set up test environment variables BEFORE any other imports
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///./test_chatbridge.db")
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""
os.environ["LANGFUSE_PUBLIC_KEY"] = ""
os.environ["LANGFUSE_SECRET_KEY"] = ""

import asyncio
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatbridge.application.services import AccessPolicy, ChatService
from chatbridge.config import Settings
from chatbridge.domain.errors import ProviderError
from chatbridge.infrastructure.langgraph import TitleGraph
from chatbridge.infrastructure.llm_providers import ProviderFamily, ProviderRegistry
from chatbridge.infrastructure.observability import RecordingSink
from chatbridge.infrastructure.persistence import InMemoryConversationRepository


class FakeProvider:
    """Stands in for one provider family. Records every call it receives."""

    def __init__(
        self,
        provider_id: str,
        name: str,
        fragments: tuple = ("Hello", " world"),
        error: Optional[str] = None,
        title: str = "Friendly Greeting Chat",
        complete_error: Optional[str] = None,
    ):
        self.provider_id = provider_id
        self.name = name
        self.fragments = list(fragments)
        self.error = error
        self.title = title
        self.complete_error = complete_error
        self.stream_calls: list[dict] = []
        self.complete_calls: list[dict] = []
        self.stream_closed = False

    async def is_available(self) -> bool:
        return True

    async def stream_completion(self, model, system_instruction, user_text, trace=None):
        self.stream_calls.append(
            {"model": model, "system_instruction": system_instruction, "user_text": user_text}
        )
        try:
            for fragment in self.fragments:
                await asyncio.sleep(0)
                yield fragment
            if self.error:
                raise ProviderError(self.error, provider=self.provider_id)
        finally:
            self.stream_closed = True

    async def complete(self, model, prompt, trace=None):
        self.complete_calls.append({"model": model, "prompt": prompt})
        if self.complete_error:
            raise ProviderError(self.complete_error, provider=self.provider_id)
        return self.title


@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        anthropic_api_key="",
        google_api_key="",
        langfuse_public_key="",
        langfuse_secret_key="",
    )


@pytest.fixture
def openai_provider():
    return FakeProvider("openai", "OpenAI")


@pytest.fixture
def anthropic_provider():
    return FakeProvider("anthropic", "Anthropic")


@pytest.fixture
def gemini_provider():
    return FakeProvider("gemini", "Google")


@pytest.fixture
def registry(settings, openai_provider, anthropic_provider, gemini_provider):
    return ProviderRegistry(
        {
            ProviderFamily.OPENAI: openai_provider,
            ProviderFamily.ANTHROPIC: anthropic_provider,
            ProviderFamily.GEMINI: gemini_provider,
        },
        aliases=settings.model_aliases,
        prefixes=settings.model_prefixes,
    )


@pytest.fixture
def repository():
    return InMemoryConversationRepository()


@pytest.fixture
def policy(settings):
    return AccessPolicy.from_settings(settings)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def title_graph(repository, registry, policy, settings, sink):
    return TitleGraph(repository, registry, policy, settings, sink=sink)


@pytest.fixture
def chat_service(repository, registry, policy, settings, title_graph, sink):
    return ChatService(
        repository=repository,
        registry=registry,
        policy=policy,
        settings=settings,
        title_generator=title_graph,
        sink=sink,
    )


@pytest_asyncio.fixture
async def client(chat_service, registry):
    """API client with the chat service dependencies overridden."""
    from chatbridge.interfaces.api.routes import get_chat_service, get_registry
    from chatbridge.main import app

    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
