"""Unit tests for the HTTP provider adapters, using httpx.MockTransport."""

import json

import httpx
import pytest

from chatbridge.domain.errors import ProviderError
from chatbridge.infrastructure.llm_providers import (
    AnthropicProvider,
    GeminiProvider,
    OpenAIProvider,
)


def _sse(*payloads) -> bytes:
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


def _use_transport(monkeypatch, provider, handler):
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(provider, "_client", lambda: httpx.AsyncClient(transport=transport))


async def _drain(provider, model="model", system="Be nice.", text="Hello"):
    return [f async for f in provider.stream_completion(model, system, text)]


class TestOpenAIProvider:
    async def test_streams_delta_content(self, monkeypatch):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            body = _sse(
                {"choices": [{"delta": {"role": "assistant"}}]},
                {"choices": [{"delta": {"content": "Hel"}}]},
                {"choices": [{"delta": {"content": "lo"}}]},
                "[DONE]",
            )
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        provider = OpenAIProvider("sk-test")
        _use_transport(monkeypatch, provider, handler)

        fragments = await _drain(provider, model="gpt-4o")

        assert fragments == ["Hel", "lo"]
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["stream"] is True
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "Be nice."},
            {"role": "user", "content": "Hello"},
        ]

    async def test_missing_key(self):
        with pytest.raises(ProviderError) as exc_info:
            await _drain(OpenAIProvider(""))

        assert exc_info.value.message == "OpenAI API Key not found"

    async def test_unauthorized_status(self, monkeypatch):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        provider = OpenAIProvider("sk-wrong")
        _use_transport(monkeypatch, provider, handler)

        with pytest.raises(ProviderError) as exc_info:
            await _drain(provider)

        assert exc_info.value.message == "Invalid OpenAI API Key"
        assert exc_info.value.provider == "openai"

    async def test_server_error_includes_detail(self, monkeypatch):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "overloaded"}})

        provider = OpenAIProvider("sk-test")
        _use_transport(monkeypatch, provider, handler)

        with pytest.raises(ProviderError) as exc_info:
            await _drain(provider)

        assert exc_info.value.message == "OpenAI API error: 500 - overloaded"

    async def test_network_error_wrapped(self, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIProvider("sk-test")
        _use_transport(monkeypatch, provider, handler)

        with pytest.raises(ProviderError) as exc_info:
            await _drain(provider)

        assert "connection refused" in exc_info.value.message

    async def test_complete(self, monkeypatch):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "Trip Planning"}}]})

        provider = OpenAIProvider("sk-test")
        _use_transport(monkeypatch, provider, handler)

        assert await provider.complete("gpt-4o", "title please") == "Trip Planning"


class TestAnthropicProvider:
    async def test_system_field_and_text_deltas(self, monkeypatch):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            body = _sse(
                {"type": "message_start", "message": {}},
                {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Sel"}},
                {"type": "content_block_delta", "delta": {"type": "input_json_delta"}},
                {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "amat"}},
                {"type": "message_stop"},
            )
            return httpx.Response(200, content=body)

        provider = AnthropicProvider("ak-test")
        _use_transport(monkeypatch, provider, handler)

        fragments = await _drain(provider, model="claude-3-haiku")

        assert fragments == ["Sel", "amat"]
        assert seen["headers"]["x-api-key"] == "ak-test"
        assert seen["body"]["system"] == "Be nice."
        assert seen["body"]["messages"] == [{"role": "user", "content": "Hello"}]

    async def test_error_event_raises(self, monkeypatch):
        def handler(request):
            body = _sse({"type": "error", "error": {"message": "Overloaded"}})
            return httpx.Response(200, content=body)

        provider = AnthropicProvider("ak-test")
        _use_transport(monkeypatch, provider, handler)

        with pytest.raises(ProviderError) as exc_info:
            await _drain(provider)

        assert "Overloaded" in exc_info.value.message

    async def test_missing_key(self):
        with pytest.raises(ProviderError) as exc_info:
            await _drain(AnthropicProvider(""))

        assert exc_info.value.message == "Anthropic API Key not found"


class TestGeminiProvider:
    async def test_instruction_prepended_to_user_text(self, monkeypatch):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["alt"] = request.url.params.get("alt")
            seen["body"] = json.loads(request.content)
            body = _sse(
                {"candidates": [{"content": {"parts": [{"text": "Apa "}]}}]},
                {"candidates": [{"content": {"parts": [{"text": "khabar"}]}}]},
            )
            return httpx.Response(200, content=body)

        provider = GeminiProvider("g-test")
        _use_transport(monkeypatch, provider, handler)

        fragments = await _drain(provider, model="gemini-1.5-flash")

        assert fragments == ["Apa ", "khabar"]
        assert seen["path"].endswith("/models/gemini-1.5-flash:streamGenerateContent")
        assert seen["alt"] == "sse"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "Be nice.\n\nHello"

    async def test_missing_key(self):
        with pytest.raises(ProviderError) as exc_info:
            await _drain(GeminiProvider(""))

        assert exc_info.value.message == "Google API Key not found"
