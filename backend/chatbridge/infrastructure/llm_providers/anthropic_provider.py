import httpx
from typing import AsyncIterator
from .base import BaseLLMProvider


class AnthropicProvider(BaseLLMProvider):
    """Anthropic messages API. The system instruction goes in the top-level field."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com/v1",
        api_version: str = "2023-06-01",
        timeout: float = 120.0,
        max_tokens: int = 1000,
    ):
        super().__init__(api_key, base_url, timeout, max_tokens)
        self.api_version = api_version

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def name(self) -> str:
        return "Anthropic"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    async def _stream_api(
        self, client: httpx.AsyncClient, model: str, system_instruction: str, user_text: str
    ) -> AsyncIterator[str]:
        payload = {
            "model": model,
            "max_tokens": self.max_tokens,
            "system": system_instruction,
            "messages": [{"role": "user", "content": user_text}],
            "stream": True,
        }
        async with client.stream(
            "POST", f"{self.base_url}/messages", headers=self._headers(), json=payload
        ) as response:
            await self._raise_for_status(response)
            async for event in self._iter_sse_data(response):
                event_type = event.get("type")
                if event_type == "error":
                    message = (event.get("error") or {}).get("message", "stream error")
                    raise ValueError(f"Anthropic stream error: {message}")
                if event_type == "message_stop":
                    break
                if event_type != "content_block_delta":
                    continue
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta" and delta.get("text"):
                    yield delta["text"]

    async def _call_api(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        response = await client.post(
            f"{self.base_url}/messages",
            headers=self._headers(),
            json={
                "model": model,
                "max_tokens": 50,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        response.raise_for_status()
        data = response.json()
        blocks = data.get("content") or []
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
