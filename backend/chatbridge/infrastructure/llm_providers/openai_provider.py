import httpx
from typing import AsyncIterator
from .base import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions API. Supports a system role message."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        max_tokens: int = 1000,
    ):
        super().__init__(api_key, base_url, timeout, max_tokens)

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def name(self) -> str:
        return "OpenAI"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _stream_api(
        self, client: httpx.AsyncClient, model: str, system_instruction: str, user_text: str
    ) -> AsyncIterator[str]:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_text},
            ],
            "max_tokens": self.max_tokens,
            "stream": True,
        }
        async with client.stream(
            "POST", f"{self.base_url}/chat/completions", headers=self._headers(), json=payload
        ) as response:
            await self._raise_for_status(response)
            async for chunk in self._iter_sse_data(response):
                choices = chunk.get("choices") or []
                if not choices:
                    continue
                text = (choices[0].get("delta") or {}).get("content")
                if text:
                    yield text

    async def _call_api(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        response = await client.post(
            f"{self.base_url}/chat/completions",
            headers=self._headers(),
            json={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": 50,
            },
        )
        response.raise_for_status()
        data = response.json()
        return data["choices"][0]["message"]["content"] or ""
