import httpx
from typing import AsyncIterator
from .base import BaseLLMProvider


class GeminiProvider(BaseLLMProvider):
    """Google Gemini generateContent API.

    The call takes a single user turn, so the system instruction is prepended
    to the user text.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        max_tokens: int = 1000,
    ):
        super().__init__(api_key, base_url, timeout, max_tokens)

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def name(self) -> str:
        return "Google"

    def _headers(self) -> dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, max_tokens: int) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_tokens},
        }

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)

    async def _stream_api(
        self, client: httpx.AsyncClient, model: str, system_instruction: str, user_text: str
    ) -> AsyncIterator[str]:
        prompt = f"{system_instruction}\n\n{user_text}"
        async with client.stream(
            "POST",
            f"{self.base_url}/models/{model}:streamGenerateContent",
            params={"alt": "sse"},
            headers=self._headers(),
            json=self._payload(prompt, self.max_tokens),
        ) as response:
            await self._raise_for_status(response)
            async for chunk in self._iter_sse_data(response):
                text = self._extract_text(chunk)
                if text:
                    yield text

    async def _call_api(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        response = await client.post(
            f"{self.base_url}/models/{model}:generateContent",
            headers=self._headers(),
            json=self._payload(prompt, 50),
        )
        response.raise_for_status()
        return self._extract_text(response.json())
