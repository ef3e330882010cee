from abc import ABC, abstractmethod
from contextlib import aclosing
import json
import logging
import time
from typing import Optional, Any, AsyncIterator

import httpx

from ...domain.errors import ProviderError
from ..observability import record_generation

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """Base class for streaming LLM providers.

    Subclasses implement the raw HTTP calls; this class turns every failure
    into a single ProviderError and records calls in Langfuse when a trace is
    given. Nothing here retries.
    """

    def __init__(self, api_key: str, base_url: str, timeout: float = 120.0, max_tokens: int = 1000):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens

    @property
    @abstractmethod
    def provider_id(self) -> str:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    async def is_available(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    def _stream_api(
        self, client: httpx.AsyncClient, model: str, system_instruction: str, user_text: str
    ) -> AsyncIterator[str]:
        """Yield text fragments from the upstream streaming endpoint."""
        pass

    @abstractmethod
    async def _call_api(self, client: httpx.AsyncClient, model: str, prompt: str) -> str:
        """Return the full text of a non-streaming completion."""
        pass

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout)

    def _ensure_credentials(self) -> None:
        if not self.api_key:
            raise ProviderError(f"{self.name} API Key not found", provider=self.provider_id)

    async def stream_completion(
        self,
        model: str,
        system_instruction: str,
        user_text: str,
        trace: Optional[Any] = None,
    ) -> AsyncIterator[str]:
        """Stream text fragments for one prompt. Finite and not restartable."""
        self._ensure_credentials()
        start_time = time.perf_counter()
        collected: list[str] = []
        error: Optional[str] = None

        try:
            async with self._client() as client, aclosing(
                self._stream_api(client, model, system_instruction, user_text)
            ) as fragments:
                async for fragment in fragments:
                    if fragment:
                        collected.append(fragment)
                        yield fragment
        except ProviderError as e:
            error = e.message
            raise
        except httpx.HTTPStatusError as e:
            error = self._describe_status_error(e)
            raise ProviderError(error, provider=self.provider_id) from e
        except (httpx.HTTPError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            error = str(e) or e.__class__.__name__
            raise ProviderError(error, provider=self.provider_id) from e
        finally:
            if trace:
                record_generation(
                    trace=trace,
                    provider=self.provider_id,
                    model=model,
                    prompt=f"{system_instruction}\n\n{user_text}",
                    response="".join(collected),
                    latency_ms=(time.perf_counter() - start_time) * 1000,
                    error=error,
                )

    async def complete(self, model: str, prompt: str, trace: Optional[Any] = None) -> str:
        """Non-streaming completion used for short jobs like titles."""
        self._ensure_credentials()
        start_time = time.perf_counter()
        response_text = ""
        error: Optional[str] = None

        try:
            async with self._client() as client:
                response_text = await self._call_api(client, model, prompt)
            return response_text
        except httpx.HTTPStatusError as e:
            error = self._describe_status_error(e)
            raise ProviderError(error, provider=self.provider_id) from e
        except (httpx.HTTPError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            error = str(e) or e.__class__.__name__
            raise ProviderError(error, provider=self.provider_id) from e
        finally:
            if trace:
                record_generation(
                    trace=trace,
                    provider=self.provider_id,
                    model=model,
                    prompt=prompt,
                    response=response_text,
                    latency_ms=(time.perf_counter() - start_time) * 1000,
                    error=error,
                )

    def _describe_status_error(self, e: httpx.HTTPStatusError) -> str:
        status = e.response.status_code
        try:
            error_data = e.response.json()
            error_field = error_data.get("error", {})
            if isinstance(error_field, dict):
                detail = error_field.get("message") or e.response.text
            else:
                detail = str(error_field) or e.response.text
        except (ValueError, httpx.ResponseNotRead):
            detail = ""

        if status == 401:
            return f"Invalid {self.name} API Key"
        if status == 404:
            return "Model not found or not available"
        if status == 429:
            return f"{self.name} rate limit exceeded"
        return f"{self.name} API error: {status}" + (f" - {detail}" if detail else "")

    @staticmethod
    async def _iter_sse_data(response: httpx.Response) -> AsyncIterator[dict]:
        """Yield decoded JSON payloads of ``data:`` lines from an SSE response."""
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if not data:
                continue
            if data == "[DONE]":
                break
            yield json.loads(data)

    @staticmethod
    async def _raise_for_status(response: httpx.Response) -> None:
        # Streaming responses must be read before the error body is available
        if response.is_error:
            await response.aread()
            response.raise_for_status()
