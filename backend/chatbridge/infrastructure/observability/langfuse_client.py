"""Langfuse tracing for chat exchanges.

A trace covers one exchange (a streamed reply, a non-streaming reply or a
title job) and carries one generation per upstream model call. Tracing is
best effort: with no keys configured every helper is a no-op, and SDK
failures are logged at debug level without reaching the caller.
"""
from functools import lru_cache
from typing import Optional, Any
import logging

from ...config import get_settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_langfuse() -> Optional[Any]:
    """Shared Langfuse client, or None when tracing is off."""
    settings = get_settings()
    if not settings.langfuse_enabled:
        return None

    try:
        from langfuse import Langfuse

        return Langfuse(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
        )
    except Exception:
        logger.warning("Langfuse keys are set but the client could not be created", exc_info=True)
        return None


class ChatTrace:
    """Root span of one chat exchange."""

    def __init__(self, client: Any, name: str, chat_id: str,
                 caller_id: Optional[str] = None, metadata: Optional[dict] = None,
                 tags: Optional[list[str]] = None):
        self.name = name
        self.chat_id = chat_id
        self.caller_id = caller_id
        self.metadata = metadata or {}
        self.tags = tags or []
        self._client = client
        self._span = None

    @property
    def is_open(self) -> bool:
        return self._span is not None

    def open(self) -> "ChatTrace":
        try:
            self._span = self._client.start_span(name=self.name, input=self.metadata)
            self._span.update_trace(
                user_id=self.caller_id or "guest",
                session_id=self.chat_id,
                tags=self.tags,
            )
        except Exception:
            logger.debug("Could not open trace %s for chat %s", self.name, self.chat_id, exc_info=True)
            self._span = None
        return self

    def generation(
        self,
        provider: str,
        model: str,
        prompt: str,
        response: str,
        latency_ms: float,
        error: Optional[str] = None,
    ) -> None:
        """Attach one upstream model call to the exchange."""
        if self._span is None:
            return

        try:
            generation = self._span.start_generation(
                name=f"{provider}/{model}",
                model=model,
                input=prompt,
            )
            generation.update(
                output=f"Error: {error}" if error else response,
                level="ERROR" if error else "DEFAULT",
                metadata={"provider": provider, "latency_ms": round(latency_ms, 1)},
            )
            generation.end()
        except Exception:
            logger.debug("Could not record generation for chat %s", self.chat_id, exc_info=True)

    def close(self, output: Optional[dict] = None) -> None:
        if self._span is None:
            return

        span, self._span = self._span, None
        try:
            if output:
                span.update(output=output)
            span.end()
        except Exception:
            logger.debug("Could not close trace %s for chat %s", self.name, self.chat_id, exc_info=True)


def start_trace(
    name: str,
    chat_id: str,
    caller_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    tags: Optional[list[str]] = None,
) -> Optional[ChatTrace]:
    """Open a trace for a chat exchange. Returns None when tracing is off."""
    client = get_langfuse()
    if client is None:
        return None
    return ChatTrace(client, name, chat_id, caller_id, metadata, tags).open()


def record_generation(trace: Optional[ChatTrace], **details) -> None:
    if trace is not None:
        trace.generation(**details)


def flush_langfuse() -> None:
    client = get_langfuse()
    if client is None:
        return
    try:
        client.flush()
    except Exception:
        logger.debug("Langfuse flush failed", exc_info=True)
