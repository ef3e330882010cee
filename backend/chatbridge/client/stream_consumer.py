from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union
import inspect
import logging

import httpx

from ..domain.entities import (
    Chat,
    ChatMessage,
    ConnectedEvent,
    TokenEvent,
    ErrorEvent,
    DoneEvent,
    decode_event,
)
from ..infrastructure.observability import ObservabilitySink, NullSink
from .reconciler import ConversationView

logger = logging.getLogger(__name__)

# Backend API URL
BACKEND_URL = "http://localhost:8000/api"

Callback = Callable[[Optional[str]], Union[None, Awaitable[None]]]


class ChatClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class StreamOutcome:
    chat_id: Optional[str] = None
    content: str = ""
    error: Optional[str] = None
    user_message_id: Optional[str] = None
    ai_message_id: Optional[str] = None
    new_chat_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.ai_message_id is not None


class StreamLineBuffer:
    """Splits arbitrarily chunked text into complete lines.

    The trailing incomplete line is kept until the next chunk or ``flush``.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> List[str]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        rest, self._buffer = self._buffer, ""
        return [rest.rstrip("\r")] if rest.strip() else []


async def _notify(callback: Optional[Callback], chat_id: Optional[str]) -> None:
    if callback is None:
        return
    result = callback(chat_id)
    if inspect.isawaitable(result):
        await result


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return default


class ChatStreamClient:
    """HTTP client for the chat API.

    ``send`` posts to the streaming endpoint and drives a ConversationView
    through sending, streaming and settled. The other methods are plain JSON
    calls used to refetch persisted state.
    """

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        user_id: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sink: Optional[ObservabilitySink] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self.transport = transport
        self.sink = sink or NullSink()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        async with self._client() as client:
            response = await client.request(method, path, **kwargs)
        if response.is_error:
            raise ChatClientError(
                _error_message(response, f"Request failed with status {response.status_code}"),
                status_code=response.status_code,
            )
        return response.json()

    async def send(
        self,
        content: str,
        chat_id: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
        view: Optional[ConversationView] = None,
        on_connected: Optional[Callback] = None,
        on_complete: Optional[Callback] = None,
    ) -> StreamOutcome:
        """Send one message and consume the event stream until it ends."""
        view = view if view is not None else ConversationView(chat_id=chat_id, sink=self.sink)
        target_chat = chat_id or view.chat_id
        outcome = StreamOutcome(chat_id=target_chat)
        view.begin_send(content)
        self.sink.record("client.send", chat_id=target_chat, model=model)

        payload = {"chatId": target_chat, "content": content, "model": model, "language": language}
        payload = {key: value for key, value in payload.items() if value is not None}

        buffer = StreamLineBuffer()
        try:
            async with self._client() as client:
                async with client.stream("POST", "/chat/stream", json=payload) as response:
                    if response.is_error:
                        await response.aread()
                        message = _error_message(response, "Failed to send message")
                        outcome.error = message
                        view.fail(message)
                        return outcome

                    async for chunk in response.aiter_text():
                        for line in buffer.feed(chunk):
                            await self._handle_line(line, view, outcome, on_connected, on_complete)
                    for line in buffer.flush():
                        await self._handle_line(line, view, outcome, on_connected, on_complete)
        except httpx.HTTPError as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Chat stream request failed: %s", message)
            outcome.error = message
            view.fail(message)
            return outcome

        if view.is_streaming:
            # Stream closed without a terminal event
            view.complete()
        return outcome

    async def _handle_line(
        self,
        line: str,
        view: ConversationView,
        outcome: StreamOutcome,
        on_connected: Optional[Callback],
        on_complete: Optional[Callback],
    ) -> None:
        if not line.strip():
            return
        try:
            event = decode_event(line)
        except ValueError:
            logger.warning("Skipping malformed stream line: %r", line[:200])
            self.sink.record("client.malformed_line", chat_id=outcome.chat_id)
            return

        if isinstance(event, ConnectedEvent):
            adopted = view.adopt_chat(event.new_chat_id)
            outcome.chat_id = outcome.chat_id or event.new_chat_id
            if adopted:
                await _notify(on_connected, event.new_chat_id)
        elif isinstance(event, TokenEvent):
            outcome.content += event.token
            view.append_token(event.token)
        elif isinstance(event, ErrorEvent):
            outcome.error = event.error
            view.fail(event.error)
        elif isinstance(event, DoneEvent):
            outcome.user_message_id = event.user_message_id
            outcome.ai_message_id = event.ai_message_id
            outcome.new_chat_id = event.new_chat_id
            view.complete()
            self.sink.record("client.done", chat_id=outcome.chat_id)
            await _notify(on_complete, event.new_chat_id)

    async def refresh(self, view: ConversationView) -> ConversationView:
        """Refetch the persisted messages of the view's chat and reconcile."""
        if view.chat_id:
            view.apply_persisted(await self.get_messages(view.chat_id))
        return view

    async def get_messages(self, chat_id: str) -> List[ChatMessage]:
        data = await self._request("GET", f"/chats/{chat_id}/messages")
        return [ChatMessage.model_validate(item) for item in data]

    async def list_chats(self, limit: int = 50) -> List[Chat]:
        data = await self._request("GET", "/chats", params={"limit": limit})
        return [Chat.model_validate(item) for item in data]

    async def get_chats_by_ids(self, chat_ids: List[str]) -> List[Chat]:
        data = await self._request("POST", "/chats/by-ids", json={"chatIds": chat_ids})
        return [Chat.model_validate(item) for item in data]

    async def create_chat(self) -> Chat:
        data = await self._request("POST", "/chats")
        return Chat.model_validate(data)
