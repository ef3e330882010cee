from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Optional, Protocol, Set
import asyncio
import logging

from ...config import Settings
from ...domain.entities import (
    Chat,
    ChatMessage,
    SendMessageRequest,
    SendMessageResponse,
    ConnectedEvent,
    TokenEvent,
    ErrorEvent,
    DoneEvent,
    StreamEvent,
)
from ...domain.errors import (
    InvalidRequestError,
    ModelAccessDeniedError,
    ChatAccessDeniedError,
    ChatNotFoundError,
    ProviderError,
)
from ...domain.repositories import ConversationRepository
from ...infrastructure.llm_providers import ProviderRegistry, build_system_prompt
from ...infrastructure.observability import (
    ObservabilitySink,
    NullSink,
    start_trace,
    flush_langfuse,
)
from .access_policy import AccessPolicy, AccessDenied

logger = logging.getLogger(__name__)

INTERNAL_ERROR_TEXT = "Internal server error"


class TitleGenerator(Protocol):
    async def generate_title(
        self, chat_id: str, model: str, caller_id: Optional[str] = None
    ) -> Optional[str]:
        ...


@dataclass
class StreamSession:
    """Everything the streaming phase needs once the request was accepted."""
    chat_id: str
    chat_created: bool
    model: str
    content: str
    language: Optional[str] = None
    caller_id: Optional[str] = None
    fragments: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.fragments)


def provider_error_text(model: str, error: ProviderError) -> str:
    return f"Error calling AI model ({model}): {error.message}"


class ChatService:
    """Accepts chat sends, streams the model reply and persists both sides.

    A send goes through validation and model authorization, then the target
    chat is resolved or created. Those steps raise ChatError subclasses and no
    stream is opened. After that every failure is reported in-band.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        registry: ProviderRegistry,
        policy: AccessPolicy,
        settings: Settings,
        title_generator: Optional[TitleGenerator] = None,
        sink: Optional[ObservabilitySink] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.policy = policy
        self.settings = settings
        self.title_generator = title_generator
        self.sink = sink or NullSink()
        self._background_tasks: Set[asyncio.Task] = set()

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        """Run ``coro`` detached. The reference is held until it finishes."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(lambda t: self._log_task_failure(t, name))
        return task

    @staticmethod
    def _log_task_failure(task: asyncio.Task, name: str) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", name, exc_info=exc)

    async def wait_for_background_tasks(self) -> None:
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ==================== Pre-stream phase ====================

    async def open_session(
        self, request: SendMessageRequest, caller_id: Optional[str] = None
    ) -> StreamSession:
        """Validate, authorize and resolve the target chat."""
        content = request.content or ""
        if not content.strip():
            raise InvalidRequestError("Message content is required")

        decision = self.policy.authorize(caller_id, request.model)
        if isinstance(decision, AccessDenied):
            raise ModelAccessDeniedError(decision.reason)
        if not decision.effective_model:
            raise InvalidRequestError("Model is required")

        chat, created = await self._resolve_chat(request.chat_id, content, caller_id)

        return StreamSession(
            chat_id=chat.id,
            chat_created=created,
            model=decision.effective_model,
            content=content,
            language=request.language,
            caller_id=caller_id,
        )

    async def _resolve_chat(
        self, chat_id: Optional[str], content: str, caller_id: Optional[str]
    ) -> tuple[Chat, bool]:
        if not chat_id:
            title = content[:self.settings.title_source_length] or self.settings.default_chat_title
            chat = await self.repository.create_chat(title=title, owner=caller_id or None)
            logger.info("Created chat %s", chat.id)
            return chat, True

        chat = await self.repository.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError()
        if not self.policy.can_access_chat(chat, caller_id):
            raise ChatAccessDeniedError()
        return chat, False

    def _stored_language(self, session: StreamSession) -> Optional[str]:
        if not session.caller_id and not self.settings.persist_guest_language:
            return None
        return session.language

    async def _persist_message(self, session: StreamSession, role: str, content: str) -> ChatMessage:
        return await self.repository.create_message(
            chat_id=session.chat_id,
            role=role,
            content=content,
            model=session.model,
            language=self._stored_language(session),
        )

    async def _notify_title_job(self, session: StreamSession) -> bool:
        """Schedule title generation when the chat holds exactly its first exchange."""
        if self.title_generator is None:
            return False
        count = await self.repository.count_messages(session.chat_id)
        if count != 2:
            return False
        self._spawn(
            self.title_generator.generate_title(session.chat_id, session.model, session.caller_id),
            name=f"title:{session.chat_id}",
        )
        self.sink.record("title.scheduled", chat_id=session.chat_id, model=session.model)
        return True

    # ==================== Streaming phase ====================

    async def stream_events(self, session: StreamSession) -> AsyncIterator[StreamEvent]:
        """Yield the wire events of one send.

        ``connected`` comes first. ``done`` or ``error`` comes last.
        """
        self.sink.record("stream.opened", chat_id=session.chat_id, model=session.model)
        yield ConnectedEvent(new_chat_id=session.chat_id)

        user_task = self._spawn(
            self._persist_message(session, "user", session.content),
            name=f"user-message:{session.chat_id}",
        )
        system_prompt = build_system_prompt(self.settings.persona_instruction, session.language)
        trace = start_trace(
            name="chat-stream",
            chat_id=session.chat_id,
            caller_id=session.caller_id,
            metadata={"model": session.model, "language": session.language},
            tags=["chat", "stream"],
        )
        reply_task: Optional[asyncio.Task] = None

        try:
            try:
                async with aclosing(
                    self.registry.stream_completion(
                        session.model, system_prompt, session.content, trace=trace
                    )
                ) as fragments:
                    async for fragment in fragments:
                        session.fragments.append(fragment)
                        self.sink.record("stream.token", chat_id=session.chat_id, length=len(fragment))
                        yield TokenEvent(token=fragment)
            except ProviderError as e:
                error_text = provider_error_text(session.model, e)
                logger.warning("Provider failure for chat %s: %s", session.chat_id, e.message)
                reply_task = self._spawn_reply(session, user_task, error_text)
                await asyncio.shield(reply_task)
                self.sink.record("stream.error", chat_id=session.chat_id, error=error_text)
                yield ErrorEvent(error=error_text)
                return

            reply_task = self._spawn_reply(session, user_task, session.text)
            user_message, ai_message = await asyncio.shield(reply_task)
            await self._notify_title_job(session)
            self.sink.record(
                "stream.done",
                chat_id=session.chat_id,
                user_message_id=user_message.id,
                ai_message_id=ai_message.id,
            )
            yield DoneEvent(
                user_message_id=user_message.id,
                ai_message_id=ai_message.id,
                new_chat_id=session.chat_id if session.chat_created else None,
            )
        except (asyncio.CancelledError, GeneratorExit):
            # Once a reply task exists the assistant message is owned by it
            if reply_task is None:
                self._handle_disconnect(session, user_task)
            raise
        except Exception:
            logger.exception("Chat stream failed for chat %s", session.chat_id)
            self.sink.record("stream.error", chat_id=session.chat_id, error=INTERNAL_ERROR_TEXT)
            yield ErrorEvent(error=INTERNAL_ERROR_TEXT)
        finally:
            if trace:
                trace.close(output={"length": len(session.text)})
            flush_langfuse()

    async def _persist_reply(
        self, session: StreamSession, user_task: asyncio.Task, content: str
    ) -> tuple[ChatMessage, ChatMessage]:
        user_message = await user_task
        ai_message = await self._persist_message(session, "assistant", content)
        return user_message, ai_message

    def _spawn_reply(self, session: StreamSession, user_task: asyncio.Task, content: str) -> asyncio.Task:
        """Store the assistant message detached, so a disconnect cannot interrupt it."""
        return self._spawn(
            self._persist_reply(session, user_task, content),
            name=f"assistant-message:{session.chat_id}",
        )

    def _handle_disconnect(self, session: StreamSession, user_task: asyncio.Task) -> None:
        partial = session.text
        self.sink.record(
            "stream.disconnected", chat_id=session.chat_id, accumulated=len(partial)
        )
        if not self.settings.persist_on_disconnect or not partial:
            return
        self._spawn_reply(session, user_task, partial)

    # ==================== Non-streaming send ====================

    async def send_message(
        self, request: SendMessageRequest, caller_id: Optional[str] = None
    ) -> SendMessageResponse:
        """Same rules as the stream, answered in one response."""
        session = await self.open_session(request, caller_id)
        user_message = await self._persist_message(session, "user", session.content)
        system_prompt = build_system_prompt(self.settings.persona_instruction, session.language)
        trace = start_trace(
            name="chat-message",
            chat_id=session.chat_id,
            caller_id=caller_id,
            metadata={"model": session.model, "language": session.language},
            tags=["chat"],
        )

        try:
            async for fragment in self.registry.stream_completion(
                session.model, system_prompt, session.content, trace=trace
            ):
                session.fragments.append(fragment)
            reply = session.text
            succeeded = True
        except ProviderError as e:
            reply = provider_error_text(session.model, e)
            succeeded = False
        finally:
            if trace:
                trace.close()
            flush_langfuse()

        ai_message = await self._persist_message(session, "assistant", reply)
        if succeeded:
            await self._notify_title_job(session)
        self.sink.record(
            "message.sent" if succeeded else "message.error",
            chat_id=session.chat_id,
            model=session.model,
        )

        return SendMessageResponse(
            user_message=user_message,
            ai_message=ai_message,
            new_chat_id=session.chat_id if session.chat_created else None,
        )

    # ==================== Reads ====================

    async def create_chat(self, caller_id: Optional[str] = None) -> Chat:
        return await self.repository.create_chat(
            title=self.settings.default_chat_title, owner=caller_id or None
        )

    async def list_chats(self, caller_id: Optional[str], limit: int = 50) -> list[Chat]:
        if not caller_id:
            return []
        return await self.repository.list_chats(caller_id, limit=limit)

    async def get_guest_chats(self, chat_ids: list[str]) -> list[Chat]:
        if not chat_ids:
            return []
        return await self.repository.get_guest_chats(chat_ids)

    async def get_messages(self, chat_id: str, caller_id: Optional[str]) -> list[ChatMessage]:
        chat = await self.repository.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError()
        if not self.policy.can_access_chat(chat, caller_id):
            raise ChatAccessDeniedError()
        return await self.repository.list_messages(chat_id)

    async def generate_title(
        self, chat_id: str, caller_id: Optional[str], model: Optional[str] = None
    ) -> str:
        """Run title generation in the request and return the stored title."""
        chat = await self.repository.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError()
        if not self.policy.can_access_chat(chat, caller_id):
            raise ChatAccessDeniedError()
        if self.title_generator is None:
            return chat.title

        title_model = (model or "").strip() or self.policy.default_model(caller_id)
        title = await self.title_generator.generate_title(chat_id, title_model, caller_id)
        if title is None:
            refreshed = await self.repository.get_chat(chat_id)
            return refreshed.title if refreshed else chat.title
        return title
