"""Client-side view of one conversation.

The view merges three sources into one ordered list:

* messages persisted on the server (refetched after each send),
* the optimistic echo of the message being sent,
* the assistant text arriving on the stream, or the error that replaced it.

Ephemeral entries are hidden as soon as the persisted list contains the same
role and content among the messages that arrived after the send started.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from ..domain.entities import ChatMessage
from ..infrastructure.observability import ObservabilitySink, NullSink


class ViewState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    SETTLED = "settled"


@dataclass(frozen=True)
class ViewEntry:
    role: str
    content: str
    persisted: bool
    id: Optional[str] = None


class ConversationView:
    def __init__(self, chat_id: Optional[str] = None, sink: Optional[ObservabilitySink] = None):
        self.chat_id = chat_id
        self.sink = sink or NullSink()
        self.state = ViewState.IDLE
        self.persisted: List[ChatMessage] = []
        self.pending_user: Optional[str] = None
        self.streaming_content = ""
        self.is_streaming = False
        self.error: Optional[str] = None
        # Index into ``persisted`` where messages of the current send may appear
        self._baseline = 0

    def adopt_chat(self, chat_id: Optional[str]) -> bool:
        """Take ``chat_id`` as the active chat unless one is already active."""
        if self.chat_id or not chat_id:
            return False
        self.chat_id = chat_id
        self.sink.record("view.chat_adopted", chat_id=chat_id)
        return True

    def begin_send(self, content: str) -> None:
        self.pending_user = content
        self.streaming_content = ""
        self.error = None
        self.is_streaming = True
        self._baseline = len(self.persisted)
        self.state = ViewState.SENDING

    def append_token(self, token: str) -> None:
        self.streaming_content += token
        self.state = ViewState.STREAMING

    def fail(self, message: str) -> None:
        self.error = message
        self.is_streaming = False
        self.state = ViewState.SETTLED
        self.sink.record("view.error", chat_id=self.chat_id, error=message)

    def complete(self) -> None:
        self.is_streaming = False
        self.state = ViewState.SETTLED

    @property
    def ephemeral_reply(self) -> str:
        return self.error if self.error else self.streaming_content

    def _arrived(self, role: str, content: str) -> bool:
        return any(
            m.role == role and m.content == content
            for m in self.persisted[self._baseline:]
        )

    def apply_persisted(self, messages: Iterable[ChatMessage]) -> None:
        """Replace the persisted list and drop whatever it now covers."""
        self.persisted = list(messages)
        if self._baseline > len(self.persisted):
            self._baseline = len(self.persisted)

        if self.pending_user is not None and self._arrived("user", self.pending_user):
            self.pending_user = None

        reply = self.ephemeral_reply
        if not self.is_streaming and reply:
            last_assistant = next(
                (m for m in reversed(self.persisted[self._baseline:]) if m.role == "assistant"),
                None,
            )
            if last_assistant is not None and last_assistant.content == reply:
                self.streaming_content = ""
                self.error = None

        if (
            self.state is ViewState.SETTLED
            and self.pending_user is None
            and not self.ephemeral_reply
        ):
            self.state = ViewState.IDLE
            self.sink.record("view.reconciled", chat_id=self.chat_id, messages=len(self.persisted))

    def render(self) -> List[ViewEntry]:
        entries = [
            ViewEntry(role=m.role, content=m.content, persisted=True, id=m.id)
            for m in self.persisted
        ]

        if self.pending_user is not None and not self._arrived("user", self.pending_user):
            entries.append(ViewEntry(role="user", content=self.pending_user, persisted=False))

        reply = self.ephemeral_reply
        if (self.is_streaming or reply) and not (reply and self._arrived("assistant", reply)):
            entries.append(ViewEntry(role="assistant", content=reply, persisted=False))

        return entries
