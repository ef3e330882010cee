from .reconciler import ConversationView, ViewEntry, ViewState
from .stream_consumer import (
    ChatStreamClient,
    ChatClientError,
    StreamLineBuffer,
    StreamOutcome,
)

__all__ = [
    "ConversationView",
    "ViewEntry",
    "ViewState",
    "ChatStreamClient",
    "ChatClientError",
    "StreamLineBuffer",
    "StreamOutcome",
]
