from .chat import (
    CamelModel,
    Chat,
    ChatMessage,
    SendMessageRequest,
    SendMessageResponse,
    ChatIdsRequest,
    GenerateTitleRequest,
    TitleResponse,
)
from .events import (
    ConnectedEvent,
    TokenEvent,
    ErrorEvent,
    DoneEvent,
    StreamEvent,
    encode_event,
    decode_event,
)
from .catalog import ModelInfo, LanguageOption, MODEL_CATALOG, LANGUAGES

__all__ = [
    "CamelModel",
    "Chat",
    "ChatMessage",
    "SendMessageRequest",
    "SendMessageResponse",
    "ChatIdsRequest",
    "GenerateTitleRequest",
    "TitleResponse",
    "ConnectedEvent",
    "TokenEvent",
    "ErrorEvent",
    "DoneEvent",
    "StreamEvent",
    "encode_event",
    "decode_event",
    "ModelInfo",
    "LanguageOption",
    "MODEL_CATALOG",
    "LANGUAGES",
]
