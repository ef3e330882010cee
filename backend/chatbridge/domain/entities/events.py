"""Wire events of the chat stream.

Every event is written as a single ``data: <json>`` line followed by a blank
line. ``connected`` is always first; ``done`` or ``error`` is always last.
"""
import json
from typing import Literal, Optional, Union

from .chat import CamelModel

EVENT_PREFIX = "data: "


class ConnectedEvent(CamelModel):
    connected: Literal[True] = True
    new_chat_id: Optional[str] = None


class TokenEvent(CamelModel):
    token: str


class ErrorEvent(CamelModel):
    error: str


class DoneEvent(CamelModel):
    done: Literal[True] = True
    user_message_id: str
    ai_message_id: str
    new_chat_id: Optional[str] = None


StreamEvent = Union[ConnectedEvent, TokenEvent, ErrorEvent, DoneEvent]


def encode_event(event: StreamEvent) -> str:
    payload = event.model_dump_json(by_alias=True, exclude_none=True)
    return f"{EVENT_PREFIX}{payload}\n\n"


def decode_event(line: str) -> Optional[StreamEvent]:
    """Parse one line of the stream. Returns None for blank or foreign lines."""
    line = line.strip()
    if not line.startswith(EVENT_PREFIX.strip()):
        return None

    raw = line[len(EVENT_PREFIX.strip()):].strip()
    if not raw:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        return None

    if data.get("connected"):
        return ConnectedEvent.model_validate(data)
    if "error" in data:
        return ErrorEvent.model_validate(data)
    if data.get("done"):
        return DoneEvent.model_validate(data)
    if "token" in data:
        return TokenEvent.model_validate(data)
    return None
