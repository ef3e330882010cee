from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Literal, Optional
from datetime import datetime, timezone
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Chat(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    owner: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_guest_owned(self) -> bool:
        return self.owner is None


class ChatMessage(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    chat_id: str
    role: Literal["user", "assistant"]
    content: str
    model: Optional[str] = None
    language: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class SendMessageRequest(CamelModel):
    chat_id: Optional[str] = None
    # Left optional so a missing field is reported like an empty one
    content: str = ""
    model: Optional[str] = None
    language: Optional[str] = None


class SendMessageResponse(CamelModel):
    user_message: ChatMessage
    ai_message: ChatMessage
    new_chat_id: Optional[str] = None


class ChatIdsRequest(CamelModel):
    chat_ids: list[str] = Field(default_factory=list)


class GenerateTitleRequest(CamelModel):
    model: Optional[str] = None


class TitleResponse(CamelModel):
    chat_id: str
    title: str
