from datetime import datetime, timezone
from typing import List, Optional
from collections import OrderedDict
from ...domain.entities import Chat, ChatMessage
from ...domain.repositories import ConversationRepository


class InMemoryConversationRepository(ConversationRepository):
    """In-memory implementation of the conversation store"""

    def __init__(self):
        self._chats: OrderedDict[str, Chat] = OrderedDict()
        self._messages: dict[str, list[ChatMessage]] = {}

    async def create_chat(self, title: str, owner: Optional[str] = None) -> Chat:
        chat = Chat(title=title, owner=owner)
        self._chats[chat.id] = chat
        self._messages[chat.id] = []
        return chat.model_copy()

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        chat = self._chats.get(chat_id)
        return chat.model_copy() if chat else None

    async def update_chat_title(self, chat_id: str, title: str) -> Optional[Chat]:
        chat = self._chats.get(chat_id)
        if chat is None:
            return None
        chat.title = title
        chat.updated_at = datetime.now(timezone.utc)
        return chat.model_copy()

    async def list_chats(self, owner: str, limit: int = 50) -> List[Chat]:
        items = [c for c in self._chats.values() if c.owner == owner]
        items.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy() for c in items[:limit]]

    async def get_guest_chats(self, chat_ids: list[str]) -> List[Chat]:
        wanted = set(chat_ids)
        items = [c for c in self._chats.values() if c.id in wanted and c.owner is None]
        items.sort(key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy() for c in items]

    async def create_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> ChatMessage:
        if chat_id not in self._chats:
            raise KeyError(f"Unknown chat: {chat_id}")
        message = ChatMessage(
            chat_id=chat_id,
            role=role,
            content=content,
            model=model,
            language=language,
        )
        # List order is insertion order, which breaks created_at ties
        self._messages[chat_id].append(message)
        self._chats[chat_id].updated_at = message.created_at
        return message.model_copy()

    async def list_messages(self, chat_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        items = sorted(self._messages.get(chat_id, []), key=lambda m: m.created_at)
        if limit is not None:
            items = items[:limit]
        return [m.model_copy() for m in items]

    async def count_messages(self, chat_id: str) -> int:
        return len(self._messages.get(chat_id, []))
