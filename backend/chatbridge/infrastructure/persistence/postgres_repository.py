from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...domain.entities import Chat, ChatMessage
from ...domain.repositories import ConversationRepository
from .models import ChatDB, MessageDB


class PostgresConversationRepository(ConversationRepository):
    """SQLAlchemy implementation of the conversation store.

    Targets PostgreSQL in production; any async SQLAlchemy URL works.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    def _chat_to_entity(self, db_chat: ChatDB) -> Chat:
        return Chat(
            id=db_chat.id,
            title=db_chat.title,
            owner=db_chat.owner_id,
            created_at=db_chat.created_at,
            updated_at=db_chat.updated_at,
        )

    def _message_to_entity(self, db_message: MessageDB) -> ChatMessage:
        return ChatMessage(
            id=db_message.id,
            chat_id=db_message.chat_id,
            role=db_message.role,
            content=db_message.content,
            model=db_message.model,
            language=db_message.language,
            created_at=db_message.created_at,
        )

    async def create_chat(self, title: str, owner: Optional[str] = None) -> Chat:
        """Create a chat; a null owner makes it guest-owned"""
        now = datetime.now(timezone.utc)
        async with self._session_maker() as session:
            db_chat = ChatDB(title=title, owner_id=owner, created_at=now, updated_at=now)
            session.add(db_chat)
            await session.commit()
            return self._chat_to_entity(db_chat)

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        async with self._session_maker() as session:
            result = await session.execute(select(ChatDB).where(ChatDB.id == chat_id))
            db_chat = result.scalar_one_or_none()
            if db_chat is None:
                return None
            return self._chat_to_entity(db_chat)

    async def update_chat_title(self, chat_id: str, title: str) -> Optional[Chat]:
        async with self._session_maker() as session:
            result = await session.execute(select(ChatDB).where(ChatDB.id == chat_id))
            db_chat = result.scalar_one_or_none()
            if db_chat is None:
                return None
            db_chat.title = title
            db_chat.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return self._chat_to_entity(db_chat)

    async def list_chats(self, owner: str, limit: int = 50) -> List[Chat]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(ChatDB)
                .where(ChatDB.owner_id == owner)
                .order_by(ChatDB.updated_at.desc())
                .limit(limit)
            )
            return [self._chat_to_entity(c) for c in result.scalars().all()]

    async def get_guest_chats(self, chat_ids: list[str]) -> List[Chat]:
        if not chat_ids:
            return []
        async with self._session_maker() as session:
            result = await session.execute(
                select(ChatDB)
                .where(ChatDB.id.in_(chat_ids), ChatDB.owner_id.is_(None))
                .order_by(ChatDB.updated_at.desc())
            )
            return [self._chat_to_entity(c) for c in result.scalars().all()]

    async def create_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> ChatMessage:
        """Insert a message and bump the chat's updated_at in one transaction"""
        now = datetime.now(timezone.utc)
        async with self._session_maker() as session:
            last_position = await session.execute(
                select(func.coalesce(func.max(MessageDB.position), 0)).where(MessageDB.chat_id == chat_id)
            )
            db_message = MessageDB(
                chat_id=chat_id,
                role=role,
                content=content,
                model=model,
                language=language,
                created_at=now,
                position=last_position.scalar_one() + 1,
            )
            session.add(db_message)
            await session.execute(
                update(ChatDB).where(ChatDB.id == chat_id).values(updated_at=now)
            )
            await session.commit()
            return self._message_to_entity(db_message)

    async def list_messages(self, chat_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        async with self._session_maker() as session:
            query = (
                select(MessageDB)
                .where(MessageDB.chat_id == chat_id)
                .order_by(MessageDB.created_at.asc(), MessageDB.position.asc(), MessageDB.id.asc())
            )
            if limit is not None:
                query = query.limit(limit)
            result = await session.execute(query)
            return [self._message_to_entity(m) for m in result.scalars().all()]

    async def count_messages(self, chat_id: str) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                select(func.count(MessageDB.id)).where(MessageDB.chat_id == chat_id)
            )
            return result.scalar() or 0
