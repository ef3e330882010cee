from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatDB(Base):
    """Database model for a conversation"""
    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    # Null owner means the chat belongs to a guest
    owner_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, index=True)

    messages = relationship(
        "MessageDB",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="MessageDB.created_at",
        lazy="noload",
    )


class MessageDB(Base):
    """Database model for a single chat message"""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    model = Column(String(100), nullable=True)
    language = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    # Per-chat insertion counter, breaks created_at ties
    position = Column(Integer, nullable=False, default=0)

    chat = relationship("ChatDB", back_populates="messages")
