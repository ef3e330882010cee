from .postgres_repository import PostgresConversationRepository
from .memory_repository import InMemoryConversationRepository
from .database import Base, engine_options, get_engine, get_session_maker, init_db, close_db
from .models import ChatDB, MessageDB

__all__ = [
    "PostgresConversationRepository",
    "InMemoryConversationRepository",
    "Base",
    "engine_options",
    "get_engine",
    "get_session_maker",
    "init_db",
    "close_db",
    "ChatDB",
    "MessageDB",
]
