from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# One engine per process, created on first use
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments for the chat store at ``database_url``."""
    options = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10)
    return options


def _enforce_sqlite_foreign_keys(dbapi_connection, _connection_record):
    # messages.chat_id only cascades when the pragma is on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: str) -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(database_url, **engine_options(database_url))
        if database_url.startswith("sqlite"):
            event.listen(_engine.sync_engine, "connect", _enforce_sqlite_foreign_keys)
    return _engine


def get_session_maker(database_url: str) -> async_sessionmaker[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(database_url),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def init_db(database_url: str) -> None:
    """Create the chats and messages tables if they are missing.

    Alembic owns the schema in deployed environments; this keeps local runs
    and tests working without a migration step.
    """
    from . import models  # noqa: F401

    async with get_engine(database_url).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_maker
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_maker = None
