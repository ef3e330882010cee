"""Contract tests run against both conversation repositories."""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chatbridge.infrastructure.persistence import (
    Base,
    engine_options,
    InMemoryConversationRepository,
    PostgresConversationRepository,
)
from chatbridge.infrastructure.persistence import postgres_repository


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryConversationRepository()
        return

    url = f"sqlite+aiosqlite:///{tmp_path / 'chats.db'}"
    engine = create_async_engine(url, **engine_options(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield PostgresConversationRepository(session_maker)
    await engine.dispose()


class _FrozenDatetime(datetime):
    @classmethod
    def now(cls, tz=None):
        return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


async def _tick():
    # Keeps timestamps of consecutive writes apart
    await asyncio.sleep(0.002)


class TestChats:
    async def test_create_and_get(self, repo):
        chat = await repo.create_chat("Hello there", owner="user-1")

        fetched = await repo.get_chat(chat.id)

        assert fetched.id == chat.id
        assert fetched.title == "Hello there"
        assert fetched.owner == "user-1"
        assert not fetched.is_guest_owned

    async def test_get_missing_chat(self, repo):
        assert await repo.get_chat("does-not-exist") is None

    async def test_guest_chat_has_no_owner(self, repo):
        chat = await repo.create_chat("Guest")

        assert (await repo.get_chat(chat.id)).is_guest_owned

    async def test_update_title_is_idempotent(self, repo):
        chat = await repo.create_chat("Old")

        await repo.update_chat_title(chat.id, "Weekend Trip Plans")
        await repo.update_chat_title(chat.id, "Weekend Trip Plans")

        assert (await repo.get_chat(chat.id)).title == "Weekend Trip Plans"

    async def test_update_title_missing_chat(self, repo):
        assert await repo.update_chat_title("missing", "Title") is None

    async def test_list_chats_filters_owner_and_orders_by_update(self, repo):
        first = await repo.create_chat("First", owner="user-1")
        await _tick()
        second = await repo.create_chat("Second", owner="user-1")
        await _tick()
        await repo.create_chat("Other", owner="user-2")
        await _tick()
        await repo.create_message(first.id, "user", "bump")

        chats = await repo.list_chats("user-1")

        assert [c.id for c in chats] == [first.id, second.id]

    async def test_list_chats_limit(self, repo):
        for i in range(3):
            await repo.create_chat(f"Chat {i}", owner="user-1")
            await _tick()

        assert len(await repo.list_chats("user-1", limit=2)) == 2

    async def test_guest_chats_by_ids_skip_owned(self, repo):
        guest = await repo.create_chat("Guest")
        owned = await repo.create_chat("Owned", owner="user-1")

        chats = await repo.get_guest_chats([guest.id, owned.id, "unknown"])

        assert [c.id for c in chats] == [guest.id]


class TestMessages:
    async def test_messages_oldest_first(self, repo):
        chat = await repo.create_chat("Chat")
        user = await repo.create_message(chat.id, "user", "Hi", model="gpt-3.5-turbo", language="auto")
        await _tick()
        ai = await repo.create_message(chat.id, "assistant", "Hello!", model="gpt-3.5-turbo")

        messages = await repo.list_messages(chat.id)

        assert [m.id for m in messages] == [user.id, ai.id]
        assert messages[0].role == "user"
        assert messages[0].language == "auto"
        assert messages[1].language is None
        assert messages[1].model == "gpt-3.5-turbo"

    async def test_list_messages_limit(self, repo):
        chat = await repo.create_chat("Chat")
        for i in range(5):
            await repo.create_message(chat.id, "user", f"m{i}")
            await _tick()

        messages = await repo.list_messages(chat.id, limit=4)

        assert [m.content for m in messages] == ["m0", "m1", "m2", "m3"]

    async def test_equal_timestamps_keep_insertion_order(self, repo, monkeypatch):
        monkeypatch.setattr(postgres_repository, "datetime", _FrozenDatetime)
        chat = await repo.create_chat("Chat")
        for content in ["c", "a", "d", "b"]:
            await repo.create_message(chat.id, "user", content)

        messages = await repo.list_messages(chat.id)

        assert [m.content for m in messages] == ["c", "a", "d", "b"]

    async def test_count_messages(self, repo):
        chat = await repo.create_chat("Chat")
        assert await repo.count_messages(chat.id) == 0

        await repo.create_message(chat.id, "user", "one")
        await repo.create_message(chat.id, "assistant", "two")

        assert await repo.count_messages(chat.id) == 2

    async def test_empty_content_allowed(self, repo):
        chat = await repo.create_chat("Chat")

        message = await repo.create_message(chat.id, "assistant", "")

        assert (await repo.list_messages(chat.id))[0].id == message.id
