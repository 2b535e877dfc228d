"""
Tests for lesson storage and the chat turn cache
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from clients import redis_client
from models.lesson_models import ChatRole, CompletionStatus
from utils.lesson_storage import ChatStorage, ContentStorage


def seed_turns(store, count: int, content_id: str = "c1"):
    for n in range(1, count + 1):
        store.seed("lesson_chat_history", {
            "userKey": "u1",
            "contentId": content_id,
            "type": "user" if n % 2 else "ai",
            "message": f"turn {n}",
            "createdAt": f"2026-03-01T10:00:{n:02d}",
        })


@pytest.mark.unit
class TestChatStorage:
    @pytest.mark.asyncio
    async def test_recent_turns_are_the_newest_oldest_first(self, store):
        seed_turns(store, 8)
        seed_turns(store, 2, content_id="other")

        turns = await ChatStorage(store).get_recent("u1", "c1")

        assert [t["message"] for t in turns] == ["turn 4", "turn 5", "turn 6", "turn 7", "turn 8"]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_the_database(self, store, monkeypatch):
        cached = [{"type": "user", "message": "from cache"}]
        monkeypatch.setattr(redis_client, "get_recent_turns", AsyncMock(return_value=cached))

        turns = await ChatStorage(store).get_recent("u1", "c1")

        assert turns == cached
        assert "find:lesson_chat_history" not in store.calls

    @pytest.mark.asyncio
    async def test_cache_miss_warms_the_cache(self, store, monkeypatch):
        seed_turns(store, 3)
        cache_turns = AsyncMock(return_value=True)
        monkeypatch.setattr(redis_client, "get_recent_turns", AsyncMock(return_value=None))
        monkeypatch.setattr(redis_client, "cache_turns", cache_turns)

        await ChatStorage(store).get_recent("u1", "c1")

        content_id, user_key, turns, version = cache_turns.await_args.args
        assert (content_id, user_key, version) == ("c1", "u1", None)
        assert [t["message"] for t in turns] == ["turn 1", "turn 2", "turn 3"]

    @pytest.mark.asyncio
    async def test_append_invalidates_the_cache(self, store, monkeypatch):
        invalidate = AsyncMock()
        monkeypatch.setattr(redis_client, "invalidate", invalidate)

        row = await ChatStorage(store).append("u1", "c1", ChatRole.AI, "hello", lesson_id="l1")

        assert row["type"] == "ai"
        assert row["lessonId"] == "l1"
        invalidate.assert_awaited_once_with("c1", "u1")

    @pytest.mark.asyncio
    async def test_cache_is_off_without_redis_url(self, monkeypatch):
        monkeypatch.setattr(redis_client, "_redis_available", None)
        monkeypatch.setattr(redis_client, "_redis_client", None)

        assert await redis_client.get_recent_turns("c1", "u1", 5) is None
        assert await redis_client.cache_turns("c1", "u1", [{"message": "x"}]) is False
        assert redis_client._redis_available is False


@pytest.mark.unit
class TestContentStorage:
    @pytest.mark.asyncio
    async def test_sections_come_back_in_sequence_order(self, store):
        for n in (3, 1, 2):
            store.seed("lesson_contents", {"lessonId": "l1", "sequenceNumber": n, "title": f"s{n}"})

        sections = await ContentStorage(store).get_sections("l1")

        assert [s["sequenceNumber"] for s in sections] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_update_progress_stamps_access_time(self, store):
        section = store.seed("lesson_contents", {"lessonId": "l1", "sequenceNumber": 1})

        updated = await ContentStorage(store).update_progress(section["id"], CompletionStatus.IN_PROGRESS, 40)

        assert updated["completionStatus"] == "in_progress"
        assert updated["currentProgress"] == 40
        assert updated["lastAccessedAt"] == updated["updatedAt"]

    @pytest.mark.asyncio
    async def test_batch_of_invalid_documents_writes_nothing(self, store):
        inserted, rejected = await ContentStorage(store).insert_sections([{"sequenceNumber": 1}])

        assert inserted == []
        assert len(rejected) == 1
        assert store.rows("lesson_contents") == []


class VersionedPipeline:
    """Just enough of a redis.asyncio transaction pipeline for cache_turns."""

    def __init__(self, current_version):
        self.current_version = current_version
        self.queued = []
        self.executed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def watch(self, key):
        self.watched = key

    async def get(self, key):
        return self.current_version

    def multi(self):
        pass

    def delete(self, key):
        self.queued.append(("delete", key))

    def rpush(self, key, *values):
        self.queued.append(("rpush", key, len(values)))

    def expire(self, key, seconds):
        self.queued.append(("expire", key, seconds))

    async def execute(self):
        self.executed = True


@pytest.mark.unit
class TestChatCache:
    @pytest.fixture
    def fresh_cache(self, monkeypatch):
        monkeypatch.setattr(redis_client, "_redis_available", None)
        monkeypatch.setattr(redis_client, "_redis_client", None)

    @pytest.mark.asyncio
    async def test_malformed_url_disables_the_cache(self, monkeypatch, fresh_cache, store):
        monkeypatch.setenv("REDIS_URL", "localhost:6379")
        seed_turns(store, 2)

        turns = await ChatStorage(store).get_recent("u1", "c1")

        assert [t["message"] for t in turns] == ["turn 1", "turn 2"]
        assert redis_client._redis_available is False

    @pytest.mark.asyncio
    async def test_unreachable_server_disables_the_cache(self, monkeypatch, fresh_cache, store):
        monkeypatch.setenv("REDIS_URL", "redis://cache.internal:6379/0")
        client = MagicMock()
        client.ping = AsyncMock(side_effect=ConnectionError("connection refused"))
        monkeypatch.setattr(redis_client, "aioredis", SimpleNamespace(from_url=MagicMock(return_value=client)))
        seed_turns(store, 1)

        turns = await ChatStorage(store).get_recent("u1", "c1")

        assert [t["message"] for t in turns] == ["turn 1"]
        assert redis_client._redis_available is False
        assert redis_client._redis_client is None

    @pytest.mark.asyncio
    async def test_version_is_read_before_the_database(self, store, monkeypatch):
        seed_turns(store, 2)

        async def read_version(content_id, user_key):
            store.calls.append("version")
            return "7"

        cache_turns = AsyncMock(return_value=True)
        monkeypatch.setattr(redis_client, "get_recent_turns", AsyncMock(return_value=None))
        monkeypatch.setattr(redis_client, "turns_version", read_version)
        monkeypatch.setattr(redis_client, "cache_turns", cache_turns)

        await ChatStorage(store).get_recent("u1", "c1")

        assert store.calls.index("version") < store.calls.index("find:lesson_chat_history")
        assert cache_turns.await_args.args[3] == "7"

    @pytest.mark.asyncio
    async def test_refill_is_skipped_when_a_turn_landed_during_the_read(self, monkeypatch):
        pipeline = VersionedPipeline(current_version="8")
        monkeypatch.setattr(redis_client, "_redis_available", True)
        monkeypatch.setattr(redis_client, "_redis_client", SimpleNamespace(pipeline=lambda transaction: pipeline))

        cached = await redis_client.cache_turns("c1", "u1", [{"message": "old"}], version="7")

        assert cached is False
        assert pipeline.queued == []
        assert pipeline.executed is False

    @pytest.mark.asyncio
    async def test_refill_replaces_the_window_when_unchanged(self, monkeypatch):
        pipeline = VersionedPipeline(current_version="7")
        monkeypatch.setattr(redis_client, "_redis_available", True)
        monkeypatch.setattr(redis_client, "_redis_client", SimpleNamespace(pipeline=lambda transaction: pipeline))

        cached = await redis_client.cache_turns("c1", "u1", [{"message": "a"}, {"message": "b"}], version="7")

        assert cached is True
        assert pipeline.watched == "lesson-chat:c1:u1:version"
        assert pipeline.queued == [
            ("delete", "lesson-chat:c1:u1"),
            ("rpush", "lesson-chat:c1:u1", 2),
            ("expire", "lesson-chat:c1:u1", redis_client.TURNS_TTL_SECONDS),
        ]
        assert pipeline.executed is True
