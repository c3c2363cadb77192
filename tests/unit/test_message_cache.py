from datetime import timedelta

import pytest

from chat.kv_store import CacheStorageError, JsonFileKeyValueStore, KeyValueStore
from chat.message_cache import ChatMessage, MessageCache
from tests.helpers import Clock


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self.items = {}
        self.fail = False

    async def get_item(self, key):
        if self.fail:
            raise CacheStorageError("disk unavailable")
        return self.items.get(key)

    async def set_item(self, key, value):
        if self.fail:
            raise CacheStorageError("disk unavailable")
        self.items[key] = value

    async def remove_item(self, key):
        self.items.pop(key, None)


def message(index, clock, **overrides):
    fields = {
        "message_id": f"m{index}",
        "sender_id": "player-1",
        "content": f"message {index}",
        "timestamp": clock.now + timedelta(seconds=index),
    }
    fields.update(overrides)
    return ChatMessage(**fields)


def make_cache(clock, storage=None, **kwargs):
    return MessageCache(storage or MemoryKeyValueStore(), clock=clock, **kwargs)


@pytest.mark.asyncio
async def test_put_then_get_within_and_after_ttl():
    clock = Clock()
    cache = make_cache(clock)
    m1, m2 = message(1, clock), message(2, clock)

    await cache.put("conv1", [m2, m1])
    fresh = await cache.get("conv1")

    assert fresh.messages == [m1, m2]
    assert fresh.is_cache_valid is True
    assert fresh.last_message_timestamp == m2.timestamp

    clock.advance(hours=12)
    stale = await cache.get("conv1")

    assert stale.is_cache_valid is False
    assert stale.messages == [m1, m2]


@pytest.mark.asyncio
async def test_unknown_conversation_is_an_invalid_empty_result():
    cache = make_cache(Clock())

    result = await cache.get("nobody")

    assert result.messages == []
    assert result.is_cache_valid is False
    assert result.last_message_timestamp is None


@pytest.mark.asyncio
async def test_append_merges_by_id_with_new_copy_winning():
    clock = Clock()
    cache = make_cache(clock)
    await cache.put("conv1", [message(1, clock), message(2, clock)])

    edited = message(2, clock, content="edited")
    await cache.put("conv1", [edited, message(3, clock)], append=True)

    result = await cache.get("conv1")
    assert [m.message_id for m in result.messages] == ["m1", "m2", "m3"]
    assert result.messages[1].content == "edited"


@pytest.mark.asyncio
async def test_put_without_append_replaces_and_caps_messages():
    clock = Clock()
    cache = make_cache(clock, max_messages=50)
    await cache.put("conv1", [message(i, clock) for i in range(60)])

    result = await cache.get("conv1")

    assert len(result.messages) == 50
    assert result.messages[0].message_id == "m10"
    assert result.messages[-1].message_id == "m59"

    await cache.put("conv1", [message(100, clock)])
    assert [m.message_id for m in (await cache.get("conv1")).messages] == ["m100"]


@pytest.mark.asyncio
async def test_persistent_tier_is_read_after_memory_is_dropped(tmp_path):
    clock = Clock()
    path = str(tmp_path / "cache.json")
    cache = make_cache(clock, JsonFileKeyValueStore(path))
    await cache.put("conv1", [message(1, clock)])

    reopened = make_cache(clock, JsonFileKeyValueStore(path))
    result = await reopened.get("conv1")

    assert [m.message_id for m in result.messages] == ["m1"]
    assert result.is_cache_valid is True
    assert (await reopened.stats()).in_memory_count == 1


@pytest.mark.asyncio
async def test_memory_tier_evicts_least_recently_used():
    clock = Clock()
    storage = MemoryKeyValueStore()
    cache = make_cache(clock, storage, max_conversations=2)
    await cache.put("a", [message(1, clock)])
    await cache.put("b", [message(1, clock)])
    await cache.get("a")
    await cache.put("c", [message(1, clock)])

    stats = await cache.stats()
    assert stats.in_memory_count == 2
    assert stats.total_conversations == 3
    # Evicted from memory only; still served from storage
    assert (await cache.get("b")).messages


@pytest.mark.asyncio
async def test_invalidate_and_invalidate_all():
    clock = Clock()
    storage = MemoryKeyValueStore()
    cache = make_cache(clock, storage)
    await cache.put("a", [message(1, clock)])
    await cache.put("b", [message(1, clock)])

    await cache.invalidate("a")
    assert (await cache.get("a")).messages == []
    assert (await cache.stats()).total_conversations == 1

    await cache.invalidate_all()
    assert storage.items == {}
    assert (await cache.get("b")).messages == []


@pytest.mark.asyncio
async def test_cleanup_stale_removes_only_expired_entries():
    clock = Clock()
    cache = make_cache(clock, ttl=timedelta(hours=1))
    await cache.put("old", [message(1, clock)])
    clock.advance(minutes=90)
    await cache.put("new", [message(2, clock)])

    removed = await cache.cleanup_stale()

    assert removed == 1
    assert (await cache.get("old")).messages == []
    stats = await cache.stats()
    assert stats.total_conversations == 1
    assert stats.total_messages == 1
    assert stats.oldest_cache == stats.newest_cache == clock.now


@pytest.mark.asyncio
async def test_preload_and_unload_move_entries_between_tiers():
    clock = Clock()
    storage = MemoryKeyValueStore()
    cache = make_cache(clock, storage)
    await cache.put("conv1", [message(1, clock)])

    cache.unload("conv1")
    assert (await cache.stats()).in_memory_count == 0

    await cache.preload("conv1")
    assert (await cache.stats()).in_memory_count == 1


@pytest.mark.asyncio
async def test_storage_errors_are_logged_and_reported_as_miss(caplog):
    clock = Clock()
    storage = MemoryKeyValueStore()
    cache = make_cache(clock, storage)
    storage.fail = True

    await cache.put("conv1", [message(1, clock)])
    cache.unload("conv1")
    result = await cache.get("conv1")

    assert result.messages == []
    assert result.is_cache_valid is False
    assert "Error saving cache" in caplog.text
    assert "Error reading cache" in caplog.text


@pytest.mark.asyncio
async def test_corrupt_entry_is_treated_as_miss():
    clock = Clock()
    storage = MemoryKeyValueStore()
    storage.items[MessageCache.cache_key("conv1")] = "{not json"
    cache = make_cache(clock, storage)

    assert (await cache.get("conv1")).messages == []


def test_cache_rejects_non_positive_bounds():
    with pytest.raises(ValueError):
        MessageCache(MemoryKeyValueStore(), max_messages=0)
    with pytest.raises(ValueError):
        MessageCache(MemoryKeyValueStore(), max_conversations=0)
