import pytest

from chat.kv_store import CacheStorageError, JsonFileKeyValueStore


@pytest.mark.asyncio
async def test_values_persist_across_instances(tmp_path):
    path = str(tmp_path / "kv" / "store.json")
    store = JsonFileKeyValueStore(path)

    await store.set_item("a", "1")
    await store.set_item("b", "2")
    await store.multi_remove(["b", "missing"])

    reopened = JsonFileKeyValueStore(path)
    assert await reopened.get_item("a") == "1"
    assert await reopened.get_item("b") is None
    assert reopened.keys() == ["a"]


@pytest.mark.asyncio
async def test_only_string_values_are_accepted(tmp_path):
    store = JsonFileKeyValueStore(str(tmp_path / "store.json"))

    with pytest.raises(TypeError):
        await store.set_item("a", 1)


def test_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(CacheStorageError):
        JsonFileKeyValueStore(str(path))
