"""Local caching for chat screens."""

from .kv_store import CacheStorageError, JsonFileKeyValueStore, KeyValueStore
from .message_cache import CachedMessages, CacheStats, ChatMessage, MessageCache

__all__ = [
    "CacheStorageError",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "CachedMessages",
    "CacheStats",
    "ChatMessage",
    "MessageCache",
]
