"""Two-tier read-through cache for chat message lists.

Lookups hit an in-memory LRU of recently opened conversations first and fall
back to the persistent key-value tier. The cache is never authoritative: a
stale entry is still returned so the caller can fetch only newer messages and
merge them in with ``append=True``.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import pytz

from chat.kv_store import CacheStorageError, KeyValueStore
from infrastructure.constants import (
    MESSAGE_CACHE_MAX_CONVERSATIONS,
    MESSAGE_CACHE_MAX_MESSAGES,
    MESSAGE_CACHE_METADATA_KEY,
    MESSAGE_CACHE_PREFIX,
    MESSAGE_CACHE_TTL_HOURS,
)

# Failures from the persistent tier or from decoding its blobs.
CACHE_ERRORS = (CacheStorageError, ValueError, TypeError, KeyError)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed


@dataclass(frozen=True)
class ChatMessage:
    message_id: str
    sender_id: str
    content: str
    timestamp: datetime
    message_type: str = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.message_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "message_type": self.message_type,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatMessage":
        return cls(
            message_id=str(payload["id"]),
            sender_id=str(payload["sender_id"]),
            content=str(payload.get("content", "")),
            message_type=str(payload.get("message_type") or "text"),
            timestamp=_parse_timestamp(payload["timestamp"]),
        )


@dataclass
class CachedConversation:
    messages: List[ChatMessage]
    last_fetched_at: datetime
    last_message_timestamp: Optional[datetime]

    def to_json(self) -> str:
        return json.dumps({
            "messages": [message.to_dict() for message in self.messages],
            "last_fetched_at": self.last_fetched_at.isoformat(),
            "last_message_timestamp": (
                self.last_message_timestamp.isoformat()
                if self.last_message_timestamp
                else None
            ),
        })

    @classmethod
    def from_json(cls, raw: str) -> "CachedConversation":
        payload = json.loads(raw)
        last_message = payload.get("last_message_timestamp")
        return cls(
            messages=[ChatMessage.from_dict(item) for item in payload.get("messages", [])],
            last_fetched_at=_parse_timestamp(payload["last_fetched_at"]),
            last_message_timestamp=_parse_timestamp(last_message) if last_message else None,
        )


@dataclass(frozen=True)
class CachedMessages:
    """Result of a cache lookup."""

    messages: List[ChatMessage] = field(default_factory=list)
    last_message_timestamp: Optional[datetime] = None
    is_cache_valid: bool = False


@dataclass(frozen=True)
class CacheStats:
    total_conversations: int
    total_messages: int
    in_memory_count: int
    oldest_cache: Optional[datetime]
    newest_cache: Optional[datetime]


class MessageCache:
    """
    Read-through cache keyed by conversation id.

    Attributes:
        ttl (timedelta): Freshness window for an entry
        max_messages (int): Newest messages kept per conversation
        max_conversations (int): Conversations held in the memory tier
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        ttl: timedelta = timedelta(hours=MESSAGE_CACHE_TTL_HOURS),
        max_messages: int = MESSAGE_CACHE_MAX_MESSAGES,
        max_conversations: int = MESSAGE_CACHE_MAX_CONVERSATIONS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if max_conversations < 1:
            raise ValueError("max_conversations must be at least 1")
        self.storage = storage
        self.ttl = ttl
        self.max_messages = max_messages
        self.max_conversations = max_conversations
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self._memory: "OrderedDict[str, CachedConversation]" = OrderedDict()
        self.logger = logging.getLogger('MessageCache')

    @staticmethod
    def cache_key(conversation_id: str) -> str:
        return f"{MESSAGE_CACHE_PREFIX}{conversation_id}"

    async def get(self, conversation_id: str) -> CachedMessages:
        """Return cached messages, checking memory first, then persistent storage."""

        cached = self._memory.get(conversation_id)
        if cached is not None:
            self._memory.move_to_end(conversation_id)
            fresh = self.is_fresh(cached.last_fetched_at)
            self.logger.debug(
                "In-memory hit for %s: %s messages, fresh: %s",
                conversation_id,
                len(cached.messages),
                fresh,
            )
            return self._result(cached, fresh)

        try:
            raw = await self.storage.get_item(self.cache_key(conversation_id))
            if raw is None:
                self.logger.debug("No cache for %s", conversation_id)
                return CachedMessages()
            cached = CachedConversation.from_json(raw)
        except CACHE_ERRORS as exc:
            self.logger.error("Error reading cache for %s: %s", conversation_id, exc)
            return CachedMessages()

        self._remember(conversation_id, cached)
        fresh = self.is_fresh(cached.last_fetched_at)
        self.logger.debug(
            "Storage hit for %s: %s messages, fresh: %s",
            conversation_id,
            len(cached.messages),
            fresh,
        )
        return self._result(cached, fresh)

    async def put(
        self,
        conversation_id: str,
        messages: Iterable[ChatMessage],
        append: bool = False,
    ) -> None:
        """Store ``messages``; with ``append`` they are merged into the cached list by id."""

        now = self._clock()
        final = sorted(messages, key=lambda message: message.timestamp)

        if append:
            existing = await self.get(conversation_id)
            if existing.messages:
                merged: Dict[str, ChatMessage] = {m.message_id: m for m in existing.messages}
                for message in final:
                    merged[message.message_id] = message
                final = sorted(merged.values(), key=lambda message: message.timestamp)

        if len(final) > self.max_messages:
            final = final[-self.max_messages:]

        cached = CachedConversation(
            messages=final,
            last_fetched_at=now,
            last_message_timestamp=final[-1].timestamp if final else None,
        )
        self._remember(conversation_id, cached)

        try:
            await self.storage.set_item(self.cache_key(conversation_id), cached.to_json())
            await self._update_metadata(conversation_id, cached)
        except CACHE_ERRORS as exc:
            self.logger.error("Error saving cache for %s: %s", conversation_id, exc)
            return

        self.logger.debug("Saved %s messages for %s", len(final), conversation_id)

    async def invalidate(self, conversation_id: str) -> None:
        self._memory.pop(conversation_id, None)
        try:
            await self.storage.remove_item(self.cache_key(conversation_id))
            metadata = await self._load_metadata()
            if metadata.pop(conversation_id, None) is not None:
                await self.storage.set_item(MESSAGE_CACHE_METADATA_KEY, json.dumps(metadata))
        except CACHE_ERRORS as exc:
            self.logger.error("Error clearing cache for %s: %s", conversation_id, exc)
            return
        self.logger.debug("Cleared cache for %s", conversation_id)

    async def invalidate_all(self) -> None:
        """Drop every cached conversation from both tiers (used on logout)."""

        conversation_ids = set(self._memory)
        self._memory.clear()
        try:
            metadata = await self._load_metadata()
            conversation_ids.update(metadata)
            keys = [self.cache_key(cid) for cid in conversation_ids]
            keys.append(MESSAGE_CACHE_METADATA_KEY)
            await self.storage.multi_remove(keys)
        except CACHE_ERRORS as exc:
            self.logger.error("Error clearing all caches: %s", exc)
            return
        self.logger.info("All message caches cleared (%s conversations)", len(conversation_ids))

    async def cleanup_stale(self) -> int:
        """Remove entries older than the TTL; returns how many were dropped."""

        try:
            metadata = await self._load_metadata()
            stale = [
                conversation_id
                for conversation_id, meta in metadata.items()
                if not self.is_fresh(_parse_timestamp(meta["last_fetched_at"]))
            ]
            if not stale:
                return 0
            for conversation_id in stale:
                metadata.pop(conversation_id, None)
                self._memory.pop(conversation_id, None)
            await self.storage.multi_remove(self.cache_key(cid) for cid in stale)
            await self.storage.set_item(MESSAGE_CACHE_METADATA_KEY, json.dumps(metadata))
        except CACHE_ERRORS as exc:
            self.logger.error("Error cleaning up stale caches: %s", exc)
            return 0

        self.logger.info("Cleaned up %s stale caches", len(stale))
        return len(stale)

    async def stats(self) -> CacheStats:
        try:
            metadata = await self._load_metadata()
        except CACHE_ERRORS as exc:
            self.logger.error("Error getting cache stats: %s", exc)
            metadata = {}

        fetched = [_parse_timestamp(meta["last_fetched_at"]) for meta in metadata.values()]
        return CacheStats(
            total_conversations=len(metadata),
            total_messages=sum(int(meta.get("message_count", 0)) for meta in metadata.values()),
            in_memory_count=len(self._memory),
            oldest_cache=min(fetched) if fetched else None,
            newest_cache=max(fetched) if fetched else None,
        )

    async def preload(self, conversation_id: str) -> None:
        """Pull a conversation into memory before its chat screen opens."""
        await self.get(conversation_id)

    def unload(self, conversation_id: str) -> None:
        self._memory.pop(conversation_id, None)

    def is_fresh(self, last_fetched_at: datetime) -> bool:
        return (self._clock() - last_fetched_at) < self.ttl

    def _remember(self, conversation_id: str, cached: CachedConversation) -> None:
        self._memory[conversation_id] = cached
        self._memory.move_to_end(conversation_id)
        while len(self._memory) > self.max_conversations:
            evicted, _ = self._memory.popitem(last=False)
            self.logger.debug("Evicted %s from the in-memory tier", evicted)

    @staticmethod
    def _result(cached: CachedConversation, fresh: bool) -> CachedMessages:
        return CachedMessages(
            messages=list(cached.messages),
            last_message_timestamp=cached.last_message_timestamp,
            is_cache_valid=fresh,
        )

    async def _load_metadata(self) -> Dict[str, Dict[str, Any]]:
        raw = await self.storage.get_item(MESSAGE_CACHE_METADATA_KEY)
        if not raw:
            return {}
        metadata = json.loads(raw)
        if not isinstance(metadata, dict):
            raise ValueError("Cache metadata is not an object")
        return metadata

    async def _update_metadata(self, conversation_id: str, cached: CachedConversation) -> None:
        metadata = await self._load_metadata()
        metadata[conversation_id] = {
            "conversation_id": conversation_id,
            "message_count": len(cached.messages),
            "last_fetched_at": cached.last_fetched_at.isoformat(),
            "last_message_timestamp": (
                cached.last_message_timestamp.isoformat()
                if cached.last_message_timestamp
                else None
            ),
        }
        await self.storage.set_item(MESSAGE_CACHE_METADATA_KEY, json.dumps(metadata))
