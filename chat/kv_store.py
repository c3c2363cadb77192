"""Persistent string key-value storage for the message cache."""

from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional


class CacheStorageError(RuntimeError):
    """Raised when the persistent tier cannot be read or written."""


class KeyValueStore(abc.ABC):
    """String-keyed, string-valued async storage."""

    @abc.abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        ...

    @abc.abstractmethod
    async def remove_item(self, key: str) -> None:
        ...

    async def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            await self.remove_item(key)


class JsonFileKeyValueStore(KeyValueStore):
    """Keeps every key in one JSON object on disk."""

    def __init__(self, file_path: str) -> None:
        self._path = Path(file_path)
        self.logger = logging.getLogger('KeyValueStore')
        self._items: Dict[str, str] = self._load()

    async def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Values must be strings, got {type(value).__name__}")
        self._items[key] = value
        self._save()

    async def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._save()

    async def multi_remove(self, keys: Iterable[str]) -> None:
        removed = [key for key in keys if self._items.pop(key, None) is not None]
        if removed:
            self._save()

    def keys(self):
        return list(self._items)

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open('r', encoding='utf-8') as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            raise CacheStorageError(f"Failed to read {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise CacheStorageError(f"Invalid key-value file {self._path}")
        return {str(key): str(value) for key, value in payload.items()}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open('w', encoding='utf-8') as handle:
                json.dump(self._items, handle, ensure_ascii=False)
        except OSError as exc:
            raise CacheStorageError(f"Failed to write {self._path}: {exc}") from exc
        self.logger.debug("Key-value store saved to %s", self._path)
