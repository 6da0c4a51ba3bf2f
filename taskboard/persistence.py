"""Best-effort persistence of board state to a key-value store.

Reads and writes never raise: on any failure the adapter logs and falls back
(``load`` returns the default, ``save`` drops the write). In-memory state
stays authoritative for the running session.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol, TypeVar

from pydantic import TypeAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store, useful for tests and throwaway sessions."""

    def __init__(self, items: Optional[dict[str, str]] = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def clear(self) -> None:
        self.items.clear()


class Persistence:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self, key: str, default: T, schema: Optional[TypeAdapter] = None) -> T:
        """Read and decode ``key``; return ``default`` when missing or unreadable.

        With ``schema`` the stored JSON is validated by pydantic, which also
        turns ISO-8601 strings back into datetimes.
        """
        try:
            raw = self.store.get_item(key)
            if not raw:
                logger.debug("No stored value for %s, using default", key)
                return default
            if schema is not None:
                return schema.validate_json(raw)
            return json.loads(raw)
        except Exception as e:
            logger.warning("Failed to load %s from storage: %s", key, e)
            return default

    def save(self, key: str, value: Any, schema: Optional[TypeAdapter] = None) -> None:
        try:
            if schema is not None:
                raw = schema.dump_json(value).decode("utf-8")
            else:
                raw = json.dumps(value)
            self.store.set_item(key, raw)
        except Exception as e:
            logger.error("Failed to save %s to storage: %s", key, e)

    def remove(self, key: str) -> None:
        try:
            self.store.remove_item(key)
        except Exception as e:
            logger.error("Failed to remove %s from storage: %s", key, e)

    def clear(self) -> None:
        try:
            self.store.clear()
        except Exception as e:
            logger.error("Failed to clear storage: %s", e)
