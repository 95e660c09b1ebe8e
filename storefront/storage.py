"""Browser-session style key/value storage.

Mirrors ``window.sessionStorage``: string keys, string values, scoped to
one shopper session. Callers JSON-encode what they store.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    """In-process session storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


def load_json(storage: SessionStorage, key: str, default: Any) -> Any:
    """Read a JSON value; unreadable entries count as missing."""
    raw = storage.get_item(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable storage entry %s", key)
        storage.remove_item(key)
        return default


def save_json(storage: SessionStorage, key: str, value: Any) -> None:
    storage.set_item(key, json.dumps(value))
