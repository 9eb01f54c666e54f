"""
In-Memory Tagged Cache Adapter.

Process-local CachePort for development and tests. Entries expire lazily on
read; tags are kept in a reverse index so a tag flush touches only the
entries carrying it. Values are deep-copied in and out, so a caller never
shares state with the cached entry.
"""

from __future__ import annotations

import copy
import threading
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any


@dataclass
class _Entry:
    value: Any
    expires_at: float | None
    tags: frozenset[str]


class InMemoryTaggedCache:
    def __init__(self, time_fn: Callable[[], float] = time.monotonic) -> None:
        self._time = time_fn
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}
        self._tag_index: dict[str, set[str]] = defaultdict(set)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= self._time():
                self._drop(key)
                return None
            return copy.deepcopy(entry.value)

    def put(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        expires_at = self._time() + ttl_seconds if ttl_seconds is not None else None
        with self._lock:
            self._drop(key)
            entry = _Entry(value=copy.deepcopy(value), expires_at=expires_at, tags=frozenset(tags))
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index[tag].add(key)

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._drop(key)

    def flush_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for tag in list(tags):
                for key in list(self._tag_index.pop(tag, ())):
                    if self._drop(key):
                        removed += 1
        return removed

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def _drop(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]
        return True
