"""
Cache Adapter Interface.

Tagged key/value cache. Entries carry a set of tags; flushing a tag drops
every entry carrying it. Implementations: InMemoryTaggedCache (dev/test).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol


class CachePort(Protocol):
    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        ...

    def put(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Store a value. ttl_seconds=None stores forever."""
        ...

    def forget(self, key: str) -> bool:
        """Remove one key. Returns True if it existed."""
        ...

    def flush_tags(self, tags: Iterable[str]) -> int:
        """Remove every entry carrying any of the tags. Returns entries removed."""
        ...

    def flush(self) -> None:
        """Remove everything."""
        ...


class CacheError(Exception):
    """Cache backend failure."""
