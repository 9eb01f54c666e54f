"""
CacheService - read-through caching and coarse invalidation for blog pages.

Key behaviors:
- Keys are namespaced "{prefix}:{key}" with an md5 suffix for parameters
- Every entry carries the default "blog" tag plus its group tag
- Any post mutation flushes the posts/stats groups and the static, sitemap
  and feed groups; there is no per-id invalidation
- Invalidation never raises: store failures are logged and reported as False
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from postflow.core.ports.cache import CachePort
from postflow.rules.models import CacheRules

T = TypeVar("T")

logger = logging.getLogger(__name__)

POST_TAGS = ("posts", "stats")


class CacheService:
    def __init__(
        self,
        store: CachePort,
        rules: CacheRules | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._rules = rules or CacheRules()
        self._log = log or logger

    @property
    def enabled(self) -> bool:
        return self._rules.enabled

    # --- Keys ---

    def make_key(self, key: str, params: dict[str, Any] | None = None) -> str:
        parts = [self._rules.prefix, key]
        if params:
            encoded = json.dumps(params, sort_keys=True, default=str).encode()
            parts.append(hashlib.md5(encoded).hexdigest())
        return ":".join(parts)

    def _tags(self, tags: Iterable[str]) -> list[str]:
        return list(dict.fromkeys([*self._rules.default_tags, *tags]))

    # --- Read-through ---

    def remember(
        self,
        key: str,
        ttl_seconds: int | None,
        callback: Callable[[], T],
        tags: Iterable[str] = (),
    ) -> T:
        if not self.enabled:
            return callback()

        cached = self._store.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        value = callback()
        self._store.put(key, value, ttl_seconds=ttl_seconds, tags=self._tags(tags))
        return value

    def remember_posts(
        self, key: str, callback: Callable[[], T], params: dict[str, Any] | None = None
    ) -> T:
        full_key = self.make_key(f"posts:{key}", params)
        return self.remember(full_key, self._rules.ttl.posts, callback, ["posts"])

    def remember_stats(
        self, key: str, callback: Callable[[], T], params: dict[str, Any] | None = None
    ) -> T:
        full_key = self.make_key(f"stats:{key}", params)
        return self.remember(full_key, self._rules.ttl.stats, callback, ["stats"])

    def remember_static(
        self, key: str, callback: Callable[[], T], params: dict[str, Any] | None = None
    ) -> T:
        """RSS, sitemap and other rarely changing documents."""
        full_key = self.make_key(f"static:{key}", params)
        return self.remember(full_key, self._rules.ttl.static, callback, ["static"])

    def forget(self, key: str, params: dict[str, Any] | None = None) -> bool:
        return self._store.forget(self.make_key(key, params))

    # --- Invalidation ---

    def invalidate_by_tags(self, tags: Iterable[str]) -> bool:
        tags = list(tags)
        if not self.enabled:
            return True

        try:
            removed = self._store.flush_tags(tags)
        except Exception as e:
            self._log.error(
                "Cache invalidation failed",
                extra={"tags": tags, "error": str(e)},
            )
            return False

        self._log.debug("Cache invalidated", extra={"tags": tags, "removed": removed})
        return True

    def invalidate_posts(self) -> bool:
        return self.invalidate_by_tags(POST_TAGS)

    def invalidate_on_mutation(self) -> bool:
        """Coarse invalidation run on every post create/update/delete/restore."""
        if not self._rules.auto_invalidate_on_post_save:
            return True
        posts_ok = self.invalidate_posts()
        static_ok = self.invalidate_by_tags(self._rules.mutation_tags)
        return posts_ok and static_ok

    def flush(self) -> bool:
        if not self.enabled:
            return True
        try:
            self._store.flush()
        except Exception as e:
            self._log.error("Full cache flush failed", extra={"error": str(e)})
            return False
        return True

    def stats(self) -> dict[str, Any]:
        return {
            "prefix": self._rules.prefix,
            "default_tags": list(self._rules.default_tags),
            "enabled": self.enabled,
            "ttl_settings": self._rules.ttl.model_dump(),
        }
