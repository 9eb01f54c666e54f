"""
Tests for CacheService key building, read-through and tag invalidation.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from postflow.adapters.memory_cache import InMemoryTaggedCache
from postflow.core.ports.cache import CacheError
from postflow.core.services.cache import CacheService
from postflow.rules.models import CacheRules


@pytest.fixture
def store() -> InMemoryTaggedCache:
    return InMemoryTaggedCache()


@pytest.fixture
def cache(store) -> CacheService:
    return CacheService(store, CacheRules(prefix="blog"))


class TestKeys:
    def test_plain_key(self, cache) -> None:
        assert cache.make_key("posts:index") == "blog:posts:index"

    def test_params_hashed_stably(self, cache) -> None:
        a = cache.make_key("posts:list", {"page": 2, "sort": "latest"})
        b = cache.make_key("posts:list", {"sort": "latest", "page": 2})
        c = cache.make_key("posts:list", {"page": 3, "sort": "latest"})
        assert a == b
        assert a != c
        assert a.startswith("blog:posts:list:")


class TestRemember:
    def test_callback_runs_once(self, cache) -> None:
        callback = MagicMock(return_value=[1, 2])
        assert cache.remember_posts("index", callback) == [1, 2]
        assert cache.remember_posts("index", callback) == [1, 2]
        callback.assert_called_once()

    def test_entries_carry_default_and_group_tags(self, cache, store) -> None:
        cache.remember_stats("totals", lambda: {"posts": 3})
        assert store.flush_tags(["blog"]) == 1

    def test_disabled_cache_always_calls_through(self, store) -> None:
        cache = CacheService(store, CacheRules(enabled=False))
        callback = MagicMock(return_value="v")
        cache.remember_posts("index", callback)
        cache.remember_posts("index", callback)
        assert callback.call_count == 2
        assert store.keys() == []

    def test_forget(self, cache, store) -> None:
        cache.remember_posts("index", lambda: "v")
        assert cache.forget("posts:index") is True
        assert store.keys() == []


class TestInvalidation:
    def test_invalidate_by_tags_only_flushes_given_tags(self, cache, store) -> None:
        cache.remember_posts("index", lambda: "posts")
        cache.remember_static("sitemap", lambda: "xml")

        assert cache.invalidate_by_tags(["static"]) is True
        assert store.keys() == ["blog:posts:index"]

    def test_mutation_flushes_post_and_static_groups(self, cache, store) -> None:
        cache.remember_posts("index", lambda: "posts")
        cache.remember_stats("totals", lambda: "stats")
        cache.remember_static("feed", lambda: "rss")
        store.put("unrelated", "keep", tags=["other"])

        assert cache.invalidate_on_mutation() is True
        assert store.keys() == ["unrelated"]

    def test_auto_invalidate_off(self, store) -> None:
        cache = CacheService(store, CacheRules(auto_invalidate_on_post_save=False))
        cache.remember_posts("index", lambda: "posts")
        cache.invalidate_on_mutation()
        assert len(store.keys()) == 1

    def test_store_failure_reported_not_raised(self) -> None:
        store = MagicMock()
        store.flush_tags.side_effect = CacheError("redis down")
        log = MagicMock()
        cache = CacheService(store, CacheRules(), log=log)

        assert cache.invalidate_posts() is False
        log.error.assert_called_once()

    def test_flush(self, cache, store) -> None:
        cache.remember_posts("index", lambda: "posts")
        assert cache.flush() is True
        assert store.keys() == []

    def test_stats(self, cache) -> None:
        stats = cache.stats()
        assert stats["prefix"] == "blog"
        assert stats["default_tags"] == ["blog"]
        assert stats["ttl_settings"]["posts"] == 3600
