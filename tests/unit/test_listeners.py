"""
Tests for the search index and notification listeners.
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from postflow.adapters.memory_search import InMemorySearchIndex
from postflow.core.ports.notify import NotificationError
from postflow.core.services.events import PostPublished, PostStatusChanged
from postflow.core.services.listeners import (
    NotificationDispatcher,
    SearchIndexUpdater,
    build_search_document,
    post_url,
)
from postflow.domain.entities import Tag
from postflow.rules.models import NotificationRules
from tests.fakes import RecordingChannel, make_post

PUBLISHED_AT = datetime(2026, 2, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def notify_rules() -> NotificationRules:
    return NotificationRules(
        site_url="https://blog.example.com/",
        post_path_prefix="/posts/",
        admin_email="admin@example.com",
        webhook_url="https://hooks.example.com/x",
    )


@pytest.fixture
def published_post():
    return make_post(
        id=4,
        slug="hello-world",
        status="published",
        published_at=PUBLISHED_AT,
        content_html="<h1>Intro</h1><p>Some <strong>bold</strong> text &amp; more</p>",
        excerpt="Intro text",
        tags=[Tag(id=1, name="Python", slug="python")],
    )


class TestSearchDocument:
    def test_post_url_joins_cleanly(self, notify_rules, published_post) -> None:
        url = post_url(published_post, notify_rules)
        assert url == "https://blog.example.com/posts/hello-world"

    def test_document_fields(self, published_post) -> None:
        doc = build_search_document(published_post, "https://x/posts/hello-world")
        assert doc["id"] == 4
        assert doc["title"] == "Hello World!!"
        assert doc["content"] == "Intro Some bold text & more"
        assert doc["tags"] == ["Python"]
        assert doc["category"] == "News"
        assert doc["author"] == "Ada"
        assert doc["published_at"] == PUBLISHED_AT.isoformat()
        assert doc["url"] == "https://x/posts/hello-world"


class TestSearchIndexUpdater:
    def test_handles_only_publish_boundary_changes(self, published_post) -> None:
        updater = SearchIndexUpdater(InMemorySearchIndex())
        assert updater.handles(PostPublished(published_post))
        assert updater.handles(PostStatusChanged(published_post, "draft", "published"))
        assert updater.handles(PostStatusChanged(published_post, "published", "draft"))
        assert not updater.handles(PostStatusChanged(published_post, "draft", "archived"))

    def test_publish_upserts(self, notify_rules, published_post) -> None:
        index = InMemorySearchIndex()
        updater = SearchIndexUpdater(index, notify_rules)
        updater.handle(PostPublished(published_post))

        assert 4 in index
        assert index.get(4)["url"] == "https://blog.example.com/posts/hello-world"

    def test_upsert_is_idempotent(self, published_post) -> None:
        index = InMemorySearchIndex()
        updater = SearchIndexUpdater(index)
        updater.handle(PostPublished(published_post))
        updater.handle(PostStatusChanged(published_post, "draft", "published"))
        assert len(index) == 1

    def test_unpublish_removes(self, published_post) -> None:
        index = InMemorySearchIndex()
        updater = SearchIndexUpdater(index)
        updater.handle(PostPublished(published_post))

        archived = published_post.model_copy(update={"status": "archived"})
        updater.handle(PostStatusChanged(archived, "published", "archived"))
        assert 4 not in index

    def test_index_failure_propagates_for_retry(self, published_post) -> None:
        index = MagicMock()
        index.upsert.side_effect = ConnectionError("search down")
        updater = SearchIndexUpdater(index)

        with pytest.raises(ConnectionError):
            updater.handle(PostPublished(published_post))


class TestNotificationDispatcher:
    def test_handles_only_published(self, published_post) -> None:
        dispatcher = NotificationDispatcher([])
        assert dispatcher.handles(PostPublished(published_post))
        assert not dispatcher.handles(PostStatusChanged(published_post, "draft", "published"))

    def test_payload(self, notify_rules, published_post) -> None:
        payload = NotificationDispatcher([], notify_rules).build_payload(published_post)
        assert payload == {
            "post_id": 4,
            "title": "Hello World!!",
            "excerpt": "Intro text",
            "author": "Ada",
            "url": "https://blog.example.com/posts/hello-world",
            "published_at": PUBLISHED_AT.isoformat(),
            "admin_email": "admin@example.com",
            "webhook_url": "https://hooks.example.com/x",
        }

    def test_every_channel_receives_payload(self, notify_rules, published_post) -> None:
        channels = [RecordingChannel("email"), RecordingChannel("push")]
        NotificationDispatcher(channels, notify_rules).handle(PostPublished(published_post))
        assert all(len(c.payloads) == 1 for c in channels)

    def test_one_failing_channel_does_not_block_others(self, published_post) -> None:
        email = RecordingChannel("email", fail=True)
        push = RecordingChannel("push")
        webhook = RecordingChannel("webhook")

        NotificationDispatcher([email, push, webhook]).handle(PostPublished(published_post))

        assert push.payloads and webhook.payloads

    def test_all_channels_failing_raises(self, published_post) -> None:
        channels = [RecordingChannel("email", fail=True), RecordingChannel("push", fail=True)]
        with pytest.raises(NotificationError) as exc:
            NotificationDispatcher(channels).handle(PostPublished(published_post))

        assert exc.value.post_id == 4
        assert set(exc.value.errors) == {"email", "push"}

    def test_disabled_sends_nothing(self, published_post) -> None:
        channel = RecordingChannel("email")
        rules = NotificationRules(enabled=False)
        NotificationDispatcher([channel], rules).handle(PostPublished(published_post))
        assert channel.payloads == []
