"""
Queued listeners for post events.

SearchIndexUpdater keeps the search index in step with published posts;
NotificationDispatcher announces newly published posts on every configured
channel. Both run inside queue jobs: an exception raised from handle() is a
retry request for the worker.
"""

from __future__ import annotations

import logging
from typing import Any

from postflow.core.ports.notify import (
    ChannelResult,
    ChannelStatus,
    NotificationChannelPort,
    NotificationError,
)
from postflow.core.ports.search import SearchIndexPort
from postflow.core.services.events import PostEvent, PostPublished, PostStatusChanged
from postflow.domain.entities import Post
from postflow.domain.sanitize import strip_tags
from postflow.rules.models import NotificationRules

logger = logging.getLogger(__name__)

SEARCH_INDEX_QUEUE = "search-index"
NOTIFICATIONS_QUEUE = "notifications"


def post_url(post: Post, rules: NotificationRules) -> str:
    prefix = rules.post_path_prefix.rstrip("/")
    return f"{rules.site_url.rstrip('/')}{prefix}/{post.slug}"


def build_search_document(post: Post, url: str) -> dict[str, Any]:
    """Denormalized document stored in the search index for a post."""
    return {
        "id": post.id,
        "title": post.title,
        "content": strip_tags(post.content_html or post.content),
        "excerpt": post.excerpt,
        "author": post.author_name,
        "category": post.category_name,
        "tags": [tag.name for tag in post.tags],
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "slug": post.slug,
        "url": url,
    }


class SearchIndexUpdater:
    """Upsert on publish, remove on unpublish; other transitions are ignored."""

    def __init__(
        self,
        index: SearchIndexPort,
        rules: NotificationRules | None = None,
        queue: str = SEARCH_INDEX_QUEUE,
        tries: int = 3,
    ) -> None:
        self._index = index
        self._rules = rules or NotificationRules()
        self.queue = queue
        self.tries = tries

    def handles(self, event: PostEvent) -> bool:
        if isinstance(event, PostPublished):
            return True
        return event.is_publishing or event.is_unpublishing

    def handle(self, event: PostEvent) -> None:
        post = event.post
        try:
            if isinstance(event, PostPublished) or event.is_publishing:
                document = build_search_document(post, post_url(post, self._rules))
                self._index.upsert(post.id, document)
                logger.info("Post indexed", extra={"post_id": post.id})
            elif event.is_unpublishing:
                self._index.remove(post.id)
                logger.info("Post removed from search index", extra={"post_id": post.id})
        except Exception as e:
            logger.error(
                "Search index update failed",
                extra={"post_id": post.id, "event": type(event).__name__, "error": str(e)},
            )
            raise


class NotificationDispatcher:
    """
    Announce a published post to email, push and webhook channels.

    Channels are attempted independently. The job fails (and is retried)
    only when every channel raised.
    """

    def __init__(
        self,
        channels: list[NotificationChannelPort],
        rules: NotificationRules | None = None,
        queue: str = NOTIFICATIONS_QUEUE,
        tries: int = 3,
    ) -> None:
        self._channels = list(channels)
        self._rules = rules or NotificationRules()
        self.queue = queue
        self.tries = tries

    def handles(self, event: PostEvent) -> bool:
        return isinstance(event, PostPublished)

    def build_payload(self, post: Post) -> dict[str, Any]:
        return {
            "post_id": post.id,
            "title": post.title,
            "excerpt": post.excerpt,
            "author": post.author_name,
            "url": post_url(post, self._rules),
            "published_at": post.published_at.isoformat() if post.published_at else None,
            "admin_email": self._rules.admin_email,
            "webhook_url": self._rules.webhook_url,
        }

    def handle(self, event: PostEvent) -> None:
        if isinstance(event, PostStatusChanged):
            return

        post = event.post
        if not self._rules.enabled:
            logger.info("Notifications disabled, skipping", extra={"post_id": post.id})
            return

        payload = self.build_payload(post)
        errors: dict[str, str] = {}
        results: list[ChannelResult] = []

        for channel in self._channels:
            try:
                result = channel.send(payload)
            except Exception as e:
                errors[channel.name] = str(e)
                logger.error(
                    "Notification channel failed",
                    extra={"post_id": post.id, "channel": channel.name, "error": str(e)},
                )
                continue
            results.append(result)
            if result.status == ChannelStatus.FAILED:
                logger.warning(
                    "Notification channel reported failure",
                    extra={"post_id": post.id, "channel": channel.name, "error": result.error},
                )

        if self._channels and len(errors) == len(self._channels):
            raise NotificationError(post.id, errors)

        logger.info(
            "Post notifications sent",
            extra={"post_id": post.id, "sent": [r.channel for r in results if r.ok]},
        )
