"""
Post Lifecycle Observer - side effects around post create/update/delete/restore.

PostService calls these hooks explicitly around each repository write:

    before_create -> save -> after_create
    before_update -> save -> after_update
    before_delete -> soft_delete -> after_delete
    restore -> after_restore

Before-hooks mutate the post in place. Dirty tracking compares the post with
the snapshot taken before the caller applied its changes (`original`).
"""

from __future__ import annotations

import logging
from typing import Protocol

from postflow.core.ports.db import PostRepoPort, RelatedDataPort
from postflow.core.ports.storage import ImageStorePort
from postflow.core.ports.time import ClockPort
from postflow.core.services.cache import CacheService
from postflow.core.services.events import (
    EventDispatcher,
    LifecycleSignal,
    PostPublished,
    PostStatusChanged,
    SignalBus,
)
from postflow.core.services.markdown_renderer import MarkdownRenderer
from postflow.core.services.seo import apply_seo_defaults
from postflow.core.services.slug import SlugGenerator
from postflow.domain.entities import Image, Post
from postflow.domain.state import ensure_published_at
from postflow.rules.models import Rules

logger = logging.getLogger(__name__)

_SEO_SOURCE_FIELDS = ("title", "content", "excerpt")


class PostLifecycleHooks(Protocol):
    def before_create(self, post: Post) -> None:
        ...

    def after_create(self, post: Post) -> Post:
        ...

    def before_update(self, post: Post, original: Post) -> None:
        ...

    def after_update(self, post: Post, original: Post) -> None:
        ...

    def before_delete(self, post: Post) -> None:
        ...

    def after_delete(self, post: Post) -> None:
        ...

    def after_restore(self, post: Post) -> None:
        ...


class PostObserver:
    def __init__(
        self,
        slugs: SlugGenerator,
        renderer: MarkdownRenderer,
        cache: CacheService,
        posts: PostRepoPort,
        related: RelatedDataPort,
        images: ImageStorePort,
        signals: SignalBus,
        events: EventDispatcher,
        clock: ClockPort,
        rules: Rules | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._slugs = slugs
        self._renderer = renderer
        self._cache = cache
        self._posts = posts
        self._related = related
        self._images = images
        self._signals = signals
        self._events = events
        self._clock = clock
        self._rules = rules or Rules()
        self._log = log or logger

    # --- Create ---

    def before_create(self, post: Post) -> None:
        self._generate_slug(post)
        self._render_markdown(post)
        ensure_published_at(post, self._clock.now())
        apply_seo_defaults(post, self._rules.seo)
        self._cache.invalidate_on_mutation()

    def after_create(self, post: Post) -> Post:
        self._derive_content_fields(post)
        saved = self._posts.save(post)
        self._signals.publish(LifecycleSignal.CREATED, saved)
        return saved

    # --- Update ---

    def before_update(self, post: Post, original: Post) -> None:
        if post.title != original.title and not post.slug:
            self._generate_slug(post)

        if post.content != original.content:
            self._render_markdown(post)
            self._derive_content_fields(post)

        if post.status != original.status or post.published_at != original.published_at:
            ensure_published_at(post, self._clock.now())

        if any(getattr(post, f) != getattr(original, f) for f in _SEO_SOURCE_FIELDS):
            apply_seo_defaults(post, self._rules.seo)

        self._cache.invalidate_on_mutation()

    def after_update(self, post: Post, original: Post) -> None:
        # Jobs run later; they get a copy the caller cannot mutate
        snapshot = post.model_copy(deep=True)

        if post.status != original.status:
            self._events.dispatch(PostStatusChanged(snapshot, original.status, post.status))

        if post.status == "published" and original.status != "published":
            self._events.dispatch(PostPublished(snapshot))

    # --- Delete / restore ---

    def before_delete(self, post: Post) -> None:
        self._cache.invalidate_on_mutation()
        self._cleanup_related_data(post)
        self._signals.publish(LifecycleSignal.DELETING, post)

    def after_delete(self, post: Post) -> None:
        self._signals.publish(LifecycleSignal.DELETED, post)

    def after_restore(self, post: Post) -> None:
        self._cache.invalidate_on_mutation()
        self._signals.publish(LifecycleSignal.RESTORED, post)

    # --- Steps ---

    def _generate_slug(self, post: Post) -> None:
        if not post.slug and post.title:
            post.slug = self._slugs.generate(post.title, exclude_id=post.id)

    def _render_markdown(self, post: Post) -> None:
        if post.content:
            post.content_html = self._renderer.render(post.content)

    def _derive_content_fields(self, post: Post) -> None:
        if not post.content:
            return
        if not post.excerpt:
            post.excerpt = self._renderer.excerpt(post.content, self._rules.content.excerpt_length)
        post.reading_time = self._renderer.reading_time(post.content)

    def _cleanup_related_data(self, post: Post) -> None:
        """Best-effort removal of records and files owned by a post."""
        if post.id is None:
            return
        try:
            for image in self._related.list_images(post.id):
                self._delete_image(image)

            self._related.soft_delete_comments(post.id, self._clock.now())
            self._related.delete_views(post.id)
            self._related.detach_tags(post.id)
            self._related.detach_likes(post.id)
        except Exception as e:
            self._log.error(
                "Failed to clean up related data for post",
                extra={"post_id": post.id, "error": str(e)},
                exc_info=True,
            )
            if self._rules.cleanup.strict:
                raise

    def _delete_image(self, image: Image) -> None:
        try:
            for path in image.physical_paths():
                self._images.delete(path)
            if image.id is not None:
                self._related.delete_image(image.id)
        except Exception as e:
            self._log.warning(
                "Failed to delete image during post cleanup",
                extra={"image_id": image.id, "post_id": image.post_id, "error": str(e)},
            )
            if self._rules.cleanup.strict:
                raise
