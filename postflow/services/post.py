"""
PostService - create, update, delete, restore and bulk-manage posts.

Every write goes through the lifecycle hooks in a fixed order; the
repository itself never runs side effects. Slug collisions that slip past
the generator (concurrent writers) surface as UniqueConstraintError and are
retried with the next suffix.

Slug, list and published reads go through the "posts" cache group, which
every write invalidates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from postflow.core.ports.db import (
    NotFoundError,
    PersistenceError,
    PostRepoPort,
    TagRepoPort,
    UniqueConstraintError,
)
from postflow.core.ports.time import ClockPort
from postflow.core.services.cache import CacheService
from postflow.core.services.post_lifecycle import PostLifecycleHooks
from postflow.core.services.slug import SlugGenerator, slugify
from postflow.domain.entities import Post, Tag
from postflow.rules.models import Rules

logger = logging.getLogger(__name__)

BulkAction = Literal["publish", "draft", "archive", "delete", "feature", "unfeature"]
BULK_ACTIONS: tuple[BulkAction, ...] = (
    "publish",
    "draft",
    "archive",
    "delete",
    "feature",
    "unfeature",
)

_DIRECT_UPDATES: dict[str, dict[str, Any]] = {
    "draft": {"status": "draft"},
    "archive": {"status": "archived"},
    "feature": {"is_featured": True},
    "unfeature": {"is_featured": False},
}


@dataclass(frozen=True)
class BulkResult:
    action: str
    success: int = 0
    failed: int = 0


@dataclass(frozen=True)
class PostPage:
    items: list[Post]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.per_page))


@dataclass
class _SlugRetry:
    base: str
    attempts: int = 0
    tried: list[str] = field(default_factory=list)


class PostService:
    def __init__(
        self,
        posts: PostRepoPort,
        tags: TagRepoPort,
        hooks: PostLifecycleHooks,
        slugs: SlugGenerator,
        cache: CacheService,
        clock: ClockPort,
        rules: Rules | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._posts = posts
        self._tags = tags
        self._hooks = hooks
        self._slugs = slugs
        self._cache = cache
        self._clock = clock
        self._rules = rules or Rules()
        self._log = log or logger

    # --- Reads ---

    def get(self, post_id: int) -> Post:
        """Uncached read; writes start from this."""
        post = self._posts.get_by_id(post_id)
        if post is None:
            raise NotFoundError("post", post_id)
        post.tags = self._tags.list_for_post(post_id)
        return post

    def get_by_slug(self, slug: str) -> Post:
        post = self._cache.remember_posts(
            "slug", lambda: self._load_by_slug(slug), params={"slug": slug}
        )
        if post is None:
            raise NotFoundError("post", slug)
        return post

    def list(
        self,
        filters: dict[str, Any] | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> PostPage:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        page = max(1, page)

        def load() -> PostPage:
            items = self._posts.list_posts(filters, limit=per_page, offset=(page - 1) * per_page)
            return self._page(items, self._posts.count_posts(filters), page, per_page)

        params = {**filters, "page": page, "per_page": per_page}
        return self._cache.remember_posts("list", load, params=params)

    def published(self, page: int = 1, per_page: int = 20, tag: str | None = None) -> PostPage:
        """Published posts, newest publication first, optionally for one tag slug."""
        page = max(1, page)

        def load() -> PostPage:
            items = self._posts.list_published(
                limit=per_page, offset=(page - 1) * per_page, tag=tag
            )
            total = self._posts.count_posts({"status": "published", "tag": tag})
            return self._page(items, total, page, per_page)

        params = {"tag": tag, "page": page, "per_page": per_page}
        return self._cache.remember_posts("published", load, params=params)

    def _load_by_slug(self, slug: str) -> Post | None:
        post = self._posts.get_by_slug(slug)
        if post is None or post.id is None:
            return None
        post.tags = self._tags.list_for_post(post.id)
        return post

    def _page(self, items: list[Post], total: int, page: int, per_page: int) -> PostPage:
        for post in items:
            if post.id is not None:
                post.tags = self._tags.list_for_post(post.id)
        return PostPage(items=items, total=total, page=page, per_page=per_page)

    # --- Writes ---

    def create(self, post: Post, tags: str | list[str] | None = None) -> Post:
        if post.id is not None:
            raise ValueError("New posts must not carry an id")

        now = self._clock.now()
        post.created_at = now
        post.updated_at = now
        base = post.slug or slugify(post.title, self._rules.slug.fallback)

        self._hooks.before_create(post)
        saved = self._save_with_slug_retry(post, base)

        if tags is not None:
            saved.tags = self.sync_tags(saved, tags)

        saved = self._hooks.after_create(saved)
        # Reads may have refilled the posts group while the write was in flight
        self._cache.invalidate_posts()
        self._log.info("Post created", extra={"post_id": saved.id, "slug": saved.slug})
        return saved

    def update(
        self, post_id: int, changes: dict[str, Any], tags: str | list[str] | None = None
    ) -> Post:
        original = self.get(post_id)

        merged = original.model_dump()
        merged.update(changes)
        post = Post.model_validate(merged)
        # Blank slug only means "regenerate" when the title changes too
        if not post.slug and post.title == original.title:
            post.slug = original.slug
        post.updated_at = self._clock.now()

        base = post.slug or slugify(post.title, self._rules.slug.fallback)
        self._hooks.before_update(post, original)
        saved = self._save_with_slug_retry(post, base)

        if tags is not None:
            saved.tags = self.sync_tags(saved, tags)

        self._hooks.after_update(saved, original)
        self._cache.invalidate_posts()
        self._log.info(
            "Post updated",
            extra={"post_id": saved.id, "old_status": original.status, "new_status": saved.status},
        )
        return saved

    def delete(self, post_id: int) -> None:
        post = self.get(post_id)
        now = self._clock.now()

        self._hooks.before_delete(post)
        self._posts.soft_delete(post_id, now)
        post.deleted_at = now
        self._hooks.after_delete(post)
        self._log.info("Post deleted", extra={"post_id": post_id})

    def restore(self, post_id: int) -> Post:
        """Clear the tombstone. Slug and SEO fields are left as they were."""
        post = self._posts.get_by_id(post_id, include_deleted=True)
        if post is None:
            raise NotFoundError("post", post_id)
        if not post.is_deleted:
            return post

        self._posts.restore(post_id)
        post.deleted_at = None
        self._hooks.after_restore(post)
        self._log.info("Post restored", extra={"post_id": post_id})
        return post

    # --- Tags ---

    def sync_tags(self, post: Post, raw: str | list[str]) -> list[Tag]:
        """
        Replace the post's tags.

        raw is either a list of names or one string of names joined by the
        configured separator. Unknown tags are created.
        """
        if post.id is None:
            raise ValueError("Cannot tag an unsaved post")

        if isinstance(raw, str):
            raw = raw.split(self._rules.content.tag_separator)
        names = [n.strip() for n in raw]
        resolved: dict[str, Tag] = {}
        for name in names:
            slug = slugify(name)
            if not name or not slug or slug in resolved:
                continue
            resolved[slug] = self._tags.first_or_create(name, slug)

        tag_ids = [t.id for t in resolved.values() if t.id is not None]
        self._tags.sync(post.id, tag_ids)
        return list(resolved.values())

    # --- Bulk ---

    def bulk_action(self, action: str, post_ids: list[int]) -> BulkResult:
        """
        Apply an admin action to many posts.

        Status and feature toggles are direct column updates: no lifecycle
        hooks, no events. Delete runs the full delete path per post.
        """
        if action not in BULK_ACTIONS:
            raise ValueError(f"Unknown bulk action: {action}")

        ids = list(dict.fromkeys(post_ids))
        if action == "delete":
            return self._bulk_delete(ids)

        if action == "publish":
            updated = self._bulk_publish(ids)
        else:
            updated = self._posts.update_fields(ids, _DIRECT_UPDATES[action])

        if updated:
            self._cache.invalidate_on_mutation()

        result = BulkResult(action=action, success=updated, failed=len(ids) - updated)
        self._log.info(
            "Bulk action applied",
            extra={"action": action, "success": result.success, "failed": result.failed},
        )
        return result

    def _bulk_publish(self, ids: list[int]) -> int:
        now = self._clock.now()
        unset = []
        for post_id in ids:
            post = self._posts.get_by_id(post_id)
            if post is not None and post.published_at is None:
                unset.append(post_id)

        updated = self._posts.update_fields(ids, {"status": "published", "updated_at": now})
        if unset:
            self._posts.update_fields(unset, {"published_at": now})
        return updated

    def _bulk_delete(self, ids: list[int]) -> BulkResult:
        success = failed = 0
        for post_id in ids:
            try:
                self.delete(post_id)
            except Exception as e:
                failed += 1
                self._log.error(
                    "Bulk delete failed for post",
                    extra={"post_id": post_id, "error": str(e)},
                )
            else:
                success += 1
        return BulkResult(action="delete", success=success, failed=failed)

    # --- Persistence ---

    def _save_with_slug_retry(self, post: Post, base: str) -> Post:
        retry = _SlugRetry(base=base)
        max_attempts = self._rules.slug.max_attempts

        while True:
            retry.tried.append(post.slug)
            try:
                return self._posts.save(post)
            except UniqueConstraintError as e:
                if e.field != "slug":
                    raise
                retry.attempts += 1
                if retry.attempts >= max_attempts:
                    raise PersistenceError(
                        f"Could not find a free slug after {retry.attempts} attempts: "
                        f"{', '.join(retry.tried)}"
                    ) from e
                post.slug = self._slugs.unique_from(retry.base, post.id, start=retry.attempts)
                self._log.warning(
                    "Slug collision on save, retrying",
                    extra={"slug": e.value, "next_slug": post.slug, "attempt": retry.attempts},
                )
