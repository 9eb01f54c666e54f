"""
Database Adapter Interfaces.

Protocol-based interfaces for repository operations.
Implementations: SQLite (postflow.adapters.sqlite.repos).

Key requirements:
- "not found" and "unique constraint violated" are distinguishable outcomes
- saves never trigger lifecycle hooks; PostService invokes hooks explicitly
- soft-deleted posts are invisible to get_by_slug / slug_exists / list_posts
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from postflow.domain.entities import Image, Post, Tag

# -----------------------------------------------------------------------------
# Post Repository
# -----------------------------------------------------------------------------


class PostRepoPort(Protocol):
    """
    Repository for posts.

    Invariants:
    - slug is unique among non-deleted posts
    - id is assigned on first save and never changes
    """

    def save(self, post: Post) -> Post:
        """
        Insert or update a post. Assigns post.id on insert.

        Raises:
            UniqueConstraintError: slug collides with another live post
            NotFoundError: updating a post id that does not exist
        """
        ...

    def get_by_id(self, post_id: int, include_deleted: bool = False) -> Post | None:
        """Get post by id, or None."""
        ...

    def get_by_slug(self, slug: str) -> Post | None:
        """Get a live post by slug, or None."""
        ...

    def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        """Check whether a live post other than exclude_id uses slug."""
        ...

    def list_posts(
        self,
        filters: dict[str, Any] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Post]:
        """
        List live posts.

        Supported filters: status, user_id, category_id, tag (tag slug),
        search, date_from, date_to, is_featured, sort, sort_dir.
        """
        ...

    def list_published(
        self, limit: int = 20, offset: int = 0, tag: str | None = None
    ) -> list[Post]:
        """Live published posts, newest published_at first."""
        ...

    def count_posts(self, filters: dict[str, Any] | None = None) -> int:
        """Count live posts matching filters."""
        ...

    def soft_delete(self, post_id: int, at: datetime) -> None:
        """Mark a post deleted (tombstone)."""
        ...

    def restore(self, post_id: int) -> None:
        """Clear the tombstone on a post."""
        ...

    def update_fields(self, post_ids: list[int], fields: dict[str, Any]) -> int:
        """Direct column update for bulk admin actions. Returns affected rows."""
        ...


# -----------------------------------------------------------------------------
# Tag Repository
# -----------------------------------------------------------------------------


class TagRepoPort(Protocol):
    """Repository for tags and the post/tag association."""

    def first_or_create(self, name: str, slug: str) -> Tag:
        """Return the tag with this slug, creating it if needed."""
        ...

    def sync(self, post_id: int, tag_ids: list[int]) -> None:
        """Replace the tag set of a post."""
        ...

    def list_for_post(self, post_id: int) -> list[Tag]:
        """Tags attached to a post, ordered by name."""
        ...


# -----------------------------------------------------------------------------
# Related data owned by a post
# -----------------------------------------------------------------------------


class RelatedDataPort(Protocol):
    """Records owned by or associated with a post, cleaned up on delete."""

    def list_images(self, post_id: int) -> list[Image]:
        ...

    def delete_image(self, image_id: int) -> None:
        ...

    def soft_delete_comments(self, post_id: int, at: datetime) -> int:
        ...

    def delete_views(self, post_id: int) -> int:
        ...

    def detach_tags(self, post_id: int) -> None:
        ...

    def detach_likes(self, post_id: int) -> None:
        ...

    def list_image_paths(self) -> set[str]:
        """Every physical path referenced by an image record."""
        ...


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------


class RepoError(Exception):
    """Base class for repository errors."""


class NotFoundError(RepoError):
    """Requested record does not exist."""

    def __init__(self, entity: str, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class UniqueConstraintError(RepoError):
    """A unique column already holds the value."""

    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field}: {value}")


class PersistenceError(RepoError):
    """Persistence failed and could not be recovered locally."""
