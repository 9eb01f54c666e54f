from datetime import datetime

from postflow.domain.entities import Post, PostStatus


def is_publishing(old: PostStatus | str | None, new: PostStatus | str | None) -> bool:
    """True when a post moves into "published" from any other status."""
    return old != "published" and new == "published"


def is_unpublishing(old: PostStatus | str | None, new: PostStatus | str | None) -> bool:
    """True when a post leaves "published" for any other status."""
    return old == "published" and new != "published"


def ensure_published_at(post: Post, now: datetime) -> Post:
    """
    Stamp published_at on a published post that has none.

    Leaving "published" never clears the timestamp; it is kept as history.
    """
    if post.status == "published" and post.published_at is None:
        post.published_at = now
    return post
