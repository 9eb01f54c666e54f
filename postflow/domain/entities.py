from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

# --- Enums / Literals ---
PostStatus = Literal["draft", "published", "archived"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


# --- Taxonomy ---

class Tag(BaseModel):
    id: int | None = None
    name: str
    slug: str


# --- Post ---

class Post(BaseModel):
    id: int | None = None
    user_id: int | None = None
    author_name: str = ""

    title: str
    slug: str = ""
    content: str
    content_html: str = ""
    excerpt: str = ""
    featured_image: str | None = None

    category_id: int
    category_name: str = ""
    tags: list[Tag] = Field(default_factory=list)

    status: PostStatus = "draft"
    published_at: datetime | None = None

    # SEO block; every field is defaulted independently when blank
    meta_title: str = ""
    meta_description: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str | None = None
    og_type: str = ""
    canonical_url: str | None = None
    meta_keywords: list[str] = Field(default_factory=list)
    index_follow: bool = True

    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0

    is_featured: bool = False
    allow_comments: bool = True
    reading_time: int = 1

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None  # tombstone

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# --- Owned records ---

class Image(BaseModel):
    id: int | None = None
    post_id: int
    path: str
    thumbnail_path: str | None = None
    alt_text: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    def physical_paths(self) -> list[str]:
        paths = [self.path]
        if self.thumbnail_path:
            paths.append(self.thumbnail_path)
        return paths


class Comment(BaseModel):
    id: int | None = None
    post_id: int
    author_name: str
    body: str
    status: Literal["pending", "approved", "spam"] = "pending"
    created_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None
