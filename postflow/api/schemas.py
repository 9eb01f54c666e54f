from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from postflow.domain.entities import PostStatus

# --- Shared Types ---
SlugStr = Annotated[str, Field(max_length=255, pattern=r"^[a-z0-9-]*$")]
Keyword = Annotated[str, Field(max_length=50)]
TagName = Annotated[str, Field(max_length=50)]
BulkActionName = Literal["publish", "draft", "archive", "delete", "feature", "unfeature"]
SortField = Literal["latest", "title", "views", "comments", "status", "published"]


# --- Requests ---
class PostSeoFields(BaseModel):
    meta_title: str | None = Field(None, max_length=60)
    meta_description: str | None = Field(None, max_length=160)
    og_title: str | None = Field(None, max_length=60)
    og_description: str | None = Field(None, max_length=200)
    og_image: str | None = None
    canonical_url: HttpUrl | None = None
    meta_keywords: list[Keyword] | None = Field(None, max_length=10)
    index_follow: bool | None = None


class PostCreateRequest(PostSeoFields):
    title: str = Field(..., min_length=1, max_length=255)
    slug: SlugStr | None = None
    content: str = Field(..., min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    category_id: int
    category_name: str = ""
    user_id: int | None = None
    author_name: str = ""
    status: PostStatus = "draft"
    published_at: datetime | None = None
    featured_image: str | None = None
    is_featured: bool = False
    allow_comments: bool = True
    tags: list[TagName] | None = Field(None, max_length=20)


class PostUpdateRequest(PostSeoFields):
    title: str | None = Field(None, min_length=1, max_length=255)
    slug: SlugStr | None = None
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    category_id: int | None = None
    category_name: str | None = None
    status: PostStatus | None = None
    published_at: datetime | None = None
    featured_image: str | None = None
    is_featured: bool | None = None
    allow_comments: bool | None = None
    tags: list[TagName] | None = Field(None, max_length=20)


class BulkActionRequest(BaseModel):
    action: BulkActionName
    post_ids: list[int] = Field(..., min_length=1)


# --- Responses ---
class TagModel(BaseModel):
    id: int | None = None
    name: str
    slug: str


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None
    author_name: str
    title: str
    slug: str
    content: str
    content_html: str
    excerpt: str
    featured_image: str | None
    category_id: int
    category_name: str
    tags: list[TagModel]
    status: PostStatus
    published_at: datetime | None
    meta_title: str
    meta_description: str
    og_title: str
    og_description: str
    og_image: str | None
    og_type: str
    canonical_url: str | None
    meta_keywords: list[str]
    index_follow: bool
    views_count: int
    likes_count: int
    comments_count: int
    shares_count: int
    is_featured: bool
    allow_comments: bool
    reading_time: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None


class PostListResponse(BaseModel):
    items: list[PostResponse]
    total: int
    page: int
    per_page: int
    pages: int


class BulkActionResponse(BaseModel):
    action: str
    success: int
    failed: int
