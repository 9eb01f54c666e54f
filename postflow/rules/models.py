from pydantic import BaseModel, Field


class CacheTtlRules(BaseModel):
    posts: int = 3600
    categories: int = 7200
    tags: int = 3600
    stats: int = 1800
    static: int = 43200
    search: int = 900


class CacheRules(BaseModel):
    enabled: bool = True
    prefix: str = "postflow"
    default_tags: list[str] = Field(default_factory=lambda: ["blog"])
    auto_invalidate_on_post_save: bool = True
    mutation_tags: list[str] = Field(default_factory=lambda: ["static", "sitemap", "feed"])
    ttl: CacheTtlRules = Field(default_factory=CacheTtlRules)


class SeoRules(BaseModel):
    meta_title_max: int = 60
    meta_description_max: int = 160
    default_og_type: str = "article"
    max_keywords: int = 10


class SlugRules(BaseModel):
    max_attempts: int = 5
    fallback: str = "post"


class QueueRules(BaseModel):
    max_attempts: int = 3
    search_index_queue: str = "search-index"
    notifications_queue: str = "notifications"
    poll_interval_seconds: float = 5.0


class NotificationRules(BaseModel):
    enabled: bool = True
    admin_email: str | None = None
    webhook_url: str | None = None
    push_enabled: bool = True
    site_url: str = "http://localhost:8000"
    post_path_prefix: str = "/posts"


class CleanupRules(BaseModel):
    strict: bool = False


class ContentRules(BaseModel):
    excerpt_length: int = 200
    words_per_minute: int = 200
    tag_separator: str = ","


class Rules(BaseModel):
    cache: CacheRules = Field(default_factory=CacheRules)
    seo: SeoRules = Field(default_factory=SeoRules)
    slug: SlugRules = Field(default_factory=SlugRules)
    queue: QueueRules = Field(default_factory=QueueRules)
    notifications: NotificationRules = Field(default_factory=NotificationRules)
    cleanup: CleanupRules = Field(default_factory=CleanupRules)
    content: ContentRules = Field(default_factory=ContentRules)
