"""
Public Posts API Routes.

Read-only views of published posts. Both reads are served from the posts
cache group.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from postflow.api.deps import get_post_service
from postflow.api.schemas import PostListResponse, PostResponse
from postflow.core.ports.db import NotFoundError
from postflow.services.post import PostService

router = APIRouter()


@router.get("", response_model=PostListResponse)
def list_published(
    tag: str | None = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=50),
    service: PostService = Depends(get_post_service),
) -> PostListResponse:
    """Published posts, newest first, optionally narrowed to one tag slug."""
    result = service.published(page=page, per_page=per_page, tag=tag)
    return PostListResponse(
        items=[PostResponse.model_validate(p.model_dump()) for p in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        pages=result.pages,
    )


@router.get("/{slug}", response_model=PostResponse)
def get_published(
    slug: str,
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    try:
        post = service.get_by_slug(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Post not found") from e

    # Drafts and archived posts are only reachable through the admin API
    if post.status != "published":
        raise HTTPException(status_code=404, detail="Post not found")
    return PostResponse.model_validate(post.model_dump())
