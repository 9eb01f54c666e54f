"""
Admin Posts API Routes.

Create, edit, delete, restore and bulk-manage posts. Request bodies are
validated here; everything behind PostService assumes well-formed input.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from postflow.api.deps import get_post_service
from postflow.api.schemas import (
    BulkActionRequest,
    BulkActionResponse,
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostUpdateRequest,
    SortField,
)
from postflow.core.ports.db import NotFoundError, PersistenceError, UniqueConstraintError
from postflow.domain.entities import Post, PostStatus
from postflow.services.post import PostService

router = APIRouter()

# Explicit null clears these; null elsewhere means "leave unchanged"
CLEARABLE_FIELDS = frozenset({"featured_image", "og_image", "canonical_url", "published_at"})


# --- Helper Functions ---


def _to_response(post: Post) -> PostResponse:
    return PostResponse.model_validate(post.model_dump())


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (UniqueConstraintError, PersistenceError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _split_tags(data: dict[str, Any]) -> list[str] | None:
    return data.pop("tags", None)


# --- Routes ---


@router.get("", response_model=PostListResponse)
def list_posts(
    status_filter: PostStatus | None = Query(None, alias="status"),
    author_id: int | None = None,
    category_id: int | None = None,
    search: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    is_featured: bool | None = None,
    sort: SortField = "latest",
    sort_dir: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    service: PostService = Depends(get_post_service),
) -> PostListResponse:
    """List live posts with admin filters and sorting."""
    filters = {
        "status": status_filter,
        "user_id": author_id,
        "category_id": category_id,
        "search": search,
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "is_featured": is_featured,
        "sort": sort,
        "sort_dir": sort_dir,
    }
    result = service.list(filters, page=page, per_page=per_page)
    return PostListResponse(
        items=[_to_response(p) for p in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        pages=result.pages,
    )


@router.get(
    "/{post_id}",
    response_model=PostResponse,
    responses={404: {"description": "Post not found"}},
)
def get_post(
    post_id: int,
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    try:
        return _to_response(service.get(post_id))
    except NotFoundError as e:
        raise _http_error(e) from e


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Slug conflict"}},
)
def create_post(
    request: PostCreateRequest,
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    """
    Create a post.

    Slug, HTML, excerpt, reading time and blank SEO fields are derived.
    """
    data = request.model_dump(mode="json", exclude_none=True)
    tags = _split_tags(data)
    try:
        post = service.create(Post.model_validate(data), tags=tags)
    except (UniqueConstraintError, PersistenceError, ValueError) as e:
        raise _http_error(e) from e
    return _to_response(post)


@router.put(
    "/{post_id}",
    response_model=PostResponse,
    responses={404: {"description": "Post not found"}, 409: {"description": "Slug conflict"}},
)
def update_post(
    post_id: int,
    request: PostUpdateRequest,
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    """Update a post. Status changes fan out to search and notification lanes."""
    changes = request.model_dump(mode="json", exclude_unset=True)
    tags = _split_tags(changes)
    changes = {k: v for k, v in changes.items() if v is not None or k in CLEARABLE_FIELDS}
    if not changes and tags is None:
        raise HTTPException(status_code=400, detail="No updates provided")

    try:
        post = service.update(post_id, changes, tags=tags)
    except (NotFoundError, UniqueConstraintError, PersistenceError, ValueError) as e:
        raise _http_error(e) from e
    return _to_response(post)


@router.delete(
    "/{post_id}",
    responses={404: {"description": "Post not found"}},
)
def delete_post(
    post_id: int,
    service: PostService = Depends(get_post_service),
) -> dict[str, bool]:
    """Soft-delete a post and clean up what it owns."""
    try:
        service.delete(post_id)
    except NotFoundError as e:
        raise _http_error(e) from e
    return {"deleted": True}


@router.post(
    "/{post_id}/restore",
    response_model=PostResponse,
    responses={404: {"description": "Post not found"}, 409: {"description": "Slug taken"}},
)
def restore_post(
    post_id: int,
    service: PostService = Depends(get_post_service),
) -> PostResponse:
    try:
        post = service.restore(post_id)
    except (NotFoundError, UniqueConstraintError) as e:
        raise _http_error(e) from e
    return _to_response(post)


@router.post("/bulk", response_model=BulkActionResponse)
def bulk_action(
    request: BulkActionRequest,
    service: PostService = Depends(get_post_service),
) -> BulkActionResponse:
    result = service.bulk_action(request.action, request.post_ids)
    return BulkActionResponse(action=result.action, success=result.success, failed=result.failed)
