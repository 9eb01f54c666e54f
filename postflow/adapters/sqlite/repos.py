import json
import sqlite3
from datetime import datetime
from typing import Any

from postflow.core.ports.db import NotFoundError, PersistenceError, UniqueConstraintError
from postflow.domain.entities import Comment, Image, Post, Tag


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def parse_dt(s: str | None) -> datetime | None:
    return datetime.fromisoformat(s) if s else None


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, list):
        return json.dumps(value)
    return value


def _map_integrity_error(e: sqlite3.IntegrityError, slug: str) -> Exception:
    if "slug" in str(e):
        return UniqueConstraintError("slug", slug)
    return PersistenceError(str(e))


class _SQLiteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn


# Columns written on save, in order. id and the timestamps of creation are
# handled separately.
_POST_COLUMNS = (
    "user_id",
    "author_name",
    "title",
    "slug",
    "content",
    "content_html",
    "excerpt",
    "featured_image",
    "category_id",
    "category_name",
    "status",
    "published_at",
    "meta_title",
    "meta_description",
    "og_title",
    "og_description",
    "og_image",
    "og_type",
    "canonical_url",
    "meta_keywords",
    "index_follow",
    "views_count",
    "likes_count",
    "comments_count",
    "shares_count",
    "is_featured",
    "allow_comments",
    "reading_time",
    "updated_at",
)

# Columns bulk actions may write directly
_BULK_COLUMNS = frozenset({"status", "published_at", "is_featured", "updated_at"})

_SORT_COLUMNS = {
    "latest": "created_at",
    "title": "title",
    "views": "views_count",
    "comments": "comments_count",
    "status": "status",
    "published": "published_at",
}


class SQLitePostRepo(_SQLiteRepo):
    def _row_to_post(self, row: dict[str, Any]) -> Post:
        return Post(
            id=row["id"],
            user_id=row["user_id"],
            author_name=row["author_name"],
            title=row["title"],
            slug=row["slug"],
            content=row["content"],
            content_html=row["content_html"],
            excerpt=row["excerpt"],
            featured_image=row["featured_image"],
            category_id=row["category_id"],
            category_name=row["category_name"],
            status=row["status"],
            published_at=parse_dt(row["published_at"]),
            meta_title=row["meta_title"],
            meta_description=row["meta_description"],
            og_title=row["og_title"],
            og_description=row["og_description"],
            og_image=row["og_image"],
            og_type=row["og_type"],
            canonical_url=row["canonical_url"],
            meta_keywords=json.loads(row["meta_keywords"] or "[]"),
            index_follow=bool(row["index_follow"]),
            views_count=row["views_count"],
            likes_count=row["likes_count"],
            comments_count=row["comments_count"],
            shares_count=row["shares_count"],
            is_featured=bool(row["is_featured"]),
            allow_comments=bool(row["allow_comments"]),
            reading_time=row["reading_time"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            deleted_at=parse_dt(row["deleted_at"]),
        )

    def save(self, post: Post) -> Post:
        values = [_to_db(getattr(post, col)) for col in _POST_COLUMNS]
        conn = self._get_conn()
        try:
            if post.id is None:
                columns = ", ".join((*_POST_COLUMNS, "created_at"))
                placeholders = ", ".join("?" for _ in range(len(_POST_COLUMNS) + 1))
                cursor = conn.execute(
                    f"INSERT INTO posts ({columns}) VALUES ({placeholders})",
                    (*values, post.created_at.isoformat()),
                )
                post.id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{col} = ?" for col in _POST_COLUMNS)
                cursor = conn.execute(
                    f"UPDATE posts SET {assignments} WHERE id = ?",
                    (*values, post.id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("post", post.id)
            conn.commit()
            return post
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise _map_integrity_error(e, post.slug) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_by_id(self, post_id: int, include_deleted: bool = False) -> Post | None:
        query = "SELECT * FROM posts WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        conn = self._get_conn()
        try:
            row = conn.execute(query, (post_id,)).fetchone()
            return self._row_to_post(row) if row else None
        finally:
            conn.close()

    def get_by_slug(self, slug: str) -> Post | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM posts WHERE slug = ? AND deleted_at IS NULL", (slug,)
            ).fetchone()
            return self._row_to_post(row) if row else None
        finally:
            conn.close()

    def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT 1 FROM posts WHERE slug = ? AND id != ? AND deleted_at IS NULL",
                (slug, exclude_id or 0),
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def _where(self, filters: dict[str, Any]) -> tuple[str, list[Any]]:
        query = " WHERE deleted_at IS NULL"
        params: list[Any] = []

        if filters.get("status"):
            query += " AND status = ?"
            params.append(filters["status"])
        author = filters.get("user_id", filters.get("author_id"))
        if author is not None:
            query += " AND user_id = ?"
            params.append(author)
        if filters.get("category_id") is not None:
            query += " AND category_id = ?"
            params.append(filters["category_id"])
        if filters.get("tag"):
            query += (
                " AND id IN (SELECT pt.post_id FROM post_tag pt"
                " JOIN tags t ON t.id = pt.tag_id WHERE t.slug = ?)"
            )
            params.append(filters["tag"])
        if filters.get("is_featured") is not None:
            query += " AND is_featured = ?"
            params.append(int(bool(filters["is_featured"])))
        if filters.get("search"):
            term = f"%{filters['search']}%"
            query += " AND (title LIKE ? OR content LIKE ?)"
            params.extend([term, term])
        # Timestamps are stored as UTC ISO strings; compare the date part
        if filters.get("date_from"):
            query += " AND substr(created_at, 1, 10) >= ?"
            params.append(str(filters["date_from"])[:10])
        if filters.get("date_to"):
            query += " AND substr(created_at, 1, 10) <= ?"
            params.append(str(filters["date_to"])[:10])

        return query, params

    def list_posts(
        self,
        filters: dict[str, Any] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Post]:
        filters = filters or {}
        where, params = self._where(filters)
        column = _SORT_COLUMNS.get(filters.get("sort") or "latest", "created_at")
        direction = "ASC" if str(filters.get("sort_dir", "desc")).lower() == "asc" else "DESC"

        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM posts{where} ORDER BY {column} {direction}, id {direction}"
                " LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            return [self._row_to_post(row) for row in rows]
        finally:
            conn.close()

    def list_published(
        self, limit: int = 20, offset: int = 0, tag: str | None = None
    ) -> list[Post]:
        filters = {"status": "published", "tag": tag, "sort": "published"}
        return self.list_posts(filters, limit=limit, offset=offset)

    def count_posts(self, filters: dict[str, Any] | None = None) -> int:
        where, params = self._where(filters or {})
        conn = self._get_conn()
        try:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM posts{where}", params).fetchone()
            return row["cnt"] if row else 0
        finally:
            conn.close()

    def soft_delete(self, post_id: int, at: datetime) -> None:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "UPDATE posts SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
                (at.isoformat(), post_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("post", post_id)
            conn.commit()
        finally:
            conn.close()

    def restore(self, post_id: int) -> None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT slug FROM posts WHERE id = ?", (post_id,)).fetchone()
            if not row:
                raise NotFoundError("post", post_id)
            conn.execute("UPDATE posts SET deleted_at = NULL WHERE id = ?", (post_id,))
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise _map_integrity_error(e, row["slug"]) from e
        finally:
            conn.close()

    def update_fields(self, post_ids: list[int], fields: dict[str, Any]) -> int:
        unknown = set(fields) - _BULK_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable in bulk: {sorted(unknown)}")
        if not post_ids or not fields:
            return 0

        assignments = ", ".join(f"{col} = ?" for col in fields)
        id_marks = ", ".join("?" for _ in post_ids)
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                f"UPDATE posts SET {assignments} "
                f"WHERE id IN ({id_marks}) AND deleted_at IS NULL",
                (*(_to_db(v) for v in fields.values()), *post_ids),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()


class SQLiteTagRepo(_SQLiteRepo):
    def first_or_create(self, name: str, slug: str) -> Tag:
        conn = self._get_conn()
        try:
            conn.execute("INSERT OR IGNORE INTO tags (name, slug) VALUES (?, ?)", (name, slug))
            conn.commit()
            row = conn.execute("SELECT * FROM tags WHERE slug = ?", (slug,)).fetchone()
            return Tag(id=row["id"], name=row["name"], slug=row["slug"])
        finally:
            conn.close()

    def sync(self, post_id: int, tag_ids: list[int]) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM post_tag WHERE post_id = ?", (post_id,))
            conn.executemany(
                "INSERT OR IGNORE INTO post_tag (post_id, tag_id) VALUES (?, ?)",
                [(post_id, tag_id) for tag_id in tag_ids],
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_for_post(self, post_id: int) -> list[Tag]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT t.id, t.name, t.slug FROM tags t
                JOIN post_tag pt ON pt.tag_id = t.id
                WHERE pt.post_id = ?
                ORDER BY t.name
                """,
                (post_id,),
            ).fetchall()
            return [Tag(id=r["id"], name=r["name"], slug=r["slug"]) for r in rows]
        finally:
            conn.close()


class SQLiteRelatedDataRepo(_SQLiteRepo):
    """Images, comments, views and likes hanging off a post."""

    # --- Writes used by upload/comment flows and fixtures ---

    def add_image(self, image: Image) -> Image:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                INSERT INTO images (post_id, path, thumbnail_path, alt_text, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    image.post_id,
                    image.path,
                    image.thumbnail_path,
                    image.alt_text,
                    image.created_at.isoformat(),
                ),
            )
            conn.commit()
            image.id = cursor.lastrowid
            return image
        finally:
            conn.close()

    def add_comment(self, comment: Comment) -> Comment:
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                INSERT INTO comments (post_id, author_name, body, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    comment.post_id,
                    comment.author_name,
                    comment.body,
                    comment.status,
                    comment.created_at.isoformat(),
                ),
            )
            conn.commit()
            comment.id = cursor.lastrowid
            return comment
        finally:
            conn.close()

    def record_view(self, post_id: int, at: datetime, ip_hash: str | None = None) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO post_views (post_id, ip_hash, viewed_at) VALUES (?, ?, ?)",
                (post_id, ip_hash, at.isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    def add_like(self, post_id: int, user_id: int, at: datetime) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO post_likes (post_id, user_id, created_at) VALUES (?, ?, ?)",
                (post_id, user_id, at.isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    # --- Reads ---

    def list_images(self, post_id: int) -> list[Image]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM images WHERE post_id = ? ORDER BY id", (post_id,)
            ).fetchall()
            return [
                Image(
                    id=r["id"],
                    post_id=r["post_id"],
                    path=r["path"],
                    thumbnail_path=r["thumbnail_path"],
                    alt_text=r["alt_text"],
                    created_at=parse_dt(r["created_at"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    def list_comments(self, post_id: int, include_deleted: bool = False) -> list[Comment]:
        query = "SELECT * FROM comments WHERE post_id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        conn = self._get_conn()
        try:
            rows = conn.execute(query + " ORDER BY id", (post_id,)).fetchall()
            return [
                Comment(
                    id=r["id"],
                    post_id=r["post_id"],
                    author_name=r["author_name"],
                    body=r["body"],
                    status=r["status"],
                    created_at=parse_dt(r["created_at"]),
                    deleted_at=parse_dt(r["deleted_at"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    def count_views(self, post_id: int) -> int:
        return self._count("SELECT COUNT(*) AS cnt FROM post_views WHERE post_id = ?", post_id)

    def count_likes(self, post_id: int) -> int:
        return self._count("SELECT COUNT(*) AS cnt FROM post_likes WHERE post_id = ?", post_id)

    def _count(self, query: str, post_id: int) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(query, (post_id,)).fetchone()
            return row["cnt"] if row else 0
        finally:
            conn.close()

    def list_image_paths(self) -> set[str]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT path, thumbnail_path FROM images").fetchall()
            paths: set[str] = set()
            for r in rows:
                paths.add(r["path"])
                if r["thumbnail_path"]:
                    paths.add(r["thumbnail_path"])
            return paths
        finally:
            conn.close()

    # --- Cleanup ---

    def _execute(self, query: str, params: tuple[Any, ...]) -> int:
        conn = self._get_conn()
        try:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def delete_image(self, image_id: int) -> None:
        self._execute("DELETE FROM images WHERE id = ?", (image_id,))

    def soft_delete_comments(self, post_id: int, at: datetime) -> int:
        return self._execute(
            "UPDATE comments SET deleted_at = ? WHERE post_id = ? AND deleted_at IS NULL",
            (at.isoformat(), post_id),
        )

    def delete_views(self, post_id: int) -> int:
        return self._execute("DELETE FROM post_views WHERE post_id = ?", (post_id,))

    def detach_tags(self, post_id: int) -> None:
        self._execute("DELETE FROM post_tag WHERE post_id = ?", (post_id,))

    def detach_likes(self, post_id: int) -> None:
        self._execute("DELETE FROM post_likes WHERE post_id = ?", (post_id,))
