"""
Search Index Interface.

Denormalized post documents keyed by post id. Both operations are
idempotent: upserting the same id replaces the document, removing a missing
id is a no-op.
"""

from __future__ import annotations

from typing import Any, Protocol


class SearchIndexPort(Protocol):
    def upsert(self, doc_id: int, document: dict[str, Any]) -> None:
        ...

    def remove(self, doc_id: int) -> None:
        ...


class SearchIndexError(Exception):
    """Search backend failure."""
