"""
In-Memory Search Index Adapter.

Holds post documents keyed by id, with a naive case-insensitive substring
search over title, excerpt and content for local use.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

_SEARCHABLE = ("title", "excerpt", "content")


class InMemorySearchIndex:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[int, dict[str, Any]] = {}

    def upsert(self, doc_id: int, document: dict[str, Any]) -> None:
        with self._lock:
            self._documents[doc_id] = copy.deepcopy(document)
        logger.debug("Search document upserted", extra={"doc_id": doc_id})

    def remove(self, doc_id: int) -> None:
        with self._lock:
            self._documents.pop(doc_id, None)
        logger.debug("Search document removed", extra={"doc_id": doc_id})

    def get(self, doc_id: int) -> dict[str, Any] | None:
        with self._lock:
            doc = self._documents.get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def search(self, term: str) -> list[dict[str, Any]]:
        needle = term.casefold()
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._documents.values()
                if any(needle in str(doc.get(f) or "").casefold() for f in _SEARCHABLE)
            ]

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return doc_id in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
