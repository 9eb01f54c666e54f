"""
Image File Storage Interface.

Physical files behind image records. Deletion of a missing file is a no-op;
any other failure raises StorageError.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class ImageStorePort(Protocol):
    def save(self, name: str, data: bytes) -> str:
        """Save bytes and return the stored relative path."""
        ...

    def delete(self, path: str) -> None:
        ...

    def sweep_orphans(self, known_paths: Iterable[str]) -> list[str]:
        """Delete files no record references. Returns removed paths."""
        ...


class StorageError(Exception):
    """Base class for storage errors."""
