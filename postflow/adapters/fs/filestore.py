import logging
import os
from collections.abc import Iterable
from pathlib import Path

from postflow.core.ports.storage import StorageError

logger = logging.getLogger(__name__)


class FileSystemStore:
    """Image files under a base directory, addressed by relative path."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()
        if not self.base_path.exists():
            os.makedirs(self.base_path, exist_ok=True)

    def _safe_path(self, path: str) -> Path:
        # Prevent traversal
        target = (self.base_path / path).resolve()
        if not target.is_relative_to(self.base_path):
            raise StorageError(f"Path traversal attempt detected: {path}")
        return target

    def save(self, name: str, data: bytes) -> str:
        """Save bytes and return the path relative to the base directory."""
        target = self._safe_path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
        return target.relative_to(self.base_path).as_posix()

    def get(self, path: str) -> bytes:
        """Retrieve bytes by path. Raises FileNotFoundError."""
        target = self._safe_path(path)
        if not target.exists():
            raise FileNotFoundError(f"File not found: {path}")
        with open(target, "rb") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return self._safe_path(path).exists()

    def delete(self, path: str) -> None:
        target = self._safe_path(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}") from e

    def sweep_orphans(self, known_paths: Iterable[str]) -> list[str]:
        """
        Delete files that no image record references.

        Post deletion cleans up images best-effort, so a failed delete can
        leave files behind; this reconciles them. Returns removed paths.
        """
        known = {Path(p).as_posix() for p in known_paths}
        removed: list[str] = []

        for file in sorted(self.base_path.rglob("*")):
            if not file.is_file():
                continue
            rel = file.relative_to(self.base_path).as_posix()
            if rel in known:
                continue
            try:
                file.unlink()
            except OSError as e:
                logger.warning("Could not remove orphan file", extra={"path": rel, "error": str(e)})
                continue
            removed.append(rel)

        if removed:
            logger.info("Removed %d orphaned file(s)", len(removed))
        return removed
