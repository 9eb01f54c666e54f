"""
Slug Generator - unique URL slugs derived from post titles.

Key behaviors:
- Transliterates to ASCII, lowercases, collapses punctuation/whitespace runs
  into single hyphens
- Resolves collisions with live posts by appending -1, -2, ...
- Deterministic for a given title and existing-slug snapshot

Not safe against concurrent creates on its own; PostService treats the
repository's UniqueConstraintError as authoritative and retries with the
next suffix.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Protocol

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class SlugLookup(Protocol):
    def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        ...


def slugify(text: str, fallback: str = "") -> str:
    """Create a URL-safe ASCII slug from text."""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")
    return slug or fallback


class SlugGenerator:
    def __init__(self, lookup: SlugLookup, fallback: str = "post") -> None:
        self._lookup = lookup
        self._fallback = fallback

    def generate(self, title: str, exclude_id: int | None = None) -> str:
        """Derive a slug from title that no other live post uses."""
        return self.unique_from(slugify(title, self._fallback), exclude_id)

    def unique_from(self, base: str, exclude_id: int | None = None, start: int = 0) -> str:
        """
        First free slug in the sequence base, base-1, base-2, ...

        start skips ahead in the sequence; the retry path uses it after a
        unique-constraint violation on a candidate that looked free.
        """
        counter = start
        slug = self.candidate(base, counter)
        while self._lookup.slug_exists(slug, exclude_id):
            counter += 1
            slug = self.candidate(base, counter)
        return slug

    @staticmethod
    def candidate(base: str, counter: int) -> str:
        return base if counter == 0 else f"{base}-{counter}"
