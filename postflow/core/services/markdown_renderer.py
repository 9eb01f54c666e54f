"""
Markdown Renderer - author markdown to sanitized HTML and plain text.

Key behaviors:
- Rendered HTML passes an allowlist sanitizer (tags, attributes, URL
  protocols); script/style blocks are dropped with their content
- Excerpts are plain text cut at a word boundary
- Never raises on malformed input; degrades to escaped text

Pure functions of their input; no external state.
"""

from __future__ import annotations

import html
import logging
import math
import re
from dataclasses import dataclass, field

import markdown

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

# --- Sanitizer configuration ---


@dataclass(frozen=True)
class SanitizeConfig:
    """Allowlist applied to rendered HTML."""

    allow_tags: frozenset[str] = field(
        default_factory=lambda: frozenset(
            [
                "p", "br", "strong", "b", "em", "i", "u", "del", "s",
                "h1", "h2", "h3", "h4", "h5", "h6",
                "ul", "ol", "li",
                "blockquote", "pre", "code",
                "a", "img",
                "table", "thead", "tbody", "tr", "th", "td",
                "hr",
            ]
        )
    )
    allow_attrs: frozenset[str] = field(
        default_factory=lambda: frozenset(["href", "src", "alt", "title", "class"])
    )
    forbid_protocols: frozenset[str] = field(
        default_factory=lambda: frozenset(["javascript:", "data:", "vbscript:"])
    )


DEFAULT_SANITIZE_CONFIG = SanitizeConfig()

TAG_PATTERN = re.compile(r"<(/?)(\w+)([^>]*)>", re.IGNORECASE)
ATTR_PATTERN = re.compile(r'([\w-]+)\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|(\S+))', re.IGNORECASE)
DANGEROUS_BLOCK_PATTERN = re.compile(
    r"<(script|style|iframe|object)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_URL_NOISE = re.compile(r"[\s\x00-\x1f]+")
MAX_SANITIZE_PASSES = 10


def _escape_brackets(text: str) -> str:
    return text.replace("<", "&lt;").replace(">", "&gt;")


def parse_attributes(attr_string: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for match in ATTR_PATTERN.finditer(attr_string):
        name = match.group(1).lower()
        value = match.group(2) or match.group(3) or match.group(4) or ""
        attrs[name] = value
    return attrs


def is_safe_url(url: str, config: SanitizeConfig = DEFAULT_SANITIZE_CONFIG) -> bool:
    normalized = _URL_NOISE.sub("", html.unescape(url)).lower()
    return not any(normalized.startswith(proto) for proto in config.forbid_protocols)


def sanitize_html(html_content: str, config: SanitizeConfig = DEFAULT_SANITIZE_CONFIG) -> str:
    """
    Strip disallowed tags, attributes and URL protocols from HTML.

    Stripping repeats until the markup is stable, since removing one tag can
    splice its neighbours into a new one. The final pass escapes any bracket
    that is not part of an allowed tag.
    """

    def process_tag(match: re.Match[str]) -> str:
        is_closing = bool(match.group(1))
        tag_name = match.group(2).lower()
        attr_string = match.group(3)

        if tag_name not in config.allow_tags:
            return ""

        if is_closing:
            return f"</{tag_name}>"

        kept: list[str] = []
        for name, value in parse_attributes(attr_string).items():
            if name not in config.allow_attrs:
                continue
            if name in ("href", "src") and not is_safe_url(value, config):
                continue
            safe_value = html.escape(html.unescape(value), quote=True)
            kept.append(f'{name}="{safe_value}"')

        closing = " /" if attr_string.rstrip().endswith("/") else ""
        attrs = (" " + " ".join(kept)) if kept else ""
        return f"<{tag_name}{attrs}{closing}>"

    for _ in range(MAX_SANITIZE_PASSES):
        stripped = DANGEROUS_BLOCK_PATTERN.sub("", html_content)
        stripped = TAG_PATTERN.sub(process_tag, stripped)
        if stripped == html_content:
            break
        html_content = stripped

    parts: list[str] = []
    pos = 0
    for match in TAG_PATTERN.finditer(html_content):
        parts.append(_escape_brackets(html_content[pos : match.start()]))
        parts.append(process_tag(match))
        pos = match.end()
    parts.append(_escape_brackets(html_content[pos:]))
    return "".join(parts)


# --- Plain text ---

_PLAIN_TEXT_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```.*?```", re.DOTALL), " "),
    (re.compile(r"<[^>]+>"), " "),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), ""),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"__(.*?)__"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"(?<!\w)_(.*?)_(?!\w)"), r"\1"),
    (re.compile(r"`([^`]*)`"), r"\1"),
    (re.compile(r"^\s*>\s?", re.MULTILINE), ""),
    (re.compile(r"^\s*[*+-]\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"\s+"), " "),
]

_WORD = re.compile(r"\w+(?:['’-]\w+)*")
_MD_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*([^)\s]+)[^)]*\)")
_HTML_IMAGE = re.compile(r"<img[^>]*src=[\"']([^\"']*)[\"'][^>]*>", re.IGNORECASE)


def to_plain_text(source: str) -> str:
    """Strip markdown syntax and HTML tags, collapsing whitespace."""
    if not source:
        return ""
    text = source
    for pattern, replacement in _PLAIN_TEXT_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def truncate_words(text: str, max_chars: int) -> str:
    """
    Cut text to at most max_chars characters, ellipsis included.

    Cuts at the last word boundary; a single word longer than the budget is
    hard-cut.
    """
    text = text.strip()
    if len(text) <= max_chars:
        return text
    if max_chars <= len(ELLIPSIS):
        return text[:max_chars]

    budget = max_chars - len(ELLIPSIS)
    cut = text[:budget]
    if not text[budget].isspace():
        last_space = cut.rfind(" ")
        if last_space > 0:
            cut = cut[:last_space]
    return cut.rstrip() + ELLIPSIS


class MarkdownRenderer:
    def __init__(
        self,
        sanitize_config: SanitizeConfig = DEFAULT_SANITIZE_CONFIG,
        words_per_minute: int = 200,
    ) -> None:
        self._sanitize_config = sanitize_config
        self._words_per_minute = words_per_minute
        self._md = markdown.Markdown(extensions=["extra", "sane_lists"], output_format="html")

    def render(self, source: str) -> str:
        """Convert markdown to sanitized HTML."""
        if not source:
            return ""
        try:
            self._md.reset()
            converted = self._md.convert(source)
        except Exception:
            logger.warning("Markdown conversion failed, using escaped text", exc_info=True)
            return f"<p>{html.escape(source, quote=True)}</p>"
        return sanitize_html(converted, self._sanitize_config)

    def to_plain_text(self, source: str) -> str:
        return to_plain_text(source)

    def excerpt(self, source: str, max_chars: int = 160) -> str:
        return truncate_words(to_plain_text(source), max_chars)

    def word_count(self, source: str) -> int:
        return len(_WORD.findall(to_plain_text(source)))

    def reading_time(self, source: str) -> int:
        """Minutes to read at the configured pace, minimum 1."""
        return max(1, math.ceil(self.word_count(source) / self._words_per_minute))

    def extract_image_urls(self, source: str) -> list[str]:
        urls = _MD_IMAGE.findall(source) + _HTML_IMAGE.findall(source)
        return list(dict.fromkeys(urls))
