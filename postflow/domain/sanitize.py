import html
import re

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def strip_tags(markup: str) -> str:
    """
    Reduce HTML to plain text.

    Tags are dropped, entities decoded and whitespace collapsed. The result is
    text, not markup: callers must escape it again before embedding it in HTML.
    """
    if not markup:
        return ""
    text = _TAG.sub(" ", markup)
    return _WHITESPACE.sub(" ", html.unescape(text)).strip()
