"""
SEO Metadata Defaulter - fills blank meta / OpenGraph fields on a post.

Resolution order:
- meta_title: title
- meta_description: excerpt, else plain text of the content
- og_title / og_description: the meta values
- og_type: configured default ("article")

Only blank fields are written, so running it twice is a no-op.
"""

from __future__ import annotations

from postflow.core.services.markdown_renderer import ELLIPSIS, to_plain_text
from postflow.domain.entities import Post
from postflow.rules.models import SeoRules


def limit_text(text: str, max_length: int) -> str:
    """
    Truncate text to fit a meta field limit, ellipsis included.

    Breaks at a word boundary when that keeps at least 60% of the budget.
    """
    text = text.strip()
    if len(text) <= max_length:
        return text
    if max_length <= len(ELLIPSIS):
        return text[:max_length]

    budget = max_length - len(ELLIPSIS)
    truncated = text[:budget]
    last_space = truncated.rfind(" ")

    if not text[budget].isspace() and last_space > budget * 0.6:
        truncated = truncated[:last_space]

    return truncated.rstrip() + ELLIPSIS


def apply_seo_defaults(post: Post, rules: SeoRules | None = None) -> Post:
    """Fill blank SEO fields in place and return the post."""
    rules = rules or SeoRules()

    if not post.meta_title and post.title:
        post.meta_title = limit_text(post.title, rules.meta_title_max)

    if not post.meta_description:
        if post.excerpt:
            post.meta_description = limit_text(post.excerpt, rules.meta_description_max)
        elif post.content:
            post.meta_description = limit_text(
                to_plain_text(post.content), rules.meta_description_max
            )

    if not post.og_title and post.meta_title:
        post.og_title = post.meta_title

    if not post.og_description and post.meta_description:
        post.og_description = post.meta_description

    if not post.og_type:
        post.og_type = rules.default_og_type

    if len(post.meta_keywords) > rules.max_keywords:
        post.meta_keywords = post.meta_keywords[: rules.max_keywords]

    return post
