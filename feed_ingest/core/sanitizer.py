"""
HTML sanitization for feed item bodies.

Feed content is rendered as-is by consumers, so everything that can run
script is removed before storage while ordinary formatting survives.
"""

from __future__ import annotations

import re

import bleach


ALLOWED_TAGS = [
    "a", "abbr", "b", "blockquote", "br", "caption", "code", "dd", "del",
    "div", "dl", "dt", "em", "figcaption", "figure", "h1", "h2", "h3", "h4",
    "h5", "h6", "hr", "i", "img", "ins", "li", "ol", "p", "pre", "q", "s",
    "small", "span", "strong", "sub", "sup", "table", "tbody", "td", "tfoot",
    "th", "thead", "tr", "u", "ul",
]
ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel"],
    "abbr": ["title"],
    "img": ["src", "alt", "title", "width", "height"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan", "scope"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

# Elements whose text content must go too, not just the tags
_DROP_WITH_CONTENT_RE = re.compile(
    r"<(script|style)\b[^>]*>.*?(</\1\s*>|$)", re.IGNORECASE | re.DOTALL
)


def sanitize_html(content: str | None) -> str:
    """Return HTML that is safe to store and render directly.

    Script and style elements are dropped along with their contents.
    bleach then strips disallowed tags, event-handler attributes and
    links whose protocol is not http, https or mailto.

    Running the output through this function again returns it unchanged.

    Args:
        content: Raw HTML from the feed item

    Returns:
        Sanitized HTML, or "" for empty input
    """
    if not content:
        return ""
    without_scripts = _DROP_WITH_CONTENT_RE.sub("", content)
    return bleach.clean(
        without_scripts,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
