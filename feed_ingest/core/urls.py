"""URL normalization for user-supplied site or feed addresses."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from ..errors import InvalidURL


ALLOWED_SCHEMES = ("http", "https")

# "name:" followed by a non-digit; "host:8080" is a port, not a scheme
_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):(?!\d)")


def normalize_url(raw: str) -> str:
    """Turn user input into an absolute http(s) URL.

    Inputs without a scheme get https:// prepended before anything else
    looks at them, so "example.com/blog" becomes "https://example.com/blog".

    Args:
        raw: The string the user typed

    Returns:
        The absolute URL

    Raises:
        InvalidURL: If the input is empty, has no host, or uses a scheme
            other than http/https once normalized
    """
    url = (raw or "").strip()
    if not url:
        raise InvalidURL("URL is required")

    if not _SCHEME_RE.match(url):
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL format: {raw!r}") from exc
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURL(f"Unsupported URL scheme: {parts.scheme!r}")
    if not hostname:
        raise InvalidURL(f"Invalid URL format: {raw!r}")
    return url
