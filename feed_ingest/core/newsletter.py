"""
Email newsletters as articles.

A raw RFC 822 message is turned into an Article on the user's
"Newsletters" feed. The Message-ID doubles as the dedup link, so
re-delivering the same email does not create a second article.
"""

from __future__ import annotations

from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from datetime import timezone
import html
import uuid

from .sanitizer import sanitize_html
from .types import Article, utc_now_iso


NEWSLETTER_FEED_TITLE = "Newsletters"


def newsletter_feed_url(user_id: str) -> str:
    """Pseudo feed URL that identifies a user's newsletter feed."""
    return f"newsletter:{user_id}"


def parse_email(raw: bytes | str) -> EmailMessage:
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return BytesParser(policy=policy.default).parsebytes(raw)


def article_from_email(raw: bytes | str, feed_id: str, now: str | None = None) -> Article:
    """Build an Article from a raw email message.

    Args:
        raw: The full message, headers included
        feed_id: Newsletter feed the article belongs to
        now: Ingestion timestamp; defaults to the current UTC time

    Returns:
        Article with sanitized HTML description
    """
    now = now or utc_now_iso()
    message = parse_email(raw)

    title = (message.get("Subject") or "").strip() or "Untitled Newsletter"
    link = (message.get("Message-ID") or "").strip() or f"urn:uuid:{uuid.uuid4()}"

    return Article(
        feed_id=feed_id,
        title=title,
        link=link,
        description=sanitize_html(_body_html(message)),
        pub_date=_message_date(message) or now,
        is_read=False,
        created_at=now,
    )


def _body_html(message: EmailMessage) -> str:
    part = message.get_body(preferencelist=("html",))
    if part is not None:
        return part.get_content().strip()
    part = message.get_body(preferencelist=("plain",))
    if part is None:
        return ""
    paragraphs = [p.strip() for p in part.get_content().split("\n\n") if p.strip()]
    return "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)


def _message_date(message: EmailMessage) -> str | None:
    value = message.get("Date")
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()
