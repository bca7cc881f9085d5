"""
HTTP fetching over an injected httpx client.

One GET per call, no retries. The client is built once by the caller
(see build_client) and passed in, so tests can swap in an
httpx.MockTransport. Every request runs against a wall-clock deadline;
when it passes only that request is abandoned and the caller gets a
FetchError with reason "timeout".
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time

import httpx

from ..config import FetchConfig
from ..errors import FetchError


logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of a successful HTTP fetch.

    Attributes:
        url: The URL that was requested
        final_url: The URL after redirects
        status_code: HTTP status code (always 2xx)
        content: Raw response body
        text: Response body decoded as text
        content_type: Value of the Content-Type header, or ""
    """
    url: str
    final_url: str
    status_code: int
    content: bytes
    text: str
    content_type: str = ""


DEFAULT_TIMEOUT_SECONDS = 10.0


def build_client(cfg: FetchConfig, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Construct the HTTP client shared by discovery and parsing.

    The client's own timeout bounds each connect/read/write phase; the
    wall-clock deadline for a whole request is enforced by HttpFetcher.

    Args:
        cfg: Fetch settings (timeout, user agent, proxy/redirect behavior)
        transport: Optional transport override, e.g. httpx.MockTransport in tests

    Returns:
        A configured httpx.Client; the caller owns and closes it
    """
    return httpx.Client(
        timeout=httpx.Timeout(cfg.timeout_seconds),
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=cfg.follow_redirects,
        trust_env=cfg.trust_env,
        transport=transport,
    )


class HttpFetcher:
    """Performs single bounded GET requests through an httpx client.

    Args:
        client: The shared httpx client
        timeout: Wall-clock limit in seconds for one request, from sending
            it to the last body byte (defaults to 10s)
    """

    def __init__(self, client: httpx.Client, timeout: float | None = None):
        self.client = client
        self.timeout = timeout

    def get(self, url: str, accept: str | None = None) -> FetchResult:
        """Fetch a URL.

        The body is streamed and the deadline is checked after every chunk,
        so a server trickling bytes cannot hold the request open past the
        limit. On expiry the response is closed.

        Args:
            url: Absolute URL to request
            accept: Optional Accept header value

        Returns:
            FetchResult for a 2xx response

        Raises:
            FetchError: reason "timeout" when the deadline passes, "network"
                for transport failures or malformed URLs, "status" for
                non-2xx responses
        """
        limit = self.timeout if self.timeout is not None else DEFAULT_TIMEOUT_SECONDS
        headers = {"Accept": accept} if accept else None
        kwargs = {"headers": headers}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        deadline = time.monotonic() + limit
        try:
            with self.client.stream("GET", url, **kwargs) as resp:
                if not resp.is_success:
                    raise FetchError(
                        url,
                        "status",
                        f"{resp.status_code} {resp.reason_phrase}",
                        status_code=resp.status_code,
                    )
                chunks: list[bytes] = []
                for chunk in resp.iter_bytes():
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        logger.debug("Deadline of %.1fs passed fetching %s", limit, url)
                        raise FetchError(url, "timeout", f"no complete response within {limit:g}s")
                content = b"".join(chunks)
                result = FetchResult(
                    url=url,
                    final_url=str(resp.url),
                    status_code=resp.status_code,
                    content=content,
                    text=_decode(content, resp.charset_encoding),
                    content_type=resp.headers.get("content-type", ""),
                )
        except httpx.TimeoutException as exc:
            logger.debug("Timeout fetching %s: %s", url, exc)
            raise FetchError(url, "timeout", f"timed out ({type(exc).__name__})") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("Network error fetching %s: %s", url, exc)
            raise FetchError(url, "network", f"{type(exc).__name__}: {exc}") from exc

        return result


def _decode(content: bytes, charset: str | None) -> str:
    try:
        return content.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")
