"""
Product page fetcher.

Downloads a page's HTML so it can be parsed server-side, with the same
guard rails as the registry's fetch proxy: http(s) only, 10 second
timeout, desktop browser User-Agent.
"""

import logging
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 10.0  # seconds
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
ALLOWED_SCHEMES = ("http", "https")


class FetchError(Exception):
    """The page could not be fetched. The message is safe to show to users."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code  # HTTP status the API should answer with


def validate_url(url: str) -> str:
    """Return the stripped URL or raise FetchError explaining what is wrong with it."""
    url = (url or "").strip()
    if not url:
        raise FetchError("URL is required")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise FetchError("Invalid URL format") from e
    if not parsed.scheme:
        raise FetchError("Invalid URL format")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise FetchError("Only HTTP and HTTPS protocols are allowed")
    if not parsed.netloc:
        raise FetchError("Invalid URL format")
    return url


async def fetch_html(url: str, client: httpx.AsyncClient | None = None) -> str:
    """Fetch a product page and return its HTML.

    A caller-owned client is reused as-is; otherwise a short-lived one is opened.
    """
    url = validate_url(url)

    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await _get(own_client, url)
    return await _get(client, url)


async def _get(client: httpx.AsyncClient, url: str) -> str:
    logger.info(f"Fetching {url}")
    try:
        resp = await client.get(
            url,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=FETCH_TIMEOUT,
        )
    except httpx.TimeoutException as e:
        raise FetchError("Request timed out", status_code=504) from e
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to fetch: {e}", status_code=502) from e

    if not resp.is_success:
        raise FetchError(
            f"Failed to fetch: {resp.status_code} {resp.reason_phrase}",
            status_code=502,
        )
    return resp.text
