"""Tests for page fetching (fetcher.py) and extract_from_url."""

import asyncio

import httpx
import pytest

import pipeline
from fetcher import USER_AGENT, FetchError, fetch_html, validate_url
from models import NotFound
from pipeline import extract_from_url

PRODUCT_PAGE = (
    "<html><head>"
    '<script type="application/ld+json">'
    '{"@type": "Product", "name": "High Chair", "offers": {"price": "210", "priceCurrency": "USD"}}'
    "</script></head><body></body></html>"
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _fetch(url: str, handler) -> str:
    async with _client(handler) as client:
        return await fetch_html(url, client=client)


# --- URL validation ---


@pytest.mark.parametrize(
    "url, message",
    [
        ("", "URL is required"),
        ("   ", "URL is required"),
        ("not a url", "Invalid URL format"),
        ("https://", "Invalid URL format"),
        ("ftp://files.example.com/crib.html", "Only HTTP and HTTPS protocols are allowed"),
        ("javascript:alert(1)", "Only HTTP and HTTPS protocols are allowed"),
        ("file:///etc/passwd", "Only HTTP and HTTPS protocols are allowed"),
    ],
)
def test_rejected_urls(url, message):
    with pytest.raises(FetchError) as exc_info:
        validate_url(url)
    assert str(exc_info.value) == message
    assert exc_info.value.status_code == 400


def test_accepted_url_is_stripped():
    assert validate_url("  https://shop.example.com/p/1  ") == "https://shop.example.com/p/1"


# --- Fetching ---


def test_fetch_sends_browser_user_agent():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(200, text="<html>ok</html>")

    assert asyncio.run(_fetch("https://shop.example.com/p/1", handler)) == "<html>ok</html>"
    assert seen["ua"] == USER_AGENT


def test_fetch_non_success_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(_fetch("https://shop.example.com/missing", handler))
    assert str(exc_info.value) == "Failed to fetch: 404 Not Found"
    assert exc_info.value.status_code == 502


def test_fetch_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(_fetch("https://slow.example.com/", handler))
    assert str(exc_info.value) == "Request timed out"
    assert exc_info.value.status_code == 504


def test_fetch_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(_fetch("https://down.example.com/", handler))
    assert exc_info.value.status_code == 502


def test_invalid_url_never_hits_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("should not be called")

    with pytest.raises(FetchError):
        asyncio.run(_fetch("ftp://shop.example.com/", handler))


# --- extract_from_url ---


def test_extract_from_url():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=PRODUCT_PAGE)

    async def run():
        async with _client(handler) as client:
            return await extract_from_url("https://shop.example.com/chair", client=client)

    result, report = asyncio.run(run())
    assert result.name == "High Chair"
    assert result.price == "210"
    assert report.method == "json_ld"


def test_extract_from_url_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html><body>Nothing here</body></html>")

    async def run():
        async with _client(handler) as client:
            return await extract_from_url("https://shop.example.com/about", client=client)

    result, _report = asyncio.run(run())
    assert isinstance(result, NotFound)


def test_extract_from_url_parses_in_worker_thread(monkeypatch):
    calls = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        calls.append(func)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=PRODUCT_PAGE)

    async def run():
        async with _client(handler) as client:
            return await extract_from_url("https://shop.example.com/chair", client=client)

    result, _report = asyncio.run(run())
    assert result.name == "High Chair"
    assert calls == [pipeline.extract_from_html]
