"""Tests for the extraction API (server.py)."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

import server
from fetcher import FetchError
from models import ExtractionReport, NormalizedProduct, NotFound

PRODUCT_HTML = (
    "<html><head>"
    '<script type="application/ld+json">'
    + json.dumps(
        {
            "@type": "ProductGroup",
            "name": "Sleep Sack",
            "brand": "Dreamy",
            "category": "Sleepwear",
            "hasVariant": [
                {"image": "s.jpg", "offers": {"price": "45", "priceCurrency": "USD", "availability": "OutOfStock"}},
                {"image": "m.jpg", "offers": {"price": "49", "priceCurrency": "USD", "availability": "InStock"}},
            ],
        }
    )
    + "</script></head><body></body></html>"
)


@pytest.fixture
def client():
    with TestClient(server.app) as c:
        yield c


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_extract_from_html(client):
    resp = client.post("/api/extract", json={"html": PRODUCT_HTML})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "source": "json_ld",
        "product": {
            "name": "Sleep Sack",
            "price": "49",
            "priceCurrency": "USD",
            "brand": "Dreamy",
            "category": "Sleepwear",
            "imageUrls": ["s.jpg", "m.jpg"],
        },
    }


def test_extract_from_html_not_found(client):
    resp = client.post("/api/extract", json={"html": "<html><body>hello</body></html>"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "No product data found on this page"}


def test_extract_from_url(client, monkeypatch):
    calls = []

    async def fake_extract_from_url(url, client=None):
        calls.append(url)
        return NormalizedProduct(name="Bath Tub", price="30"), ExtractionReport(method="meta_tags")

    monkeypatch.setattr(server, "extract_from_url", fake_extract_from_url)

    resp = client.post("/api/extract", json={"url": "https://shop.example.com/tub"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "meta_tags"
    assert body["product"]["name"] == "Bath Tub"
    assert body["product"]["imageUrls"] == []
    assert calls == ["https://shop.example.com/tub"]


def test_extract_from_url_not_found(client, monkeypatch):
    async def fake_extract_from_url(url, client=None):
        return NotFound(), ExtractionReport()

    monkeypatch.setattr(server, "extract_from_url", fake_extract_from_url)

    resp = client.post("/api/extract", json={"url": "https://shop.example.com/about"})
    assert resp.status_code == 404


@pytest.mark.parametrize(
    "error, status",
    [
        (FetchError("Only HTTP and HTTPS protocols are allowed"), 400),
        (FetchError("Failed to fetch: 500 Internal Server Error", status_code=502), 502),
        (FetchError("Request timed out", status_code=504), 504),
    ],
)
def test_extract_from_url_fetch_errors(client, monkeypatch, error, status):
    async def fake_extract_from_url(url, client=None):
        raise error

    monkeypatch.setattr(server, "extract_from_url", fake_extract_from_url)

    resp = client.post("/api/extract", json={"url": "https://shop.example.com/x"})
    assert resp.status_code == status
    assert resp.json() == {"detail": str(error)}


def test_invalid_url_rejected_before_fetch(client):
    resp = client.post("/api/extract", json={"url": "ftp://shop.example.com/x"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Only HTTP and HTTPS protocols are allowed"}


@pytest.mark.parametrize("body", [{}, {"url": "https://a.example", "html": "<html></html>"}])
def test_exactly_one_source_required(client, body):
    resp = client.post("/api/extract", json=body)
    assert resp.status_code == 422


def test_html_parsed_off_the_event_loop(client, monkeypatch):
    calls = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        calls.append(func)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    resp = client.post("/api/extract", json={"html": PRODUCT_HTML})
    assert resp.status_code == 200
    assert calls == [server.extract_from_html]
