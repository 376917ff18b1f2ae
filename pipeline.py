"""HTML and URL entry points: fetch -> parse -> extract."""

import asyncio
import logging

import httpx

from extractor import extract_with_report
from fetcher import fetch_html
from models import ExtractionReport, NormalizedProduct, NotFound
from parser import parse_html

logger = logging.getLogger(__name__)


def extract_from_html(html: str) -> tuple[NormalizedProduct | NotFound, ExtractionReport]:
    """Run extraction over a raw HTML page."""
    return extract_with_report(parse_html(html))


async def extract_from_url(
    url: str, client: httpx.AsyncClient | None = None
) -> tuple[NormalizedProduct | NotFound, ExtractionReport]:
    """Fetch a product URL and extract from the returned page.

    Raises FetchError when the page cannot be downloaded; a page without
    product data yields NotFound.
    """
    html = await fetch_html(url, client=client)
    # lxml parsing is CPU-bound; keep it off the event loop
    result, report = await asyncio.to_thread(extract_from_html, html)
    if isinstance(result, NotFound):
        logger.info(f"No product data at {url}")
    else:
        logger.info(f"Extracted '{result.name}' from {url} via {report.method}")
    return result, report
