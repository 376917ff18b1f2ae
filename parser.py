"""
HTML parser that gathers extraction sources from a product page.

Collects the three inputs the extractor understands:
JSON-LD script bodies (left unparsed), Open Graph / product meta tags,
and the ShopifyAnalytics global assigned in inline scripts.

No site-specific or page-specific logic.
"""

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from models import ExtractionSources

logger = logging.getLogger(__name__)

_STRUCTURED_SCRIPT_TYPES = ("application/json", "text/json", "application/ld+json")

# `window.ShopifyAnalytics.meta = {...}` or Shopify's bootstrap `var meta = {...};`
_ANALYTICS_META_RE = re.compile(r"(?:ShopifyAnalytics\.meta|\bvar\s+meta)\s*=")
_ANALYTICS_CURRENCY_RE = re.compile(r"ShopifyAnalytics\.meta\.currency\s*=\s*['\"]([^'\"]+)['\"]")


def parse_html(html: str) -> ExtractionSources:
    """Parse an HTML page and gather every source the extractor can use."""
    soup = BeautifulSoup(html, "lxml")

    sources = ExtractionSources(
        json_ld=_extract_json_ld(soup),
        meta=_extract_og_tags(soup),
        analytics=_extract_shopify_analytics(soup),
    )
    logger.debug(
        f"Parsed: {len(sources.json_ld)} JSON-LD, {len(sources.meta)} meta tags, "
        f"analytics={'yes' if sources.analytics else 'no'}"
    )
    return sources


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _extract_json_ld(soup: BeautifulSoup) -> list[str]:
    """Raw text of every <script type="application/ld+json">, in document order.

    Decoding is left to the extractor so malformed blocks are still seen there.
    """
    payloads: list[str] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string
        if text and text.strip():
            payloads.append(text.strip())
    return payloads


# ---------------------------------------------------------------------------
# Open Graph meta tags
# ---------------------------------------------------------------------------


def _extract_og_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract Open Graph and product meta tags. Handles both property= and name= attributes."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        prop = meta.get("property", "") or meta.get("name", "")
        if not isinstance(prop, str):
            continue
        content = meta.get("content", "")
        if not content:
            continue
        if prop.startswith("og:"):
            key = prop[3:]
            tags[key] = content
        elif prop.startswith("product:"):
            # Facebook product tags (e.g., product:price:amount -> price:amount)
            key = prop[8:]
            if key not in tags:
                tags[key] = content
    return tags


# ---------------------------------------------------------------------------
# Shopify analytics
# ---------------------------------------------------------------------------


def _extract_shopify_analytics(soup: BeautifulSoup) -> dict[str, Any] | None:
    """Rebuild window.ShopifyAnalytics from its inline assignments.

    Returns {"meta": {...}} or None when the page carries no analytics meta.
    """
    meta: dict[str, Any] = {}

    for tag in soup.find_all("script"):
        if tag.get("src") or tag.get("type") in _STRUCTURED_SCRIPT_TYPES:
            continue
        text = tag.string
        if not text or "ShopifyAnalytics" not in text:
            continue

        for match in _ANALYTICS_META_RE.finditer(text):
            json_str = _brace_match(text, match.end())
            if not json_str:
                continue
            try:
                data = json.loads(json_str)
            except (json.JSONDecodeError, TypeError):
                logger.debug("Skipping malformed ShopifyAnalytics meta")
                continue
            if isinstance(data, dict):
                meta.update(data)

        currency = _ANALYTICS_CURRENCY_RE.search(text)
        if currency:
            meta["currency"] = currency.group(1)

    return {"meta": meta} if meta else None


def _brace_match(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array from text starting at position start.

    Skips leading whitespace. Handles nested braces/brackets and string
    literals with escaped quotes.
    """
    while start < len(text) and text[start] in " \t\n\r":
        start += 1
    if start >= len(text) or text[start] not in ("{", "["):
        return None

    depth = 0
    in_string = False
    escape_next = False
    i = start

    while i < len(text):
        c = text[i]

        if escape_next:
            escape_next = False
            i += 1
            continue

        if c == "\\" and in_string:
            escape_next = True
            i += 1
            continue

        if c == '"':
            in_string = not in_string
            i += 1
            continue

        if in_string:
            i += 1
            continue

        # Outside strings: track brace/bracket depth
        if c in ("{", "["):
            depth += 1
        elif c in ("}", "]"):
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

        i += 1

    return None
