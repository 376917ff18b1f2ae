"""
Product data extractor: structured data -> one normalized product record.

Three methods, tried in priority order, first hit wins (no merging):
  1) JSON-LD payloads (Product, ProductGroup, or a @graph holding one)
  2) Open Graph / product meta tags
  3) Shopify analytics global

Pure functions over an ExtractionSources bundle. No I/O, no shared state.
"""

import json
import logging
from typing import Any

from models import (
    ClassifiedRecord,
    ExtractionReport,
    ExtractionSources,
    NormalizedProduct,
    NotFound,
    RecordKind,
)

logger = logging.getLogger(__name__)

# Objects with a name and offers are treated as products unless tagged as one of these
NON_PRODUCT_TYPES = {"WebSite", "Organization", "BreadcrumbList", "WebPage", "SearchAction"}

# Offer keys tried in order for the price
PRICE_KEYS = ("price", "lowPrice", "highPrice")

IN_STOCK_MARKER = "InStock"


# =====================================================================
# Public entry points
# =====================================================================


def extract(sources: ExtractionSources) -> NormalizedProduct | NotFound:
    """Return the best product record found in sources, or NotFound."""
    result, _report = extract_with_report(sources)
    return result


def extract_with_report(
    sources: ExtractionSources,
) -> tuple[NormalizedProduct | NotFound, ExtractionReport]:
    """Same as extract(), also returning which method produced the result."""
    report = ExtractionReport()

    # 1. JSON-LD
    product = _extract_from_json_ld(sources.json_ld, report)
    if product is not None:
        report.method = "json_ld"
        return product, report

    # 2. Meta tags
    product = _extract_from_meta(sources.meta)
    if product is not None:
        logger.info("Found product data in meta tags")
        report.method = "meta_tags"
        return product, report

    # 3. Shopify analytics
    product = _extract_from_analytics(sources.analytics)
    if product is not None:
        logger.info("Found product data in ShopifyAnalytics")
        report.method = "analytics"
        return product, report

    logger.info("No product data found on page")
    return NotFound(), report


# =====================================================================
# Classification
# =====================================================================


def classify(data: Any) -> ClassifiedRecord:
    """Decide which product shape a parsed JSON-LD object has.

    Runs before any field access so the normalizers can assume their shape.
    """
    if not isinstance(data, dict):
        return ClassifiedRecord(RecordKind.UNRECOGNIZED)

    ld_type = data.get("@type")
    # Any offers value counts, even an empty object or list
    product_like = (
        bool(data.get("name"))
        and data.get("offers") is not None
        and _type_not_in(ld_type, NON_PRODUCT_TYPES | {"ProductGroup"})
    )

    if ld_type == "Product" or product_like:
        return ClassifiedRecord(RecordKind.PRODUCT, data)
    if ld_type == "ProductGroup":
        return ClassifiedRecord(RecordKind.PRODUCT_GROUP, data)
    if isinstance(data.get("@graph"), list):
        return ClassifiedRecord(RecordKind.GRAPH, data)
    return ClassifiedRecord(RecordKind.UNRECOGNIZED, data)


def _type_not_in(ld_type: Any, excluded: set[str]) -> bool:
    # Unhashable tags (e.g. ["Product", "Thing"]) are never in the excluded set
    return not (isinstance(ld_type, str) and ld_type in excluded)


def _find_graph_member(graph: list) -> ClassifiedRecord | None:
    """First @graph element typed exactly Product or ProductGroup."""
    for item in graph:
        if not isinstance(item, dict):
            continue
        if item.get("@type") == "Product":
            return ClassifiedRecord(RecordKind.PRODUCT, item)
        if item.get("@type") == "ProductGroup":
            return ClassifiedRecord(RecordKind.PRODUCT_GROUP, item)
    return None


# =====================================================================
# Method 1: JSON-LD
# =====================================================================


def _extract_from_json_ld(payloads: list[str], report: ExtractionReport) -> NormalizedProduct | None:
    logger.debug(f"Found {len(payloads)} JSON-LD payload(s)")

    for index, payload in enumerate(payloads):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, TypeError):
            logger.debug(f"Skipping malformed JSON-LD payload {index}")
            report.parse_errors.append(index)
            continue

        # Some sites wrap several objects in a top-level array
        candidates = data if isinstance(data, list) else [data]
        for candidate in candidates:
            record = classify(candidate)
            if record.kind == RecordKind.GRAPH:
                member = _find_graph_member(record.data["@graph"])
                if member is None:
                    continue
                record = member
                logger.info(f"Found {record.kind.value} in @graph of JSON-LD payload {index}")
            elif record.kind == RecordKind.UNRECOGNIZED:
                continue
            else:
                logger.info(f"Found {record.kind.value} in JSON-LD payload {index}")

            report.json_ld_index = index
            report.kind = record.kind
            return _normalize(record)

    return None


def _normalize(record: ClassifiedRecord) -> NormalizedProduct:
    if record.kind == RecordKind.PRODUCT_GROUP:
        return normalize_product_group(record.data)
    return normalize_product(record.data)


def normalize_product(data: dict) -> NormalizedProduct:
    """Normalize a schema.org Product (or product-like) object."""
    offer = _first_offer(data.get("offers"))

    price = ""
    for key in PRICE_KEYS:
        price = _text(offer.get(key))
        if price:
            break

    return NormalizedProduct(
        name=_text(data.get("name")),
        price=price,
        price_currency=_text(offer.get("priceCurrency")),
        brand=_brand_name(data.get("brand")),
        category=_text(data.get("category")),
        image_urls=_dedup(_image_list(data.get("image"))),
    )


def normalize_product_group(data: dict) -> NormalizedProduct:
    """Normalize a schema.org ProductGroup.

    Price comes from one selected variant (first in stock, else first);
    images are gathered from every variant.
    """
    # A present hasVariant wins even when empty
    variants = data.get("hasVariant")
    if variants is None:
        variants = data.get("offers")
    selected: Any = None
    if isinstance(variants, list):
        selected = next((v for v in variants if _is_in_stock(v)), None)
        if selected is None and variants:
            selected = variants[0]
    else:
        selected = variants

    offer = _first_offer(selected.get("offers")) if isinstance(selected, dict) else {}

    image_urls: list[str] = []
    has_variant = data.get("hasVariant")
    if isinstance(has_variant, list):
        for variant in has_variant:
            if isinstance(variant, dict):
                image_urls.extend(_image_list(variant.get("image")))

    return NormalizedProduct(
        name=_text(data.get("name")),
        price=_text(offer.get("price")),
        price_currency=_text(offer.get("priceCurrency")),
        brand=_brand_name(data.get("brand")),
        category=_text(data.get("category")),
        image_urls=_dedup(image_urls),
    )


def _is_in_stock(variant: Any) -> bool:
    if not isinstance(variant, dict):
        return False
    offers = variant.get("offers")
    if not isinstance(offers, dict):
        return False
    availability = offers.get("availability")
    return isinstance(availability, str) and IN_STOCK_MARKER in availability


# =====================================================================
# Method 2: Meta tags
# =====================================================================


def _extract_from_meta(meta: dict[str, str]) -> NormalizedProduct | None:
    title = _text(meta.get("title"))
    if not title:
        return None

    image = _text(meta.get("image"))
    # "availability" is not part of the record
    return NormalizedProduct(
        name=title,
        price=_text(meta.get("price:amount")),
        price_currency=_text(meta.get("price:currency")),
        image_urls=[image] if image else [],
    )


# =====================================================================
# Method 3: Shopify analytics
# =====================================================================


def _extract_from_analytics(analytics: dict | None) -> NormalizedProduct | None:
    meta = analytics.get("meta") if isinstance(analytics, dict) else None
    if not isinstance(meta, dict):
        return None
    product = meta.get("product")
    if not isinstance(product, dict) or not _text(product.get("name")):
        return None

    return NormalizedProduct(
        name=_text(product.get("name")),
        price=_text(product.get("price")),
        price_currency=_text(meta.get("currency")),
        brand=_text(product.get("vendor")),
    )


# =====================================================================
# Field helpers
# =====================================================================


def _text(value: Any) -> str:
    """Render a scalar source value as a string; anything else becomes ""."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _first_offer(offers: Any) -> dict:
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else {}


def _brand_name(brand: Any) -> str:
    if isinstance(brand, dict):
        return _text(brand.get("name"))
    return _text(brand)


def _image_list(image: Any) -> list[str]:
    """Flatten a schema.org image value (URL, ImageObject, or a list of either)."""
    items = image if isinstance(image, list) else [image]
    urls: list[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("url") or item.get("contentUrl")
        if isinstance(item, str) and item:
            urls.append(item)
    return urls


def _dedup(urls: list[str]) -> list[str]:
    return list(dict.fromkeys(urls))  # deduplicate preserving order
