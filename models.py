from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExtractionSources(BaseModel):
    """Everything the extractor may look at on a page.

    Gathered by the page parser (or any other caller) and passed in, so
    extraction never touches a live document.
    """

    # Raw text of each <script type="application/ld+json">, in document order
    json_ld: list[str] = []
    # Meta tag content keyed by name with the og:/product: prefix stripped,
    # e.g. "title", "price:amount", "price:currency", "image", "availability"
    meta: dict[str, str] = {}
    # The ShopifyAnalytics global: {"meta": {"product": {...}, "currency": "USD"}}
    analytics: dict[str, Any] | None = None


class NormalizedProduct(BaseModel):
    """The record handed to the registry form. Every field is always present."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    price: str = ""  # as supplied by the source, no parsing or rounding
    price_currency: str = Field(default="", alias="priceCurrency")
    brand: str = ""
    category: str = ""
    image_urls: list[str] = Field(default_factory=list, alias="imageUrls")


class NotFound(BaseModel):
    """No source on the page yielded product data. Returned, never raised."""

    reason: str = "No product data found on this page"


class RecordKind(str, Enum):
    PRODUCT = "Product"
    PRODUCT_GROUP = "ProductGroup"
    GRAPH = "Graph"
    UNRECOGNIZED = "Unrecognized"


@dataclass
class ClassifiedRecord:
    """A JSON-LD object tagged with the shape it was recognized as."""

    kind: RecordKind
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractionReport:
    """Provenance for one extraction call."""

    method: str = ""  # "json_ld", "meta_tags", "analytics", or "" when nothing matched
    json_ld_index: int | None = None  # payload that produced the record
    kind: RecordKind | None = None  # shape of the object that was normalized
    parse_errors: list[int] = field(default_factory=list)  # payload indexes that were not JSON
