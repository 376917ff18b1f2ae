"""
FastAPI server for product extraction.

Serves the registry's "add item from link" flow:
- POST /api/extract  → product record from a URL or a raw HTML page
- GET  /api/health   → liveness probe
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, model_validator

from fetcher import FetchError
from models import NormalizedProduct, NotFound
from pipeline import extract_from_html, extract_from_url

logger = logging.getLogger("server")

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.environ.get("NESTY_ALLOWED_ORIGINS", "http://localhost:5173").split(",")
    if o.strip()
]

# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class ExtractRequest(BaseModel):
    """Either a product page URL to fetch, or the page HTML itself."""

    url: str | None = None
    html: str | None = None

    @model_validator(mode="after")
    def exactly_one_source(self) -> "ExtractRequest":
        if (self.url is None) == (self.html is None):
            raise ValueError("Provide exactly one of 'url' or 'html'")
        return self


class ExtractResponse(BaseModel):
    success: bool = True
    product: NormalizedProduct
    source: str  # which method produced the record: json_ld, meta_tags, analytics


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with httpx.AsyncClient() as client:
        app.state.http_client = client
        yield


app = FastAPI(
    title="Nesty Product Extraction API",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    max_age=86400,
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.post("/api/extract", response_model=ExtractResponse)
async def extract_product(req: ExtractRequest):
    """Extract a normalized product record from a page."""
    if req.html is not None:
        result, report = await asyncio.to_thread(extract_from_html, req.html)
    else:
        try:
            result, report = await extract_from_url(
                req.url, client=getattr(app.state, "http_client", None)
            )
        except FetchError as e:
            logger.warning("Fetch failed for %s: %s", req.url, e)
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e

    if isinstance(result, NotFound):
        raise HTTPException(status_code=404, detail=result.reason)

    return ExtractResponse(product=result, source=report.method)
