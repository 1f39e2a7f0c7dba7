import asyncio
import logging
import re
import time
from functools import partial
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .crawler import crawl_for_products
from .details import extract_page_details
from .discover import discover_products
from .fetcher import fetch_response
from .llm_extract import Generator
from .models import (CrawlBasicRequest, CrawlRequest, ScrapeRequest,
                     ScrapeUrlRequest, SearchFreeRequest)
from .ollama_client import ollama_generate
from .retailers import search_free as run_search_free
from .scraperapi import ScraperNotConfigured, proxy_summary, search_multiple_sources

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Shopscout", version="0.3.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
)

# hard ceilings for /crawl-basic knobs
MAX_PAGES_CEILING = 60
PER_DOMAIN_CEILING = 15
MAX_DEPTH_CEILING = 3
CRAWL_LIMIT_CEILING = 50
SCRAPE_URL_TIMEOUT = 25.0
_URL_RE = re.compile(r"^https?://", re.I)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    where = ".".join(str(p) for p in errors[0]["loc"]) if errors else "body"
    return JSONResponse({"error": f"invalid request: {where}"}, status_code=400)


# ---- dependencies ----

async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


def get_generator(settings: Settings = Depends(get_settings)) -> Optional[Generator]:
    if not settings.llm_enabled:
        return None
    return partial(ollama_generate, settings=settings)


def _require_query(query: Optional[str], message: str = "query is required") -> str:
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail=message)
    return query.strip()


def _clamp(value: Optional[int], default: int, ceiling: int) -> int:
    return max(0, min(ceiling, default if value is None else value))


async def _watch_disconnect(request: Request, cancel: asyncio.Event, every: float = 0.5):
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info("client went away, cancelling %s", request.url.path)
            cancel.set()
            return
        await asyncio.sleep(every)


# ---- routes ----

@app.get("/health")
def health(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "env": settings.env}


@app.post("/crawl")
async def crawl(
    body: CrawlRequest,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
    generate: Optional[Generator] = Depends(get_generator),
):
    query = _require_query(body.query)
    limit = max(1, min(CRAWL_LIMIT_CEILING, body.limit))
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        products = await discover_products(client, query, limit, settings,
                                           generate=generate, cancel=cancel)
    except Exception as e:
        logger.exception("/crawl failed: %s", e)
        raise HTTPException(status_code=500, detail="crawl_failed")
    finally:
        cancel.set()
        watcher.cancel()
    return {"success": True, "total": len(products),
            "products": [p.model_dump(by_alias=True) for p in products]}


@app.post("/crawl-basic")
async def crawl_basic(
    body: CrawlBasicRequest,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    query = _require_query(body.query)
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    t0 = time.monotonic()
    try:
        products = await crawl_for_products(
            client,
            query,
            seed_domains=body.seed_domains,
            max_pages=_clamp(body.max_pages, 40, MAX_PAGES_CEILING),
            per_domain_limit=_clamp(body.per_domain_limit, 8, PER_DOMAIN_CEILING),
            max_depth=_clamp(body.max_depth, 2, MAX_DEPTH_CEILING),
            request_delay_ms=settings.crawl_delay_ms,
            cancel=cancel,
            deadline=t0 + settings.request_timeout_sec,
        )
    except Exception as e:
        logger.exception("/crawl-basic failed: %s", e)
        raise HTTPException(status_code=500, detail="crawl_basic_failed")
    finally:
        cancel.set()
        watcher.cancel()
    logger.info("/crawl-basic %r: %d products in %.1fs", query, len(products),
                time.monotonic() - t0)
    return {"success": True, "total": len(products),
            "products": [p.model_dump(by_alias=True) for p in products]}


@app.post("/scrape-url")
async def scrape_url(
    body: ScrapeUrlRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    url = body.url
    if not url or not _URL_RE.match(url):
        raise HTTPException(status_code=400, detail="Valid url is required")
    try:
        r = await fetch_response(client, url, timeout=SCRAPE_URL_TIMEOUT)
    except httpx.HTTPStatusError as e:
        raise HTTPException(status_code=502, detail=f"Fetch failed: {e.response.status_code}")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info("/scrape-url fetch %s failed: %s", url, e)
        raise HTTPException(status_code=502, detail=f"Fetch failed: {type(e).__name__}")
    try:
        data = extract_page_details(r.text)
    except Exception as e:
        logger.exception("/scrape-url failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to scrape URL")
    return {"success": True, "url": url, "data": data.model_dump(by_alias=True)}


@app.post("/search-free")
async def search_free(
    body: SearchFreeRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    query = _require_query(body.query, "Query is required")
    max_results = max(1, body.max_results)
    try:
        products, total = await run_search_free(client, query, max_results)
    except Exception as e:
        logger.exception("/search-free failed: %s", e)
        raise HTTPException(status_code=500, detail="Free search failed")
    return {"success": True, "totalFound": total,
            "products": [p.model_dump(by_alias=True) for p in products]}


@app.post("/scrape")
async def scrape(
    body: ScrapeRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    query = _require_query(body.query)
    if not settings.scraper_api_key:
        logger.error("SCRAPER_API_KEY not configured")
        raise HTTPException(status_code=500, detail="ScraperAPI not configured")
    try:
        products = await search_multiple_sources(client, settings.scraper_api_key,
                                                 query, body.options)
    except ScraperNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("/scrape failed: %s", e)
        raise HTTPException(status_code=500, detail="scrape_failed")
    logger.info("/scrape %r: %s", query, proxy_summary(products))
    return {"success": True, "query": query, "totalResults": len(products),
            "products": [p.model_dump(by_alias=True) for p in products]}
