import asyncio
import logging
from typing import List, Optional

import httpx

from .config import Settings
from .fetcher import fetch_html
from .llm_extract import Generator, llm_extract_product
from .models import Product
from .normalize import dedupe_products, normalize_all
from .scraperapi import fetch_via_proxy
from .structured import parse_jsonld_products
from .websearch import search_web

logger = logging.getLogger(__name__)


def shopping_query(query: str) -> str:
    return f"{query} buy price site:com OR site:in"


def search_budget(limit: int) -> int:
    return min(20, max(5, limit * 3))


async def fetch_page(client: httpx.AsyncClient, url: str, settings: Settings) -> Optional[str]:
    # rendered through the proxy when we have a key, direct otherwise
    if settings.scraper_api_key:
        return await fetch_via_proxy(client, settings.scraper_api_key, url, wait=3000)
    return await fetch_html(client, url)


async def discover_products(
    client: httpx.AsyncClient,
    query: str,
    limit: int,
    settings: Settings,
    generate: Optional[Generator] = None,
    cancel: Optional[asyncio.Event] = None,
) -> List[Product]:
    """
    Search the web for `query`, then walk the hits one by one: JSON-LD
    first, the text model when JSON-LD is empty and `generate` is given.
    Collection stops at `limit * 2` products; the result is deduplicated
    and cut to `limit`.
    """
    hits = await search_web(client, shopping_query(query), search_budget(limit), settings)
    logger.info("/crawl %r: %d search hits", query, len(hits))

    extracted: List[Product] = []
    for hit in hits:
        if cancel is not None and cancel.is_set():
            break
        html = await fetch_page(client, hit.url, settings)
        if not html:
            continue
        partials = parse_jsonld_products(html, hit.url)
        if not partials and generate is not None:
            llm = await llm_extract_product(html, hit.url, generate)
            if llm is not None:
                partials = [llm]
        extracted.extend(normalize_all(partials, hit.url))
        if len(extracted) >= limit * 2:
            break

    return dedupe_products(extracted)[:limit]
