import asyncio
import logging
from typing import List

import httpx
from duckduckgo_search import DDGS

from .config import Settings
from .models import SearchHit

logger = logging.getLogger(__name__)

SERPER_API = "https://google.serper.dev/search"
BRAVE_API = "https://api.search.brave.com/res/v1/web/search"
SEARCH_TIMEOUT = 15.0


async def serper_search(client: httpx.AsyncClient, api_key: str,
                        query: str, limit: int) -> List[SearchHit]:
    r = await client.post(
        SERPER_API,
        json={"q": query, "num": limit},
        headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
        timeout=SEARCH_TIMEOUT,
    )
    r.raise_for_status()
    organic = r.json().get("organic") or []
    return [SearchHit(url=o["link"], title=o.get("title"), snippet=o.get("snippet"))
            for o in organic[:limit] if o.get("link")]


async def brave_search(client: httpx.AsyncClient, api_key: str,
                       query: str, limit: int) -> List[SearchHit]:
    r = await client.get(
        BRAVE_API,
        params={"q": query, "count": limit},
        headers={"X-Subscription-Token": api_key, "Accept": "application/json"},
        timeout=SEARCH_TIMEOUT,
    )
    r.raise_for_status()
    web = (r.json().get("web") or {}).get("results") or []
    return [SearchHit(url=w["url"], title=w.get("title"), snippet=w.get("description"))
            for w in web[:limit] if w.get("url")]


def ddg_search(query: str, limit: int) -> List[SearchHit]:
    outs: List[SearchHit] = []
    with DDGS() as ddgs:
        for r in ddgs.text(query, max_results=limit):
            u = (r.get("href") or r.get("url") or "").strip()
            if u.startswith("http"):
                outs.append(SearchHit(url=u, title=r.get("title"), snippet=r.get("body")))
    return outs[:limit]


def _unique(hits: List[SearchHit], limit: int) -> List[SearchHit]:
    seen, uniq = set(), []
    for h in hits:
        if h.url not in seen:
            seen.add(h.url)
            uniq.append(h)
    return uniq[:limit]


async def search_web(client: httpx.AsyncClient, query: str, limit: int,
                     settings: Settings) -> List[SearchHit]:
    """
    Serper -> Brave -> (opt-in) DuckDuckGo. Each configured provider gets a
    single attempt; the first one that answers wins. No provider, or every
    provider failing, gives an empty list.
    """
    if settings.serper_api_key:
        try:
            return _unique(await serper_search(client, settings.serper_api_key, query, limit), limit)
        except (httpx.HTTPError, ValueError, KeyError, AttributeError) as e:
            logger.warning("Serper search failed, falling back: %s", e)

    if settings.brave_api_key:
        try:
            return _unique(await brave_search(client, settings.brave_api_key, query, limit), limit)
        except (httpx.HTTPError, ValueError, KeyError, AttributeError) as e:
            logger.warning("Brave search failed: %s", e)

    if settings.ddg_fallback:
        try:
            return _unique(await asyncio.to_thread(ddg_search, query, limit), limit)
        except Exception as e:
            logger.warning("DuckDuckGo search failed: %s", e)

    return []
