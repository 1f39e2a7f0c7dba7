import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
              "(KHTML, like Gecko) Chrome/124.0 Safari/537.36")
BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}
DEFAULT_TIMEOUT = 20.0


def is_markup(content_type: str, allow_plain: bool = False) -> bool:
    ct = content_type.lower()
    if "text/html" in ct or "xml" in ct:
        return True
    return allow_plain and "text/plain" in ct


async def fetch_response(client: httpx.AsyncClient, url: str,
                         timeout: float = DEFAULT_TIMEOUT) -> httpx.Response:
    """GET `url` with browser headers; raises on network errors and non-2xx."""
    r = await client.get(url, headers=BROWSER_HEADERS, timeout=timeout,
                         follow_redirects=True)
    r.raise_for_status()
    return r


async def fetch_html(client: httpx.AsyncClient, url: str,
                     timeout: float = DEFAULT_TIMEOUT,
                     allow_plain: bool = False) -> Optional[str]:
    """Page text, or None on timeout, network error, non-2xx or non-markup."""
    try:
        r = await fetch_response(client, url, timeout=timeout)
    except httpx.HTTPStatusError as e:
        logger.info("fetch %s -> %s", url, e.response.status_code)
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info("fetch %s failed: %s", url, e)
        return None
    if not is_markup(r.headers.get("content-type", ""), allow_plain):
        logger.debug("fetch %s skipped, content-type %s", url,
                     r.headers.get("content-type"))
        return None
    return r.text
