import asyncio
import logging
import math
import re
import uuid
from typing import Dict, List, Optional
from urllib.parse import urlencode

import httpx
from bs4 import BeautifulSoup

from .models import PartialProduct, Product, ScrapeOptions
from .normalize import normalize_all
from .utils import to_number

logger = logging.getLogger(__name__)

SCRAPER_BASE_URL = "http://api.scraperapi.com"
PROXY_TIMEOUT = 30.0
LISTING_CAP = 20

KNOWN_BRANDS = [
    "Apple", "Samsung", "OnePlus", "Xiaomi", "Realme", "Oppo", "Vivo",
    "Sony", "LG", "Dell", "HP", "Lenovo", "Asus", "Acer",
    "Nike", "Adidas", "Puma", "Reebok", "Under Armour",
    "Bose", "JBL", "Boat", "Sennheiser", "Audio-Technica",
]
GOOGLE_SORT = {"price_low_to_high": "p_ord:p", "price_high_to_low": "p_ord:pd", "rating": "p_ord:r"}

_RATING_RE = re.compile(r"(\d+\.?\d*)\s*out\s*of\s*5|(\d+\.?\d*)\s*stars?", flags=re.I)
_REVIEWS_RE = re.compile(r"(\d+(?:,\d+)*)\s*reviews?", flags=re.I)
_COUNT_RE = re.compile(r"(\d+(?:,\d+)*)")


class ScraperNotConfigured(RuntimeError):
    pass


def build_scraper_url(api_key: str, target_url: str, **options) -> str:
    params = {
        "api_key": api_key,
        "url": target_url,
        "country_code": "in",
        "device_type": "desktop",
        "premium": "true",
        "render": "true",
        "session_number": uuid.uuid4().hex[:6],
    }
    params.update({k: str(v) for k, v in options.items()})
    return f"{SCRAPER_BASE_URL}?{urlencode(params)}"


async def fetch_via_proxy(client: httpx.AsyncClient, api_key: str, target_url: str,
                          **options) -> Optional[str]:
    """Rendered page HTML through the scraping proxy, None on any failure."""
    if not api_key:
        raise ScraperNotConfigured("SCRAPER_API_KEY not configured")
    try:
        r = await client.get(build_scraper_url(api_key, target_url, **options),
                             timeout=PROXY_TIMEOUT)
        r.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("proxy fetch %s failed: %s", target_url, e)
        return None
    if len(r.text) < 100:
        logger.warning("proxy returned an empty page for %s", target_url)
        return None
    return r.text


# ---- listing-page text helpers ----

def extract_rating(text: str) -> float:
    m = _RATING_RE.search(text or "")
    return float(m.group(1) or m.group(2)) if m else 0.0


def extract_review_count(text: str) -> int:
    m = _REVIEWS_RE.search(text or "") or _COUNT_RE.search(text or "")
    return int(m.group(1).replace(",", "")) if m else 0


def extract_brand(title: str) -> str:
    lowered = title.lower()
    for brand in KNOWN_BRANDS:
        if brand.lower() in lowered:
            return brand
    first_word = title.split(" ")[0] if title else ""
    return first_word if len(first_word) > 1 else "Unknown"


def _absolute(url: str, host: str) -> str:
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        return f"https://{host}{url}"
    return url


def _text(el) -> str:
    return el.get_text(" ", strip=True) if el is not None else ""


def _img(el) -> str:
    if el is None:
        return ""
    return el.get("src") or el.get("data-src") or ""


def parse_amazon_listing(html: str) -> List[PartialProduct]:
    soup = BeautifulSoup(html, "lxml")
    out: List[PartialProduct] = []
    for card in soup.select('[data-component-type="s-search-result"], .s-result-item'):
        title = _text(card.select_one("h2 a span, h2 span, .s-size-mini span"))
        price = to_number(_text(card.select_one(".a-price-whole, .a-offscreen")))
        if not title or price <= 0:
            continue
        link = card.select_one("h2 a, a.s-link-style, a.a-link-normal")
        out.append(PartialProduct(
            origin="proxy",
            title=title,
            price=price,
            currency="INR",
            rating=extract_rating(_text(card.select_one(".a-icon-alt"))),
            review_count=extract_review_count(_text(card.select_one(".s-underline-text, .a-size-base"))),
            image=_absolute(_img(card.select_one("img.s-image, img")), "www.amazon.in"),
            url=_absolute(link.get("href", "") if link else "", "www.amazon.in"),
            source="amazon",
            availability="In Stock",
            brand=extract_brand(title),
            description=title,
        ))
        if len(out) >= LISTING_CAP:
            break
    return out


def parse_google_shopping_listing(html: str) -> List[PartialProduct]:
    soup = BeautifulSoup(html, "lxml")
    out: List[PartialProduct] = []
    for card in soup.select("[data-docid], .sh-dgr__content, .PLla-d"):
        title = _text(card.select_one("h3, .tAxDx, .sh-np__product-title"))
        price = to_number(_text(card.select_one(".a8Pemb, .notranslate, .sh-np__price")))
        if not title or price <= 0:
            continue
        link = card.select_one("a")
        rating_text = _text(card.select_one(".Rsc7Yb, .sh-np__rating"))
        out.append(PartialProduct(
            origin="proxy",
            title=title,
            price=price,
            currency="INR",
            rating=extract_rating(rating_text),
            review_count=extract_review_count(rating_text),
            image=_absolute(_img(card.select_one("img")), "www.google.com"),
            url=_absolute(link.get("href", "") if link else "", "www.google.com"),
            source="google_shopping",
            availability="In Stock",
            brand=extract_brand(title),
            description=title,
        ))
        if len(out) >= LISTING_CAP:
            break
    return out


def amazon_search_url(query: str, options: ScrapeOptions) -> str:
    params = {"k": query, "ref": "sr_pg_1"}
    if options.department:
        params["i"] = options.department
    if options.min_price:
        params["low-price"] = f"{options.min_price:g}"
    if options.max_price:
        params["high-price"] = f"{options.max_price:g}"
    return f"https://www.amazon.in/s?{urlencode(params)}"


def google_shopping_url(query: str, options: ScrapeOptions) -> str:
    params = {"tbm": "shop", "q": query, "hl": "en", "gl": "in"}
    tbs = []
    if options.sort_by in GOOGLE_SORT:
        tbs.append(GOOGLE_SORT[options.sort_by])
    if options.min_price or options.max_price:
        tbs.append("price:1")
        if options.min_price:
            tbs.append(f"ppr_min:{options.min_price:g}")
        if options.max_price:
            tbs.append(f"ppr_max:{options.max_price:g}")
    if tbs:
        params["tbs"] = ",".join(tbs)
    return f"https://www.google.com/search?{urlencode(params)}"


async def search_amazon(client: httpx.AsyncClient, api_key: str, query: str,
                        options: ScrapeOptions) -> List[Product]:
    logger.info("Scraping Amazon: %s", query)
    html = await fetch_via_proxy(client, api_key, amazon_search_url(query, options), wait=3000)
    if not html:
        return []
    return normalize_all(parse_amazon_listing(html), "https://www.amazon.in/")


async def search_google_shopping(client: httpx.AsyncClient, api_key: str, query: str,
                                 options: ScrapeOptions) -> List[Product]:
    logger.info("Scraping Google Shopping: %s", query)
    html = await fetch_via_proxy(client, api_key, google_shopping_url(query, options), wait=3000)
    if not html:
        return []
    return normalize_all(parse_google_shopping_listing(html), "https://www.google.com/")


def relevance_score(product: Product, query_words: List[str]) -> float:
    title = product.title.lower()
    score = 0.0
    if " ".join(query_words) in title:
        score += 100
    score += sum(10 for w in query_words if w and w in title)
    score += product.rating * 2
    score += math.log10(product.review_count + 1)
    return score


def dedupe_by_title_price(products: List[Product]) -> List[Product]:
    seen = set()
    out = []
    for p in products:
        key = f"{p.title.lower()}_{p.price}"
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


async def search_multiple_sources(client: httpx.AsyncClient, api_key: str, query: str,
                                  options: ScrapeOptions) -> List[Product]:
    """Amazon and/or Google Shopping through the proxy, merged and ranked."""
    if not api_key:
        raise ScraperNotConfigured("SCRAPER_API_KEY not configured")
    runners = {"google_shopping": search_google_shopping, "amazon": search_amazon}
    sources = [s for s in runners if s in options.sources]
    results = await asyncio.gather(
        *(runners[s](client, api_key, query, options) for s in sources),
        return_exceptions=True,
    )
    merged: List[Product] = []
    for source, res in zip(sources, results):
        if isinstance(res, Exception):
            logger.error("Search failed for %s: %s", source, res)
            continue
        merged.extend(res)

    unique = dedupe_by_title_price(merged)
    words = query.lower().split()
    unique.sort(key=lambda p: relevance_score(p, words), reverse=True)
    return unique[:options.max_results]


def proxy_summary(products: List[Product]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for p in products:
        counts[p.source] = counts.get(p.source, 0) + 1
    return counts
