import asyncio
import logging
import re
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from .fetcher import fetch_html
from .heuristics import extract_meta_product, looks_like_product_url
from .models import Product
from .normalize import dedupe_products, normalize, normalize_all, registered_domain
from .robots import RobotsCache, is_allowed
from .structured import parse_jsonld_products

logger = logging.getLogger(__name__)

MAX_PAGES = 40
PER_DOMAIN_LIMIT = 10
MAX_DEPTH = 2
REQUEST_DELAY_MS = 300

CATEGORY_SEEDS = {
    "smartphone": ["amazon.in", "flipkart.com", "croma.com", "reliancedigital.in", "vijaysales.com"],
    "laptop": ["amazon.in", "flipkart.com", "croma.com", "reliancedigital.in"],
    "headphones": ["amazon.in", "flipkart.com", "croma.com"],
    "smartwatch": ["amazon.in", "flipkart.com", "croma.com"],
    "camera": ["amazon.in", "flipkart.com"],
    "shoes": ["myntra.com", "ajio.com", "amazon.in", "flipkart.com"],
    "clothing": ["myntra.com", "ajio.com", "amazon.in"],
    "monitor": ["amazon.in", "flipkart.com", "reliancedigital.in"],
}
DEFAULT_SEEDS = ["amazon.in", "flipkart.com"]

_HREF_RE = re.compile(r'<a[^>]+href=["\']([^"\'#]+)["\'][^>]*>', flags=re.I)


def domain_of(url: str) -> str:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def site_of(url: str) -> str:
    """Registered domain (m.shop.in -> shop.in); bare host when there is no public suffix."""
    site = registered_domain(url)
    return site if "." in site else domain_of(url)


def norm_url(u: str) -> str:
    pu = urlsplit(u)
    host = pu.netloc.lower()
    path = pu.path or "/"
    return urlunsplit((pu.scheme.lower(), host, path, pu.query, ""))


def extract_links(base_url: str, html: str) -> List[str]:
    seen: Set[str] = set()
    outs: List[str] = []
    for href in _HREF_RE.findall(html):
        href = href.strip()
        if href.startswith(("javascript:", "mailto:", "tel:")):
            continue
        try:
            out = norm_url(urljoin(base_url, href))
        except ValueError:
            continue
        if out.startswith("http") and out not in seen:
            seen.add(out)
            outs.append(out)
    return outs


def detect_category(query: str) -> Optional[str]:
    q = query.lower()
    for k in CATEGORY_SEEDS:
        if k in q:
            return k
    if "phone" in q or "mobile" in q:
        return "smartphone"
    return None


def seed_domains_for(query: str, seed_domains: Optional[List[str]] = None) -> List[str]:
    if seed_domains:
        cleaned = [domain_of(d if "://" in d else f"https://{d}") for d in seed_domains]
        cleaned = [d for d in cleaned if d]
        if cleaned:
            return cleaned
    category = detect_category(query)
    return list(CATEGORY_SEEDS[category]) if category else list(DEFAULT_SEEDS)


@dataclass
class CrawlJob:
    """Frontier state for one crawl; never shared between crawls."""
    queue: Deque[Tuple[str, int]] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    domain_counts: Counter = field(default_factory=Counter)
    robots: RobotsCache = field(default_factory=RobotsCache)
    fetches: int = 0
    max_depth_seen: int = 0


def _stopped(cancel: Optional[asyncio.Event], deadline: Optional[float]) -> bool:
    if cancel is not None and cancel.is_set():
        return True
    return deadline is not None and time.monotonic() >= deadline


def extract_page_products(html: str, url: str) -> List[Product]:
    """JSON-LD first; on product-looking URLs fall back to og/meta tags."""
    partials = parse_jsonld_products(html, url)
    products = normalize_all(partials, url)
    if not partials and looks_like_product_url(url):
        meta = extract_meta_product(html, url)
        if meta is not None:
            prod = normalize(meta, url)
            if prod is not None:
                products.append(prod)
    return products


async def crawl_for_products(
    client: httpx.AsyncClient,
    query: str,
    *,
    seed_domains: Optional[List[str]] = None,
    max_pages: int = MAX_PAGES,
    per_domain_limit: int = PER_DOMAIN_LIMIT,
    max_depth: int = MAX_DEPTH,
    request_delay_ms: int = REQUEST_DELAY_MS,
    cancel: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
    job: Optional[CrawlJob] = None,
) -> List[Product]:
    """
    Breadth-first product crawl from seed domains.

    A URL is fetched only while the page budget (`max_pages` visited URLs),
    its site's quota and robots.txt allow it; links are followed on the
    same registered domain up to `max_depth`. One fetch at a time, with a fixed delay
    between fetches. Stops early when `cancel` is set or `deadline`
    (time.monotonic) passes, returning whatever was found so far.
    """
    job = job if job is not None else CrawlJob()
    seeds = seed_domains_for(query, seed_domains)
    for d in seeds:
        job.queue.append((f"https://{d}/", 0))
    logger.info("crawl %r: seeds=%s pages=%d per_domain=%d depth=%d",
                query, seeds, max_pages, per_domain_limit, max_depth)

    products: List[Product] = []
    while job.queue and len(job.visited) < max_pages:
        if _stopped(cancel, deadline):
            logger.info("crawl %r stopped early after %d pages", query, len(job.visited))
            break
        url, depth = job.queue.popleft()
        if url in job.visited:
            continue
        # quotas and link-following are per site, robots.txt per host
        site, host = site_of(url), domain_of(url)
        if job.domain_counts[site] >= per_domain_limit:
            continue
        job.domain_counts[site] += 1
        job.visited.add(url)
        job.max_depth_seen = max(job.max_depth_seen, depth)

        policy = await job.robots.get_policy(client, host)
        if not is_allowed(url, policy):
            logger.info("[SKIP robots] %s", url)
            continue

        if job.fetches and request_delay_ms > 0:
            await asyncio.sleep(request_delay_ms / 1000.0)
        job.fetches += 1
        html = await fetch_html(client, url)
        if not html:
            continue

        products.extend(extract_page_products(html, url))

        if depth < max_depth:
            for link in extract_links(url, html):
                if site_of(link) == site and link not in job.visited:
                    job.queue.append((link, depth + 1))

    logger.info("crawl %r done: visited=%d products=%d",
                query, len(job.visited), len(products))
    return dedupe_products(products)[:max_pages]
