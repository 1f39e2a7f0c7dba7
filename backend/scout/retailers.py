"""
Free multi-retailer search.

Each retailer is scraped straight from its search page with regexes keyed
to the CSS class names its listing cards currently use. These break
whenever a retailer ships new markup; fix the patterns in the retailer's
entry below, the orchestration does not need to change.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .fetcher import fetch_html
from .heuristics import find_image, nearest_image
from .models import PartialProduct, Product
from .normalize import dedupe_products, normalize_all, url_key
from .utils import parse_price, strip_tags, to_number

logger = logging.getLogger(__name__)

CATEGORY_PATTERNS: Dict[str, re.Pattern] = {
    "electronics": re.compile(r"phone|laptop|headphone|watch|tablet|tv|speaker|camera|gaming"),
    "clothing": re.compile(r"shirt|pant|dress|shoes|sneaker|jacket|kurta|saree|jeans|top|clothing|fashion|apparel"),
    "grocery": re.compile(r"rice|dal|oil|flour|spice|vegetable|fruit|milk|bread|grocery|food|snack"),
    "medical": re.compile(r"medicine|tablet|capsule|syrup|vitamin|supplement|health|medical|pharma"),
    "home": re.compile(r"furniture|sofa|bed|chair|table|kitchen|home|decor|appliance"),
}


def query_categories(query: str) -> List[str]:
    q = query.lower()
    return [name for name, pat in CATEGORY_PATTERNS.items() if pat.search(q)]


class RetailerScraper:
    """One retailer's search page: where it lives and how to read its cards."""
    source: str
    host: str
    search_path: str
    focus: Optional[str] = None

    def search_url(self, query: str) -> str:
        return f"https://{self.host}{self.search_path.format(q=quote(query, safe=''))}"

    def absolute(self, href: str) -> str:
        return href if href.startswith("http") else f"https://{self.host}{href}"

    def cap_for(self, query: str, max_results: int) -> int:
        if self.focus is None or self.focus in query_categories(query):
            return max_results
        return max_results // 2

    def extract(self, html: str, limit: int) -> List[PartialProduct]:
        raise NotImplementedError

    def _record(self, href: str, title: Optional[str], price: float,
                image: Optional[str], rating: Optional[float] = None) -> Optional[PartialProduct]:
        if not title or not price or not image:
            return None
        return PartialProduct(
            origin="listing",
            title=title,
            price=price,
            currency="INR",
            image=image,
            url=self.absolute(href),
            source=self.source,
            rating=rating,
        )


@dataclass
class BlockRetailer(RetailerScraper):
    """Cards are a single anchor; title/price/image all live inside it."""
    source: str
    host: str
    search_path: str
    card_re: re.Pattern
    title_re: re.Pattern
    price_re: re.Pattern
    rating_re: Optional[re.Pattern] = None
    focus: Optional[str] = None

    def extract(self, html: str, limit: int) -> List[PartialProduct]:
        out: List[PartialProduct] = []
        for m in self.card_re.finditer(html):
            if len(out) >= limit:
                break
            block = m.group(2)
            title = self.title_re.search(block)
            price = self.price_re.search(block)
            rating = self.rating_re.search(block) if self.rating_re else None
            rec = self._record(
                m.group(1),
                strip_tags(title.group(1)) if title else None,
                to_number(price.group(1) if price else None),
                find_image(block),
                parse_price(rating.group(1)) if rating else None,
            )
            if rec is not None:
                out.append(rec)
        return out


@dataclass
class CardRetailer(RetailerScraper):
    """
    One pattern grabs link, title and price; the image sits elsewhere in
    the card, so it is found by scanning back from the match.
    """
    source: str
    host: str
    search_path: str
    card_re: re.Pattern
    image_window: int = 3000
    focus: Optional[str] = None

    def extract(self, html: str, limit: int) -> List[PartialProduct]:
        out: List[PartialProduct] = []
        for m in self.card_re.finditer(html):
            if len(out) >= limit:
                break
            rec = self._record(
                m.group(1),
                strip_tags(m.group(2)),
                to_number(m.group(3)),
                nearest_image(html, m.start(), self.image_window),
            )
            if rec is not None:
                out.append(rec)
        return out


_S = re.S

RETAILERS: List[RetailerScraper] = [
    BlockRetailer(
        source="flipkart",
        host="www.flipkart.com",
        search_path="/search?q={q}",
        card_re=re.compile(r'<a\s+class="[^"]*?_1fQZEK[^"]*?"\s+href="([^"]+)"[^>]*>(.*?)</a>', _S),
        title_re=re.compile(r"<div[^>]*?_4rR01T[^>]*>([^<]+)</div>"),
        price_re=re.compile(r"<div[^>]*?_30jeq3[^>]*>₹?([\d,]+)"),
        rating_re=re.compile(r"<div[^>]*?_3LWZlK[^>]*>([\d.]+)</div>"),
    ),
    CardRetailer(
        source="croma",
        host="www.croma.com",
        search_path="/searchB?q={q}:relevance&text={q}",
        card_re=re.compile(
            r'<a[^>]*?class="product__list--name"[^>]*?href="([^"]+)"[^>]*>(.*?)</a>'
            r'.*?<span[^>]*?data-testid="price"[^>]*?>\s*₹?([\d,]+)', _S),
        image_window=3000,
        focus="electronics",
    ),
    CardRetailer(
        source="reliance",
        host="www.reliancedigital.in",
        search_path="/search?q={q}:relevance",
        card_re=re.compile(
            r'<a[^>]*?class="[^"]*sp__prd__name[^"]*"[^>]*?href="([^"]+)"[^>]*>(.*?)</a>'
            r'.*?<span[^>]*?class="[^"]*sp__price[^"]*"[^>]*?>\s*₹?([\d,]+)', _S),
        image_window=2500,
        focus="electronics",
    ),
    BlockRetailer(
        source="myntra",
        host="www.myntra.com",
        search_path="/{q}?rawQuery={q}",
        card_re=re.compile(r'<a[^>]*?class="[^"]*product-base[^"]*"[^>]*?href="([^"]+)"[^>]*>(.*?)</a>', _S),
        title_re=re.compile(r'<h4[^>]*?class="[^"]*product-product[^"]*"[^>]*>([^<]+)</h4>'),
        price_re=re.compile(r'<span[^>]*?class="[^"]*product-discountedPrice[^"]*"[^>]*>₹?([\d,]+)'),
        focus="clothing",
    ),
    BlockRetailer(
        source="bigbasket",
        host="www.bigbasket.com",
        search_path="/ps/?q={q}",
        card_re=re.compile(r'<a[^>]*?class="[^"]*product[^"]*"[^>]*?href="([^"]+)"[^>]*>(.*?)</a>', _S),
        title_re=re.compile(r"<h3[^>]*?>([^<]+)</h3>"),
        price_re=re.compile(r'<span[^>]*?class="[^"]*discnt-price[^"]*"[^>]*>₹?([\d,]+)'),
        focus="grocery",
    ),
    BlockRetailer(
        source="1mg",
        host="www.1mg.com",
        search_path="/search/all?name={q}",
        card_re=re.compile(r'<a[^>]*?class="[^"]*style__product-link[^"]*"[^>]*?href="([^"]+)"[^>]*>(.*?)</a>', _S),
        title_re=re.compile(r'<span[^>]*?class="[^"]*style__pro-title[^"]*"[^>]*>([^<]+)</span>'),
        price_re=re.compile(r'<span[^>]*?class="[^"]*style__price-tag[^"]*"[^>]*>₹?([\d,]+)'),
        focus="medical",
    ),
]


async def scrape_retailer(client: httpx.AsyncClient, retailer: RetailerScraper,
                          query: str, limit: int) -> List[PartialProduct]:
    if limit <= 0:
        return []
    html = await fetch_html(client, retailer.search_url(query))
    if not html:
        return []
    found = retailer.extract(html, limit)
    logger.info("%s: %d listing cards for %r", retailer.source, len(found), query)
    return found


def rank_for_query(products: List[Product], query: str) -> List[Product]:
    """Titles containing the whole query first, then cheapest first."""
    q = query.lower()
    return sorted(products, key=lambda p: (0 if q in p.title.lower() else 1, p.price))


async def search_free(client: httpx.AsyncClient, query: str, max_results: int = 20,
                      retailers: Optional[List[RetailerScraper]] = None) -> Tuple[List[Product], int]:
    """
    Scrape every retailer concurrently and merge. Returns the top
    `max_results` products and how many unique products were found.
    """
    retailers = RETAILERS if retailers is None else retailers
    results = await asyncio.gather(
        *(scrape_retailer(client, r, query, r.cap_for(query, max_results)) for r in retailers),
        return_exceptions=True,
    )
    partials: List[PartialProduct] = []
    for retailer, res in zip(retailers, results):
        if isinstance(res, Exception):
            logger.warning("%s scrape failed: %s", retailer.source, res)
            continue
        partials.extend(res)

    merged = dedupe_products(normalize_all(partials, ""), key=url_key)
    ranked = rank_for_query(merged, query)
    return ranked[:max_results], len(merged)
