import math
import uuid
from typing import Callable, Iterable, List, Optional, Union
from urllib.parse import urlsplit

import tldextract
from slugify import slugify

from .models import PartialProduct, Product

# bundled suffix snapshot only, no live download
_tld = tldextract.TLDExtract(suffix_list_urls=())

# registered domain -> source tag
RETAILER_SOURCES = {
    "amazon.in": "amazon",
    "amazon.com": "amazon",
    "flipkart.com": "flipkart",
    "croma.com": "croma",
    "reliancedigital.in": "reliance",
    "myntra.com": "myntra",
    "bigbasket.com": "bigbasket",
    "1mg.com": "1mg",
}


def registered_domain(url: str) -> str:
    ex = _tld(url)
    return ".".join(p for p in [ex.domain, ex.suffix] if p)


def source_for_url(url: str) -> str:
    return RETAILER_SOURCES.get(registered_domain(url), "web")


def make_id(origin: Optional[str], title: str) -> str:
    base = slugify(title, max_length=40) or "item"
    return f"{origin or 'norm'}_{base}_{uuid.uuid4().hex[:8]}"


def _valid_price(price) -> bool:
    return (isinstance(price, (int, float)) and not isinstance(price, bool)
            and math.isfinite(price) and price >= 0)


def normalize(partial: Union[PartialProduct, Product], fallback_url: str) -> Optional[Product]:
    """
    Canonical Product from any partial extraction, or None when the title is
    empty or the price is not a non-negative number. Every other field gets
    its default; re-normalizing a Product returns an equal Product.
    """
    title = (partial.title or "").strip()
    if not title or not _valid_price(partial.price):
        return None
    url = partial.url or fallback_url
    rating = partial.rating if _valid_price(partial.rating) else 0.0
    review_count = partial.review_count if isinstance(partial.review_count, int) else 0
    original_price = partial.original_price if _valid_price(partial.original_price) else None
    return Product(
        id=partial.id or make_id(getattr(partial, "origin", None), title),
        title=title,
        price=float(partial.price),
        original_price=original_price,
        currency=partial.currency or "INR",
        rating=min(float(rating), 5.0),
        review_count=max(review_count, 0),
        image=partial.image or "",
        url=url,
        source=partial.source or source_for_url(url),
        brand=partial.brand,
        availability=partial.availability or "Unknown",
        seller=partial.seller,
        shipping=partial.shipping,
        description=partial.description,
        features=partial.features,
        specifications=partial.specifications,
    )


def normalize_all(partials: Iterable[PartialProduct], fallback_url: str) -> List[Product]:
    out = []
    for p in partials:
        prod = normalize(p, fallback_url)
        if prod is not None:
            out.append(prod)
    return out


def hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def product_key(p: Product) -> str:
    return f"{p.title.lower()}_{hostname(p.url)}"


def url_key(p: Product) -> str:
    return p.url


def dedupe_products(products: Iterable[Product],
                    key: Callable[[Product], str] = product_key) -> List[Product]:
    seen = set()
    out: List[Product] = []
    for p in products:
        k = key(p)
        if k in seen:
            continue
        seen.add(k)
        out.append(p)
    return out
