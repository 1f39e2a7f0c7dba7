from typing import Any, Dict, List, Optional

from trafilatura import extract

from .heuristics import meta_content, page_title
from .models import PageDetails, SampleReview
from .structured import (availability_token, first_offer, images_of,
                         iter_jsonld_nodes, product_node)
from .utils import make_snippet, name_of, parse_price, to_int

MAX_SAMPLE_REVIEWS = 3


def first_product_node(html: str) -> Optional[Dict[str, Any]]:
    for node in iter_jsonld_nodes(html):
        p = product_node(node)
        if p is not None:
            return p
    return None


def _unique(items: List[str]) -> List[str]:
    seen, out = set(), []
    for i in items:
        if i and i not in seen:
            seen.add(i)
            out.append(i)
    return out


def sample_reviews(node: Dict[str, Any]) -> List[SampleReview]:
    reviews = node.get("review") or []
    if isinstance(reviews, dict):
        reviews = [reviews]
    out: List[SampleReview] = []
    for rev in reviews[:MAX_SAMPLE_REVIEWS]:
        if not isinstance(rev, dict) or not isinstance(rev.get("reviewBody"), str):
            continue
        rating = rev.get("reviewRating") or {}
        date = rev.get("datePublished")
        out.append(SampleReview(
            rating=parse_price(rating.get("ratingValue")) if isinstance(rating, dict) else None,
            text=rev["reviewBody"],
            reviewer=name_of(rev.get("author")),
            date=date if isinstance(date, str) else None,
        ))
    return out


def specs_of(node: Dict[str, Any]) -> Dict[str, str]:
    specs: Dict[str, str] = {}
    props = node.get("additionalProperty")
    if isinstance(props, list):
        for p in props:
            if isinstance(p, dict) and isinstance(p.get("name"), str) and isinstance(p.get("value"), str):
                specs[p["name"]] = p["value"]
    return specs


def readable_description(html: str) -> Optional[str]:
    text = extract(html, include_comments=False, include_tables=False, favor_recall=True)
    return make_snippet(text) if text else None


def extract_page_details(html: str) -> PageDetails:
    """Everything a single product page tells us, JSON-LD first, then meta tags."""
    node = first_product_node(html) or {}
    offer = first_offer(node) if node else {}
    rating = node.get("aggregateRating") if isinstance(node.get("aggregateRating"), dict) else {}

    title = node.get("name") if isinstance(node.get("name"), str) else None
    title = title or meta_content(html, "og:title") or page_title(html)

    images = images_of(node.get("image")) if node else []
    images += [meta_content(html, "og:image"), meta_content(html, "twitter:image")]

    description = node.get("description") if isinstance(node.get("description"), str) else None
    description = (description or meta_content(html, "og:description")
                   or meta_content(html, "description") or readable_description(html))

    rating_value = rating.get("ratingValue")
    review_count = rating.get("reviewCount")
    sku = node.get("sku")
    currency = offer.get("priceCurrency")
    return PageDetails(
        title=title,
        images=_unique(images),
        description=description,
        brand=name_of(node.get("brand")),
        sku=str(sku) if isinstance(sku, (str, int)) and not isinstance(sku, bool) else None,
        price=parse_price(offer.get("price")),
        currency=currency if isinstance(currency, str) else None,
        availability=availability_token(offer.get("availability")),
        seller=name_of(offer.get("seller")),
        rating=parse_price(rating_value),
        review_count=to_int(review_count),
        specs=specs_of(node),
        sample_reviews=sample_reviews(node),
    )
