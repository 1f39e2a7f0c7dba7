import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from .models import PartialProduct
from .utils import first, name_of, parse_price, to_int

logger = logging.getLogger(__name__)

_LD_RE = re.compile(
    r'<script[^>]*type=["\']application/ld\+json["\'][^>]*>(.*?)</script>',
    flags=re.I | re.S,
)
_COMMENT_RE = re.compile(r"<!--.*?-->", flags=re.S)


def iter_jsonld_nodes(html: str) -> Iterator[Dict[str, Any]]:
    """Every top-level JSON-LD object on the page, arrays and @graph flattened."""
    for m in _LD_RE.finditer(html):
        raw = _COMMENT_RE.sub("", m.group(1)).strip()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("skipping malformed ld+json block")
            continue
        nodes = data if isinstance(data, list) else [data]
        for node in nodes:
            if not isinstance(node, dict):
                continue
            yield node
            graph = node.get("@graph")
            if isinstance(graph, list):
                for g in graph:
                    if isinstance(g, dict):
                        yield g


def is_product_node(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    t = node.get("@type")
    types = t if isinstance(t, list) else [t]
    return any(isinstance(x, str) and x.lower() == "product" for x in types)


def product_node(node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if is_product_node(node):
        return node
    # ListItem / ItemPage wrappers
    if is_product_node(node.get("item")):
        return node["item"]
    return None


def product_nodes(html: str) -> List[Dict[str, Any]]:
    out = []
    for node in iter_jsonld_nodes(html):
        p = product_node(node)
        if p is not None:
            out.append(p)
    return out


def first_offer(node: Dict[str, Any]) -> Dict[str, Any]:
    offers = node.get("offers") or node.get("aggregateOffer") or {}
    offers = first(offers)
    if not isinstance(offers, dict):
        return {}
    # AggregateOffer sometimes nests the concrete offers one level down
    if "price" not in offers and "lowPrice" not in offers and isinstance(offers.get("offers"), list):
        inner = first(offers["offers"])
        if isinstance(inner, dict):
            return inner
    return offers


def offer_price(offer: Dict[str, Any]) -> Optional[float]:
    price = parse_price(offer.get("price"))
    if price is None:
        price = parse_price(offer.get("lowPrice"))
    return price


def availability_token(value: Any) -> Optional[str]:
    """Last path segment of a schema.org availability URI, e.g. InStock."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip().rstrip("/").split("/")[-1] or None


def image_of(value: Any) -> Optional[str]:
    value = first(value)
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def images_of(value: Any) -> List[str]:
    values = value if isinstance(value, list) else [value]
    return [img for img in (image_of(v) for v in values) if img]


def _str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _partial_from_node(node: Dict[str, Any], page_url: str) -> PartialProduct:
    offer = first_offer(node)
    rating = node.get("aggregateRating") or {}
    if not isinstance(rating, dict):
        rating = {}
    title = node.get("name") or node.get("title")
    description = node.get("description")
    return PartialProduct(
        origin="jsonld",
        title=_str(title),
        price=offer_price(offer),
        currency=_str(offer.get("priceCurrency")) or "INR",
        rating=parse_price(rating.get("ratingValue")),
        review_count=to_int(rating.get("reviewCount") or rating.get("ratingCount")),
        image=image_of(node.get("image")),
        url=page_url,
        brand=name_of(node.get("brand")),
        availability=availability_token(offer.get("availability")),
        seller=name_of(offer.get("seller")),
        description=_str(description),
    )


def parse_jsonld_products(html: str, page_url: str) -> List[PartialProduct]:
    """Product-typed JSON-LD nodes as partial records; bad blocks are skipped."""
    return [_partial_from_node(node, page_url) for node in product_nodes(html)]
