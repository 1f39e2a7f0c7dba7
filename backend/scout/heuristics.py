"""
Regex approximations of page structure.

None of this is a real DOM walk: each helper is a named, lossy stand-in so it
can be swapped for a parser later without touching the callers.
"""
import html as htmllib
import re
from typing import Optional
from urllib.parse import urlsplit

from .models import PartialProduct
from .utils import parse_price

PRODUCT_PATH_TOKENS = ("/product", "/dp/", "/p/", "/item/", "/sku/")
_SLUG_RE = re.compile(r"/[a-z0-9]+(?:-[a-z0-9]+){2,}/?$")

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", flags=re.I)
_PRICE_RE = re.compile(r"(₹|Rs\.?|INR|\$|USD)\s?([\d,]+(?:\.\d+)?)", flags=re.I)
_IMG_SRC_RE = re.compile(r'<img[^>]*?src="([^"]+)"[^>]*>', flags=re.I)
_IMG_DATA_SRC_RE = re.compile(r'<img[^>]*?data-src="([^"]+)"[^>]*>', flags=re.I)

IMAGE_WINDOW = 3000


def looks_like_product_url(url: str) -> bool:
    """Path tokens like /dp/ or /product, or a deep hyphenated slug at the end."""
    u = url.lower()
    if any(tok in u for tok in PRODUCT_PATH_TOKENS):
        return True
    path = urlsplit(u).path
    return _SLUG_RE.search(path) is not None


def meta_content(html: str, prop: str) -> Optional[str]:
    tag_re = re.compile(
        rf'<meta[^>]+(?:property|name)=["\']{re.escape(prop)}["\'][^>]*>', flags=re.I)
    m = tag_re.search(html)
    if not m:
        return None
    c = re.search(r'content=["\']([^"\']+)["\']', m.group(0), flags=re.I)
    return htmllib.unescape(c.group(1)).strip() if c else None


def page_title(html: str) -> Optional[str]:
    m = _TITLE_RE.search(html)
    if not m:
        return None
    return " ".join(htmllib.unescape(m.group(1)).split()) or None


def find_image(block: str) -> Optional[str]:
    m = _IMG_SRC_RE.search(block) or _IMG_DATA_SRC_RE.search(block)
    return m.group(1) if m else None


def nearest_image(html: str, pos: int, window: int = IMAGE_WINDOW) -> Optional[str]:
    """
    First <img> inside the card around `pos`: back up to the anchor that
    opens at or before `pos`, then look `window` characters forward.
    """
    start = html.rfind("<a", 0, pos + 2)
    if start == -1:
        start = pos
    return find_image(html[start:start + window])


def extract_meta_product(html: str, url: str) -> Optional[PartialProduct]:
    """og:title (or <title>), the first currency-marked price, og:image."""
    title = meta_content(html, "og:title") or page_title(html)
    m = _PRICE_RE.search(html)
    price = parse_price(m.group(2)) if m else None
    if not title or not price or price <= 0:
        return None
    currency = "USD" if m.group(1).upper() in ("$", "USD") else "INR"
    return PartialProduct(
        origin="meta",
        title=title,
        price=price,
        currency=currency,
        image=meta_content(html, "og:image") or "",
        url=url,
        availability="Unknown",
    )
