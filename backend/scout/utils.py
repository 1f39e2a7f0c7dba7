import html
import math
import re
from typing import Any, Optional

_tag_re = re.compile(r"<[^>]+>")
_number_re = re.compile(r"\d[\d,]*(?:\.\d+)?")


def strip_tags(markup: str) -> str:
    return " ".join(html.unescape(_tag_re.sub("", markup)).split())


def make_snippet(text: str, max_len: int = 300) -> str:
    s = " ".join(text.split())
    return s[:max_len]


def parse_price(val: Any) -> Optional[float]:
    """
    Numbers pass through; strings give their first number with thousands
    separators dropped, so "₹1,299.00" and "Rs. 1,299" both become 1299.0.
    Anything else is None.
    """
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else None
    if isinstance(val, str):
        m = _number_re.search(val)
        if not m:
            return None
        num = float(m.group(0).replace(",", ""))
        return num if math.isfinite(num) else None
    return None


def to_number(text: Optional[str]) -> float:
    n = parse_price(text)
    return n if n is not None else 0.0


def to_int(val: Any) -> Optional[int]:
    n = parse_price(val)
    return int(n) if n is not None else None


def first(val: Any) -> Any:
    if isinstance(val, list):
        return val[0] if val else None
    return val


def name_of(val: Any) -> Optional[str]:
    """JSON-LD brand/seller/author: either a plain string or {"name": ...}."""
    if isinstance(val, str):
        return val.strip() or None
    if isinstance(val, dict) and isinstance(val.get("name"), str):
        return val["name"].strip() or None
    return None
