import asyncio
import json
import logging
import re
from typing import Callable, Optional

from .models import PartialProduct
from .utils import parse_price, to_int

logger = logging.getLogger(__name__)

HTML_BUDGET = 20000
_FENCE_RE = re.compile(r"```(?:json)?\s*|```", flags=re.I)

Generator = Callable[[str], str]


def _extract_prompt(html: str, url: str) -> str:
    return f"""Extract a single e-commerce product from this HTML. Return ONLY valid JSON matching:
{{
  "title": string,
  "price": number,
  "currency": string,
  "brand": string,
  "rating": number,
  "reviewCount": number,
  "image": string,
  "availability": string,
  "description": string
}}

HTML (truncated):
{html[:HTML_BUDGET]}
URL: {url}"""


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _opt_str(data: dict, key: str) -> Optional[str]:
    v = data.get(key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def parse_llm_product(text: str, url: str) -> Optional[PartialProduct]:
    try:
        data = json.loads(strip_fences(text))
    except ValueError:
        logger.info("LLM output for %s was not JSON", url)
        return None
    if not isinstance(data, dict):
        return None
    return PartialProduct(
        origin="llm",
        title=_opt_str(data, "title"),
        price=parse_price(data.get("price")),
        currency=_opt_str(data, "currency") or "INR",
        brand=_opt_str(data, "brand"),
        rating=parse_price(data.get("rating")),
        review_count=to_int(data.get("reviewCount")),
        image=_opt_str(data, "image") or "",
        url=url,
        availability=_opt_str(data, "availability") or "Unknown",
        description=_opt_str(data, "description"),
    )


async def llm_extract_product(html: str, url: str,
                              generate: Generator) -> Optional[PartialProduct]:
    """
    Last-resort extraction: ask the text model for one product as JSON.

    `generate` is a blocking prompt -> text callable; it runs in a worker
    thread. Any failure comes back as None.
    """
    prompt = _extract_prompt(html, url)
    try:
        text = await asyncio.to_thread(generate, prompt)
    except Exception as e:
        logger.warning("LLM extraction failed for %s: %s", url, e)
        return None
    return parse_llm_product(text or "", url)
