from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Literal, Optional

Source = Literal["google_shopping", "amazon", "flipkart", "croma",
                 "reliance", "myntra", "bigbasket", "1mg", "web"]
Origin = Literal["jsonld", "llm", "meta", "listing", "proxy"]


class Product(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    price: float
    original_price: Optional[float] = Field(default=None, alias="originalPrice")
    currency: str = "INR"
    rating: float = 0.0
    review_count: int = Field(default=0, alias="reviewCount")
    image: str = ""
    url: str
    source: Source = "web"
    brand: Optional[str] = None
    availability: str = "Unknown"
    seller: Optional[str] = None
    shipping: Optional[str] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None


class PartialProduct(BaseModel):
    """Whatever one extraction strategy managed to pull out of a page.

    JSON-LD nodes, AI output, Open Graph fallbacks, retailer listing cards
    and proxy listing pages all land here; `origin` records which one.
    """
    model_config = ConfigDict(populate_by_name=True)

    origin: Optional[Origin] = None
    id: Optional[str] = None
    title: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = Field(default=None, alias="originalPrice")
    currency: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = Field(default=None, alias="reviewCount")
    image: Optional[str] = None
    url: Optional[str] = None
    source: Optional[Source] = None
    brand: Optional[str] = None
    availability: Optional[str] = None
    seller: Optional[str] = None
    shipping: Optional[str] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None


class SearchHit(BaseModel):
    url: str
    title: Optional[str] = None
    snippet: Optional[str] = None


class SampleReview(BaseModel):
    rating: Optional[float] = None
    text: str
    reviewer: Optional[str] = None
    date: Optional[str] = None


class PageDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    images: List[str] = []
    description: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    availability: Optional[str] = None
    seller: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = Field(default=None, alias="reviewCount")
    specs: Dict[str, str] = {}
    sample_reviews: List[SampleReview] = Field(default=[], alias="sampleReviews")


# ---- request bodies ----
# query is optional here; routes answer 400 themselves when it is missing.

class CrawlRequest(BaseModel):
    query: Optional[str] = None
    limit: int = 10


class CrawlBasicRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    seed_domains: Optional[List[str]] = Field(default=None, alias="seedDomains")
    max_pages: Optional[int] = Field(default=None, alias="maxPages")
    per_domain_limit: Optional[int] = Field(default=None, alias="perDomainLimit")
    max_depth: Optional[int] = Field(default=None, alias="maxDepth")


class ScrapeUrlRequest(BaseModel):
    url: Optional[str] = None


class SearchFreeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    max_results: int = Field(default=20, alias="maxResults")


class ScrapeOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sources: List[Literal["google_shopping", "amazon"]] = ["google_shopping", "amazon"]
    max_results: int = Field(default=40, alias="maxResults")
    min_price: Optional[float] = Field(default=None, alias="minPrice")
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    sort_by: Literal["relevance", "price_low_to_high",
                     "price_high_to_low", "rating"] = Field(default="relevance", alias="sortBy")
    department: Optional[str] = None


class ScrapeRequest(BaseModel):
    query: Optional[str] = None
    options: ScrapeOptions = ScrapeOptions()
