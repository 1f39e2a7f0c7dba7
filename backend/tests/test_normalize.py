from scout.models import PartialProduct, Product
from scout.normalize import dedupe_products, normalize, normalize_all, source_for_url, url_key
from scout.utils import parse_price, strip_tags, to_int


def test_parse_price_variants():
    assert parse_price("₹1,299.00") == 1299.0
    assert parse_price("Rs. 1299") == 1299.0
    assert parse_price("Rs. 1,299") == 1299.0
    assert parse_price("4.5 out of 5") == 4.5
    assert parse_price(42) == 42.0
    assert parse_price("call us") is None
    assert parse_price(True) is None
    assert parse_price(float("nan")) is None
    assert parse_price(None) is None
    assert to_int("1,204") == 1204


def test_strip_tags_unescapes_and_collapses():
    assert strip_tags("<b>Tom &amp;  Jerry</b>\n <i>DVD</i>") == "Tom & Jerry DVD"


def test_defaults_are_filled():
    p = normalize(PartialProduct(origin="jsonld", title="  Steel Kettle ", price=10),
                  "https://shop.test/kettle")
    assert p is not None
    assert p.title == "Steel Kettle"
    assert p.price == 10.0
    assert p.currency == "INR"
    assert p.rating == 0.0
    assert p.review_count == 0
    assert p.image == ""
    assert p.url == "https://shop.test/kettle"
    assert p.source == "web"
    assert p.availability == "Unknown"
    assert p.id.startswith("jsonld_steel-kettle_")


def test_missing_title_or_bad_price_is_rejected():
    url = "https://shop.test/"
    assert normalize(PartialProduct(title="", price=5), url) is None
    assert normalize(PartialProduct(title="   ", price=5), url) is None
    assert normalize(PartialProduct(title="Kettle"), url) is None
    assert normalize(PartialProduct(title="Kettle", price=-1), url) is None


def test_free_items_are_kept():
    p = normalize(PartialProduct(title="Sample sachet", price=0), "https://shop.test/")
    assert p is not None and p.price == 0.0


def test_rating_and_review_count_are_clamped():
    p = normalize(PartialProduct(title="Kettle", price=5, rating=7.5, review_count=-3),
                  "https://shop.test/")
    assert p.rating == 5.0
    assert p.review_count == 0


def test_normalize_is_idempotent():
    first = normalize(PartialProduct(origin="meta", title="Kettle", price=5,
                                     url="https://www.flipkart.com/kettle/p/1"),
                      "https://other.test/")
    again = normalize(first, "https://other.test/")
    assert isinstance(again, Product)
    assert again == first
    assert again.source == "flipkart"


def test_source_is_derived_from_registered_domain():
    assert source_for_url("https://www.amazon.in/dp/B000") == "amazon"
    assert source_for_url("https://m.myntra.com/shoes") == "myntra"
    assert source_for_url("https://blog.example.com/review") == "web"


def test_normalize_all_drops_invalid_records():
    partials = [PartialProduct(title="A", price=1), PartialProduct(title="B")]
    assert [p.title for p in normalize_all(partials, "https://shop.test/")] == ["A"]


def _product(title, url, price=1.0):
    return normalize(PartialProduct(title=title, price=price, url=url), url)


def test_dedupe_by_title_and_host_keeps_first():
    a = _product("Steel Kettle", "https://shop.test/a", price=10)
    b = _product("steel kettle", "https://shop.test/b", price=20)
    c = _product("Steel Kettle", "https://other.test/a")
    out = dedupe_products([a, b, c])
    assert out == [a, c]


def test_dedupe_by_url():
    a = _product("Kettle", "https://shop.test/a")
    b = _product("Kettle (2L)", "https://shop.test/a")
    assert dedupe_products([a, b], key=url_key) == [a]


def test_dedupe_is_idempotent():
    items = [_product("Kettle", "https://shop.test/a"), _product("KETTLE", "https://shop.test/b"),
             _product("Mug", "https://shop.test/c")]
    once = dedupe_products(items)
    assert dedupe_products(once) == once
    assert len({(p.title.lower(), p.url.split("/")[2]) for p in once}) == len(once)
