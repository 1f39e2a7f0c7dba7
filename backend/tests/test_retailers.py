import asyncio

import httpx

from scout.retailers import RETAILERS, query_categories, rank_for_query, search_free
from scout.normalize import normalize
from scout.models import PartialProduct


def retailer(source):
    return next(r for r in RETAILERS if r.source == source)


def flipkart_card(href, title, price, img='<img src="https://img.test/1.jpg">', rating="4.6"):
    return (f'<a class="_1fQZEK" href="{href}">{img}'
            f'<div class="_4rR01T">{title}</div>'
            f'<div class="_30jeq3">₹{price}</div>'
            f'<div class="_3LWZlK">{rating}</div></a>')


FLIPKART_PAGE = "<html><body>" + "".join([
    flipkart_card("/apple-iphone-15/p/itm1", "Apple iPhone 15", "69,999"),
    flipkart_card("/iphone-case/p/itm2", "Clear Case for iPhone", "499"),
    flipkart_card("/no-image/p/itm3", "Mystery Phone", "9,999", img=""),
]) + "</body></html>"

CROMA_PAGE = (
    '<ul><li><a class="product__list--name" href="/oneplus-12/p/1">OnePlus 12 &amp; Case</a>'
    '<div class="img"><img src="https://img.test/op12.jpg"></div>'
    '<span data-testid="price">₹64,999</span></li></ul>'
)


def test_search_url_encodes_query():
    assert retailer("flipkart").search_url("iphone 15") == "https://www.flipkart.com/search?q=iphone%2015"
    assert retailer("myntra").search_url("red kurta") == "https://www.myntra.com/red%20kurta?rawQuery=red%20kurta"


def test_block_retailer_reads_cards():
    found = retailer("flipkart").extract(FLIPKART_PAGE, 10)
    assert [p.title for p in found] == ["Apple iPhone 15", "Clear Case for iPhone"]
    first = found[0]
    assert first.origin == "listing"
    assert first.price == 69999.0
    assert first.rating == 4.6
    assert first.currency == "INR"
    assert first.source == "flipkart"
    assert first.image == "https://img.test/1.jpg"
    assert first.url == "https://www.flipkart.com/apple-iphone-15/p/itm1"


def test_extract_stops_at_limit():
    assert len(retailer("flipkart").extract(FLIPKART_PAGE, 1)) == 1


def test_card_retailer_finds_image_near_the_card():
    found = retailer("croma").extract(CROMA_PAGE, 10)
    assert len(found) == 1
    assert found[0].title == "OnePlus 12 & Case"
    assert found[0].price == 64999.0
    assert found[0].image == "https://img.test/op12.jpg"
    assert found[0].url == "https://www.croma.com/oneplus-12/p/1"


def test_category_focus_halves_the_cap():
    assert "electronics" in query_categories("oneplus phone")
    assert retailer("croma").cap_for("oneplus phone", 20) == 20
    assert retailer("croma").cap_for("running shoes", 20) == 10
    assert retailer("flipkart").cap_for("running shoes", 20) == 20


def test_rank_puts_query_matches_first_then_cheapest():
    def prod(title, price):
        return normalize(PartialProduct(title=title, price=price, url=f"https://s.test/{price}"), "")

    ranked = rank_for_query([prod("Case for iPhone", 499), prod("Apple iPhone 15", 69999),
                             prod("Cable", 199)], "iPhone 15")
    assert [p.title for p in ranked] == ["Apple iPhone 15", "Cable", "Case for iPhone"]


def run_search(handler, query, max_results=20, retailers=None):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await search_free(client, query, max_results, retailers)

    return asyncio.run(go())


def test_search_free_merges_and_survives_failing_retailers():
    def handler(request):
        if request.url.host == "www.flipkart.com":
            return httpx.Response(200, html=FLIPKART_PAGE + FLIPKART_PAGE)
        if request.url.host == "www.croma.com":
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(503, text="busy")

    products, total = run_search(handler, "iphone 15")
    # the doubled page repeats every card; URLs collapse them
    assert total == 2
    assert [p.title for p in products] == ["Apple iPhone 15", "Clear Case for iPhone"]
    assert all(p.source == "flipkart" for p in products)


def test_search_free_respects_max_results():
    def handler(request):
        return httpx.Response(200, html=FLIPKART_PAGE)

    products, total = run_search(handler, "iphone", max_results=1,
                                 retailers=[retailer("flipkart")])
    # each retailer is also capped at max_results cards
    assert len(products) == 1
    assert total == 1

    products, total = run_search(handler, "iphone", max_results=2,
                                 retailers=[retailer("flipkart")])
    assert len(products) == 2
    assert total == 2


def test_search_free_with_nothing_found():
    def handler(request):
        return httpx.Response(200, html="<html>no results</html>")

    assert run_search(handler, "iphone") == ([], 0)
