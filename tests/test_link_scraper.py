import httpx
import pytest

from pricewatch.adapters.http_client import FetchError, FetchExecutor
from pricewatch.adapters.link_scraper import LinkScraper
from pricewatch.layers.merchant_resolver import MerchantAliasTable

PAGE_URL = "https://www.google.fr/shopping/product/123/offers"


def _scraper(transport=None) -> LinkScraper:
    executor = FetchExecutor(max_retries=0, backoff=0, transport=transport)
    return LinkScraper(executor, merchant_domains=MerchantAliasTable().domain_fragments)


def test_anchor_to_known_merchant_wins():
    html = """
    <html><body>
      <a href="/shopping/product/123">Back</a>
      <a href="https://www.google.fr/search?q=sony">Search</a>
      <a href="https://randomshop.example/p/1">Random shop</a>
      <a href="https://www.fnac.com/a17052/Sony-WH-1000XM5">Fnac</a>
      <a href="https://www.amazon.fr/dp/B09Y2MYL5C">Amazon</a>
    </body></html>
    """

    assert _scraper().extract_merchant_url(html, PAGE_URL) == "https://www.fnac.com/a17052/Sony-WH-1000XM5"


def test_aggregator_redirect_is_unwrapped():
    html = '<a href="/url?q=https://www.amazon.fr/dp/B09Y2MYL5C&amp;sa=U&amp;ved=2ah">Voir</a>'

    assert _scraper().extract_merchant_url(html, PAGE_URL) == "https://www.amazon.fr/dp/B09Y2MYL5C"


def test_body_scan_when_no_anchor_matches():
    html = """
    <html><body>
      <a href="https://randomshop.example/p/1">Random</a>
      <script>window.__data = {"offer": {"url": "https://www.darty.com/nav/achat/123.html"}};</script>
    </body></html>
    """

    assert _scraper().extract_merchant_url(html, PAGE_URL) == "https://www.darty.com/nav/achat/123.html"


def test_nothing_found_returns_none():
    html = '<html><body><a href="https://randomshop.example/p/1">Random</a></body></html>'

    assert _scraper().extract_merchant_url(html, PAGE_URL) is None


@pytest.mark.asyncio
async def test_fetch_uses_browser_user_agent():
    seen = {}

    def handler(request):
        seen["agent"] = request.headers.get("user-agent")
        return httpx.Response(200, text='<a href="https://www.boulanger.com/ref/1178930">Boulanger</a>')

    scraper = _scraper(httpx.MockTransport(handler))

    merchant_url = await scraper.find_merchant_url(PAGE_URL)

    assert merchant_url == "https://www.boulanger.com/ref/1178930"
    assert seen["agent"].startswith("Mozilla/5.0")


@pytest.mark.asyncio
async def test_fetch_failure_propagates_to_caller():
    scraper = _scraper(httpx.MockTransport(lambda request: httpx.Response(403, text="blocked")))

    with pytest.raises(FetchError):
        await scraper.find_merchant_url(PAGE_URL)


def _redirecting(target: str, landing_html: str):
    def handler(request):
        if request.url.host == "www.google.fr":
            return httpx.Response(302, headers={"Location": target})
        return httpx.Response(200, text=landing_html)

    return handler


@pytest.mark.asyncio
async def test_redirect_landing_on_merchant_page_is_returned():
    handler = _redirecting(
        "https://www.amazon.fr/dp/B09Y2MYL5C",
        '<a href="https://www.amazon.fr/ref=nav_logo">Amazon</a>',
    )

    merchant_url = await _scraper(httpx.MockTransport(handler)).find_merchant_url(PAGE_URL)

    assert merchant_url == "https://www.amazon.fr/dp/B09Y2MYL5C"


@pytest.mark.asyncio
async def test_redirect_to_another_intermediate_page_is_scanned_from_there():
    handler = _redirecting(
        "https://compare.example/offers/123",
        """
        <a href="/offers/123?sort=price">Sort</a>
        <a href="https://www.ldlc.com/fiche/PB00512345.html">LDLC</a>
        """,
    )

    merchant_url = await _scraper(httpx.MockTransport(handler)).find_merchant_url(PAGE_URL)

    assert merchant_url == "https://www.ldlc.com/fiche/PB00512345.html"
