import asyncio

import httpx
import pytest

from pricewatch.adapters.http_client import FetchExecutor
from pricewatch.adapters.link_scraper import LinkScraper
from pricewatch.adapters.seller_lookup import SellerLookupAdapter
from pricewatch.layers.link_resolution import (
    LinkMode,
    LinkResolutionLayer,
    Pacer,
    StaggeredPacer,
)
from pricewatch.layers.merchant_resolver import MerchantResolver

LOOKUP_URL = "https://serpapi.test/search.json?engine=google_immersive_product&page_token=tok"

SELLERS_PAYLOAD = {
    "online_sellers": [
        {"name": "Fnac.com", "extracted_price": 360.0, "link": "https://www.fnac.com/a17052"},
        {"name": "Amazon.fr", "extracted_price": 349.0, "link": "https://www.amazon.fr/dp/B09Y2MYL5C"},
    ]
}


def _layer(router, mode=LinkMode.STRUCTURED, pacing_interval=0.0) -> LinkResolutionLayer:
    resolver = MerchantResolver()
    executor = FetchExecutor(max_retries=2, backoff=0, transport=router.transport)
    return LinkResolutionLayer(
        mode=mode,
        resolver=resolver,
        seller_lookup=SellerLookupAdapter(executor, api_key="test-key"),
        scraper=LinkScraper(executor, merchant_domains=resolver.table.domain_fragments),
        pacing_interval=pacing_interval,
    )


@pytest.mark.asyncio
async def test_structured_lookup_picks_matching_seller(router, make_offer):
    router.add_json("https://serpapi.test/", SELLERS_PAYLOAD)
    offer = make_offer("amazon.fr", 349.0, lookup_url=LOOKUP_URL)

    [resolved] = await _layer(router).resolve_all([offer])

    assert resolved.link == "https://www.amazon.fr/dp/B09Y2MYL5C"
    assert resolved.raw_link == offer.raw_link
    assert resolved.price == offer.price
    assert router.calls[0].url.params["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_structured_lookup_keeps_existing_api_key(router, make_offer):
    router.add_json("https://serpapi.test/", SELLERS_PAYLOAD)
    offer = make_offer("fnac.com", 360.0, lookup_url=LOOKUP_URL + "&api_key=own-key")

    [resolved] = await _layer(router).resolve_all([offer])

    assert resolved.link == "https://www.fnac.com/a17052"
    assert router.calls[0].url.params.get_list("api_key") == ["own-key"]


@pytest.mark.asyncio
async def test_structured_without_lookup_url_keeps_raw_link(router, make_offer):
    offer = make_offer("amazon.fr", 349.0)

    [resolved] = await _layer(router).resolve_all([offer])

    assert resolved.link == offer.raw_link
    assert router.calls == []


@pytest.mark.asyncio
async def test_structured_lookup_failure_is_not_retried_and_keeps_raw_link(router, make_offer):
    router.add_json("https://serpapi.test/", {"error": "boom"}, status_code=500)
    offer = make_offer("amazon.fr", 349.0, lookup_url=LOOKUP_URL)

    [resolved] = await _layer(router).resolve_all([offer])

    assert resolved.link == offer.raw_link
    assert len(router.calls) == 1


@pytest.mark.asyncio
async def test_scrape_timeout_keeps_raw_link(router, make_offer):
    def timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    router.add("https://www.google.fr/", timeout)
    offer = make_offer("amazon.fr", 349.0)

    [resolved] = await _layer(router, mode=LinkMode.SCRAPE).resolve_all([offer])

    assert resolved.link == offer.raw_link
    assert not resolved.is_direct


@pytest.mark.asyncio
async def test_scrape_failures_are_isolated_and_order_is_kept(router, make_offer):
    router.add_html(
        "https://www.google.fr/shopping/amazon.fr/",
        '<a href="https://www.amazon.fr/dp/B09Y2MYL5C">Amazon</a>',
    )
    router.add_html("https://www.google.fr/shopping/fnac.com/", "blocked", status_code=429)
    router.add_html(
        "https://www.google.fr/shopping/darty.com/",
        '<a href="https://www.darty.com/nav/achat/123.html">Darty</a>',
    )
    offers = [
        make_offer("amazon.fr", 300.0),
        make_offer("fnac.com", 310.0),
        make_offer("darty.com", 320.0),
    ]

    resolved = await _layer(router, mode=LinkMode.SCRAPE).resolve_all(offers)

    assert [o.merchant_key for o in resolved] == ["amazon.fr", "fnac.com", "darty.com"]
    assert resolved[0].link == "https://www.amazon.fr/dp/B09Y2MYL5C"
    assert resolved[1].link == offers[1].raw_link
    assert resolved[2].link == "https://www.darty.com/nav/achat/123.html"


@pytest.mark.asyncio
async def test_scrape_skips_links_already_pointing_at_merchant(router, make_offer):
    offer = make_offer("ldlc.com", 199.0, raw_link="https://www.ldlc.com/fiche/PB00512345.html")

    [resolved] = await _layer(router, mode=LinkMode.SCRAPE).resolve_all([offer])

    assert resolved.link == offer.raw_link
    assert router.calls == []


@pytest.mark.asyncio
async def test_scrape_without_raw_link(router, make_offer):
    offer = make_offer("amazon.fr", 349.0, raw_link="")

    [resolved] = await _layer(router, mode=LinkMode.SCRAPE).resolve_all([offer])

    assert resolved.link == ""
    assert router.calls == []


@pytest.mark.asyncio
async def test_staggered_pacer_spreads_start_times():
    pacer = StaggeredPacer(0.05)
    loop = asyncio.get_running_loop()
    started = []

    async def launch():
        await pacer.wait_turn()
        started.append(loop.time())

    await asyncio.gather(launch(), launch(), launch())

    started.sort()
    assert started[1] - started[0] >= 0.04
    assert started[2] - started[1] >= 0.04
    assert started[2] - started[0] < 0.5


def test_only_scrape_mode_is_paced(router):
    assert isinstance(_layer(router, mode=LinkMode.SCRAPE, pacing_interval=0.5)._new_pacer(), StaggeredPacer)
    structured_pacer = _layer(router, mode=LinkMode.STRUCTURED, pacing_interval=0.5)._new_pacer()
    assert type(structured_pacer) is Pacer


def test_mode_requires_its_adapter():
    with pytest.raises(ValueError):
        LinkResolutionLayer(mode=LinkMode.SCRAPE, resolver=MerchantResolver())
    with pytest.raises(ValueError):
        LinkResolutionLayer(mode="carrier-pigeon", resolver=MerchantResolver())


@pytest.mark.asyncio
async def test_scrape_follows_redirect_to_merchant_product_page(router, make_offer):
    router.add(
        "https://www.google.fr/",
        lambda request: httpx.Response(302, headers={"Location": "https://www.amazon.fr/dp/B09Y2MYL5C"}),
    )
    router.add_html("https://www.amazon.fr/", '<a href="https://www.amazon.fr/ref=nav_logo">Amazon</a>')
    offer = make_offer("amazon.fr", 349.0)

    [resolved] = await _layer(router, mode=LinkMode.SCRAPE).resolve_all([offer])

    assert resolved.link == "https://www.amazon.fr/dp/B09Y2MYL5C"
    assert resolved.is_direct


@pytest.mark.asyncio
async def test_scrape_fetches_are_staggered(router, make_offer):
    loop = asyncio.get_running_loop()
    arrivals = []

    def handler(request):
        arrivals.append(loop.time())
        return httpx.Response(200, text="<html></html>")

    router.add("https://www.google.fr/", handler)
    offers = [make_offer(key, 300.0 + i) for i, key in enumerate(("amazon.fr", "fnac.com", "darty.com"))]

    await _layer(router, mode=LinkMode.SCRAPE, pacing_interval=0.05).resolve_all(offers)

    arrivals.sort()
    assert len(arrivals) == 3
    assert arrivals[1] - arrivals[0] >= 0.04
    assert arrivals[2] - arrivals[1] >= 0.04
