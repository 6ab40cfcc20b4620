"""Shared fixtures: offline HTTP routing and pipeline configuration."""
from types import SimpleNamespace
from typing import Callable, Dict, List

import httpx
import pytest

from pricewatch.models.offer import NormalizedOffer

SEARCH_URL = "https://serpapi.test/search.json"


class MockRouter:
    """Routes requests by URL prefix to canned handlers and records calls."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def add(self, prefix: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[prefix] = handler

    def add_json(self, prefix: str, payload, status_code: int = 200):
        self.add(prefix, lambda request: httpx.Response(status_code, json=payload))

    def add_html(self, prefix: str, body: str, status_code: int = 200):
        self.add(prefix, lambda request: httpx.Response(status_code, text=body))

    def calls_to(self, prefix: str) -> List[httpx.Request]:
        return [request for request in self.calls if str(request.url).startswith(prefix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        url = str(request.url)
        # longest prefix first so specific routes win
        for prefix in sorted(self.routes, key=len, reverse=True):
            if url.startswith(prefix):
                return self.routes[prefix](request)
        return httpx.Response(404, text="not routed")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def router() -> MockRouter:
    return MockRouter()


@pytest.fixture
def make_config():
    def factory(**overrides):
        values = dict(
            SERPAPI_KEY="test-key",
            SERPAPI_BASE_URL=SEARCH_URL,
            SEARCH_ENGINE="google_shopping",
            SEARCH_LOCATION="France",
            SEARCH_LANGUAGE="fr",
            SEARCH_COUNTRY="fr",
            SEARCH_GOOGLE_DOMAIN="google.fr",
            SEARCH_NUM=10,
            SEARCH_TIMEOUT=5,
            LOOKUP_TIMEOUT=5,
            SCRAPE_TIMEOUT=5,
            MAX_RETRIES=2,
            RETRY_BACKOFF=0,
            PACING_INTERVAL=0,
            RELEVANCE_THRESHOLD=0.5,
            MAX_PRICE=15000,
            RESULT_LIMIT=10,
            CURRENCY_SYMBOL="€",
            LINK_MODE="structured",
            OFFER_SOURCE="search",
            MERCHANT_POLICY="strict",
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    return factory


@pytest.fixture
def make_offer():
    def factory(merchant_key: str = "amazon.fr", price: float = 100.0, **overrides):
        values = dict(
            title="Sony WH-1000XM5",
            price=price,
            merchant_display_name=merchant_key,
            merchant_key=merchant_key,
            raw_link=f"https://www.google.fr/shopping/{merchant_key}/{price}",
        )
        values.update(overrides)
        return NormalizedOffer(**values)

    return factory
