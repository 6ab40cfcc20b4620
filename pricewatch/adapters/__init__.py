"""Adapters package initialization."""
from pricewatch.adapters.http_client import FetchError, FetchExecutor
from pricewatch.adapters.search_provider import SearchProviderAdapter
from pricewatch.adapters.seller_lookup import SellerLookupAdapter
from pricewatch.adapters.link_scraper import LinkScraper

__all__ = [
    "FetchError",
    "FetchExecutor",
    "SearchProviderAdapter",
    "SellerLookupAdapter",
    "LinkScraper",
]
