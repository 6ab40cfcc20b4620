"""
Seller Lookup Adapter for the PriceWatch comparison service.
Calls the structured "immersive product" endpoint attached to a search
result and returns its seller records with their direct merchant links.
"""
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from pricewatch.adapters.http_client import FetchExecutor
from pricewatch.adapters.payload import SELLER_CANDIDATES, extract_first
from pricewatch.models.offer import SellerRecord
from pricewatch.utils.logger import LayerLogger


class SellerLookupAdapter:
    """
    Structured lookup client.

    No scraping and no HTML heuristics: sellers come back as JSON records.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        api_key: Optional[str] = None,
        timeout: float = 10,
    ):
        self.executor = executor
        self.api_key = api_key
        self.timeout = timeout
        self.logger = LayerLogger("seller_lookup")

    def _params_for(self, lookup_url: str) -> dict:
        """Add the API key unless the lookup URL already carries one."""
        if not self.api_key:
            return {}
        query = parse_qs(urlparse(lookup_url).query)
        if "api_key" in query:
            return {}
        return {"api_key": self.api_key}

    async def fetch_sellers(self, lookup_url: str) -> List[SellerRecord]:
        """
        Fetch seller records for one product.

        Single attempt: callers treat a failed lookup as "keep what we had".

        Raises:
            FetchError: the lookup call failed
        """
        self.logger.log_action("seller_lookup", "started", url=lookup_url)

        response = await self.executor.fetch(
            lookup_url,
            params=self._params_for(lookup_url),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

        try:
            payload = response.json()
        except ValueError as e:
            self.logger.log_fallback(
                from_source="seller_lookup",
                to_source="no_sellers",
                reason=f"Invalid JSON body: {str(e)}",
                url=lookup_url,
            )
            return []

        path, sellers = extract_first(payload, SELLER_CANDIDATES)
        if sellers is None:
            self.logger.log_fallback(
                from_source="seller_lookup",
                to_source="no_sellers",
                reason="No seller list found in lookup payload",
                url=lookup_url,
            )
            return []

        self.logger.log_action(
            "seller_lookup",
            "completed",
            url=lookup_url,
            path=path,
            sellers_count=len(sellers),
        )
        return sellers
