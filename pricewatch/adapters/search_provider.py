"""
Search Provider Adapter for the PriceWatch comparison service.
Calls the SerpAPI Google Shopping endpoint and returns its raw JSON payload.
"""
from typing import Any, Dict, Optional

from pricewatch.adapters.http_client import FetchExecutor
from pricewatch.utils.logger import LayerLogger


class SearchProviderAdapter:
    """
    Primary search adapter.

    The payload is returned untouched; finding the offer list inside it is
    the normalization layer's job since the key varies by provider setup.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        api_key: Optional[str],
        base_url: str = "https://serpapi.com/search.json",
        engine: str = "google_shopping",
        location: str = "France",
        language: str = "fr",
        country: str = "fr",
        google_domain: str = "google.fr",
        num: int = 10,
        timeout: float = 15,
    ):
        self.executor = executor
        self.api_key = api_key
        self.base_url = base_url
        self.engine = engine
        self.location = location
        self.language = language
        self.country = country
        self.google_domain = google_domain
        self.num = num
        self.timeout = timeout
        self.logger = LayerLogger("search_provider")

    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.api_key)

    def build_params(self, query: str) -> Dict[str, Any]:
        """Query parameters for one shopping search."""
        params = {
            "engine": self.engine,
            "q": query,
            "location": self.location,
            "hl": self.language,
            "gl": self.country,
            "google_domain": self.google_domain,
            "num": self.num,
        }
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    async def search(self, query: str) -> Dict[str, Any]:
        """
        Run the primary search.

        Returns:
            Decoded JSON payload ({} when the body is not a JSON object)

        Raises:
            FetchError: retries exhausted
        """
        self.logger.log_action("shopping_search", "started", query=query, engine=self.engine)

        if not self.is_configured():
            self.logger.log_decision(
                decision="search_without_api_key",
                reason="SERPAPI_KEY is not set, provider will most likely reject the call",
                query=query,
            )

        response = await self.executor.fetch_with_retry(
            self.base_url,
            params=self.build_params(query),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

        try:
            payload = response.json()
        except ValueError as e:
            self.logger.log_fallback(
                from_source="search_payload",
                to_source="empty_payload",
                reason=f"Invalid JSON body: {str(e)}",
                query=query,
            )
            return {}

        if not isinstance(payload, dict):
            self.logger.log_fallback(
                from_source="search_payload",
                to_source="empty_payload",
                reason=f"Unexpected payload type: {type(payload).__name__}",
                query=query,
            )
            return {}

        self.logger.log_action(
            "shopping_search",
            "completed",
            query=query,
            status_code=response.status_code,
            keys=sorted(payload.keys())[:20],
        )
        return payload
