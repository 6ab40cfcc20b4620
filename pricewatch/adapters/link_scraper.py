"""
Link Scraper Adapter for the PriceWatch comparison service.
Used as fallback when no structured lookup is available: fetches the
aggregator-hosted page behind an offer and looks for the real merchant URL.
"""
import html
import re
from typing import Iterable, Optional, Sequence
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from pricewatch.adapters.http_client import FetchExecutor
from pricewatch.utils.logger import LayerLogger

DEFAULT_AGGREGATOR_DOMAINS = ("google.", "gstatic.com", "serpapi.com")

# Query parameters aggregators use to carry the redirect target
REDIRECT_PARAMS = ("url", "q", "adurl")

URL_PATTERN = re.compile(r"https?://[^\s\"'<>\\)]+", re.IGNORECASE)


class LinkScraper:
    """
    Scrape-fallback resolver.

    Order of preference: anchors pointing off the aggregator to a known
    merchant, then any absolute merchant URL in the raw body. Returns None
    when neither is found; the caller keeps its original link.
    """

    def __init__(
        self,
        executor: FetchExecutor,
        merchant_domains: Sequence[str],
        aggregator_domains: Sequence[str] = DEFAULT_AGGREGATOR_DOMAINS,
        timeout: float = 15,
    ):
        self.executor = executor
        self.merchant_domains = tuple(domain.lower() for domain in merchant_domains)
        self.aggregator_domains = tuple(domain.lower() for domain in aggregator_domains)
        self.timeout = timeout
        self.logger = LayerLogger("link_scraper")

    def _get_headers(self) -> dict:
        """Get request headers mimicking a desktop browser."""
        return {
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.5",
        }

    async def find_merchant_url(self, page_url: str) -> Optional[str]:
        """
        Fetch `page_url` and extract a direct merchant URL from it.

        Single attempt, no retry.

        Raises:
            FetchError: the page could not be fetched
        """
        self.logger.log_action("fetch_intermediate_page", "started", url=page_url)

        response = await self.executor.fetch(page_url, headers=self._get_headers(), timeout=self.timeout)
        body = response.text
        final_url = str(response.url)

        self.logger.log_action(
            "fetch_intermediate_page",
            "completed",
            url=page_url,
            final_url=final_url,
            status_code=response.status_code,
            content_length=len(body),
        )

        # redirect chain already ended on the merchant's own page
        if self._is_merchant_url(final_url, self._host(page_url)):
            self.logger.log_decision(
                decision="merchant_url_from_redirect",
                reason="Intermediate link redirected to a known merchant",
                url=page_url,
                merchant_url=final_url,
            )
            return final_url

        return self.extract_merchant_url(body, final_url)

    def extract_merchant_url(self, body: str, page_url: str) -> Optional[str]:
        """Run the anchor scan, then the raw-body scan."""
        page_host = self._host(page_url)

        merchant_url = self._scan_anchors(body, page_url, page_host)
        if merchant_url:
            self.logger.log_decision(
                decision="merchant_url_from_anchor",
                reason="Anchor points off the aggregator to a known merchant",
                url=page_url,
                merchant_url=merchant_url,
            )
            return merchant_url

        merchant_url = self._scan_body(body, page_host)
        if merchant_url:
            self.logger.log_decision(
                decision="merchant_url_from_body",
                reason="No usable anchor, matched an absolute URL in page body",
                url=page_url,
                merchant_url=merchant_url,
            )
            return merchant_url

        self.logger.log_fallback(
            from_source="intermediate_page",
            to_source="raw_link",
            reason="No merchant URL found in page",
            url=page_url,
        )
        return None

    def _scan_anchors(self, body: str, page_url: str, page_host: str) -> Optional[str]:
        soup = BeautifulSoup(body, "lxml")
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith(("#", "javascript:", "mailto:")):
                continue
            candidate = self._unwrap_redirect(urljoin(page_url, href), page_host)
            if self._is_merchant_url(candidate, page_host):
                return candidate
        return None

    def _scan_body(self, body: str, page_host: str) -> Optional[str]:
        for match in URL_PATTERN.finditer(body):
            candidate = self._unwrap_redirect(html.unescape(match.group(0)), page_host)
            if self._is_merchant_url(candidate, page_host):
                return candidate
        return None

    def _unwrap_redirect(self, url: str, page_host: str) -> str:
        """Aggregator redirect (…/url?q=https://shop/…) -> its target."""
        if not self._is_aggregator(self._host(url), page_host):
            return url
        query = parse_qs(urlparse(url).query)
        for param in REDIRECT_PARAMS:
            for value in query.get(param, []):
                if value.lower().startswith(("http://", "https://")):
                    return value
        return url

    def _is_merchant_url(self, url: str, page_host: str) -> bool:
        if not url.lower().startswith(("http://", "https://")):
            return False
        host = self._host(url)
        if not host or self._is_aggregator(host, page_host):
            return False
        return self._matches_any(host, self.merchant_domains)

    def _is_aggregator(self, host: str, page_host: str) -> bool:
        return host == page_host or self._matches_any(host, self.aggregator_domains)

    @staticmethod
    def _matches_any(host: str, fragments: Iterable[str]) -> bool:
        return any(fragment in host for fragment in fragments)

    @staticmethod
    def _host(url: str) -> str:
        return (urlparse(url).hostname or "").lower()
