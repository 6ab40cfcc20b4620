"""
Comparison pipeline for the PriceWatch comparison service.
query -> primary search -> normalization -> dedup/ranking -> link resolution.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import httpx

from pricewatch.adapters.http_client import FetchError, FetchExecutor
from pricewatch.adapters.link_scraper import LinkScraper
from pricewatch.adapters.search_provider import SearchProviderAdapter
from pricewatch.adapters.seller_lookup import SellerLookupAdapter
from pricewatch.layers.link_resolution import LinkMode, LinkResolutionLayer
from pricewatch.layers.merchant_resolver import MerchantAliasTable, MerchantPolicy, MerchantResolver
from pricewatch.layers.normalization import NormalizationLayer
from pricewatch.layers.ranking import DEFAULT_RESULT_LIMIT, dedup_and_rank
from pricewatch.models.offer import NormalizedOffer, RawOffer, ResolvedOffer
from pricewatch.utils.logger import LayerLogger


class UpstreamUnavailable(Exception):
    """The primary search could not be completed; nothing can be returned."""


class OfferSource(str, Enum):
    """Where offers come from."""
    SEARCH = "search"    # one offer per search result
    SELLERS = "sellers"  # seller records of the first relevant product


@dataclass
class CompareResult:
    """Outcome of one comparison."""
    query: str
    offers: List[ResolvedOffer] = field(default_factory=list)
    upstream_count: int = 0
    message: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.offers)


class ComparePipeline:
    """
    One instance per process; every call to compare() is independent and
    keeps its state on the stack, so concurrent requests share nothing
    mutable.
    """

    def __init__(
        self,
        search_provider: SearchProviderAdapter,
        normalization: NormalizationLayer,
        link_resolution: LinkResolutionLayer,
        seller_lookup: Optional[SellerLookupAdapter] = None,
        offer_source: OfferSource = OfferSource.SEARCH,
        result_limit: int = DEFAULT_RESULT_LIMIT,
    ):
        self.offer_source = OfferSource(offer_source)
        if self.offer_source == OfferSource.SELLERS and seller_lookup is None:
            raise ValueError("sellers offer source needs a seller lookup adapter")
        self.search_provider = search_provider
        self.normalization = normalization
        self.link_resolution = link_resolution
        self.seller_lookup = seller_lookup
        self.result_limit = result_limit
        self.logger = LayerLogger("compare_pipeline")

    @classmethod
    def from_config(
        cls,
        cfg,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        alias_table: Optional[MerchantAliasTable] = None,
    ) -> "ComparePipeline":
        """
        Wire every stage from a Config object.

        Raises:
            ValueError: unknown LINK_MODE, OFFER_SOURCE or MERCHANT_POLICY
        """
        executor = FetchExecutor(
            timeout=cfg.SEARCH_TIMEOUT,
            max_retries=cfg.MAX_RETRIES,
            backoff=cfg.RETRY_BACKOFF,
            transport=transport,
        )
        resolver = MerchantResolver(
            table=alias_table or MerchantAliasTable(),
            policy=MerchantPolicy(cfg.MERCHANT_POLICY),
        )
        seller_lookup = SellerLookupAdapter(
            executor,
            api_key=cfg.SERPAPI_KEY,
            timeout=cfg.LOOKUP_TIMEOUT,
        )
        scraper = LinkScraper(
            executor,
            merchant_domains=resolver.table.domain_fragments,
            timeout=cfg.SCRAPE_TIMEOUT,
        )
        search_provider = SearchProviderAdapter(
            executor,
            api_key=cfg.SERPAPI_KEY,
            base_url=cfg.SERPAPI_BASE_URL,
            engine=cfg.SEARCH_ENGINE,
            location=cfg.SEARCH_LOCATION,
            language=cfg.SEARCH_LANGUAGE,
            country=cfg.SEARCH_COUNTRY,
            google_domain=cfg.SEARCH_GOOGLE_DOMAIN,
            num=cfg.SEARCH_NUM,
            timeout=cfg.SEARCH_TIMEOUT,
        )
        return cls(
            search_provider=search_provider,
            normalization=NormalizationLayer(
                resolver,
                relevance_threshold=cfg.RELEVANCE_THRESHOLD,
                max_price=cfg.MAX_PRICE,
            ),
            link_resolution=LinkResolutionLayer(
                mode=LinkMode(cfg.LINK_MODE),
                resolver=resolver,
                seller_lookup=seller_lookup,
                scraper=scraper,
                pacing_interval=cfg.PACING_INTERVAL,
            ),
            seller_lookup=seller_lookup,
            offer_source=OfferSource(cfg.OFFER_SOURCE),
            result_limit=cfg.RESULT_LIMIT,
        )

    async def compare(self, query: str) -> CompareResult:
        """
        Run one comparison.

        Raises:
            UpstreamUnavailable: the primary search failed after its retries
        """
        self.logger.log_action("compare", "started", query=query, offer_source=self.offer_source.value)

        try:
            payload = await self.search_provider.search(query)
        except FetchError as e:
            self.logger.log_error(
                f"Primary search failed: {e.message}",
                error_type=e.kind,
                query=query,
            )
            raise UpstreamUnavailable(f"Search provider unavailable: {e.message}") from e

        raw_offers = self.normalization.extract_offers(payload)
        if not raw_offers:
            return self._empty(query, 0, "No offers found")

        if self.offer_source == OfferSource.SELLERS:
            normalized = await self._offers_from_sellers(raw_offers, query)
        else:
            normalized = self.normalization.normalize(raw_offers, query)

        if not normalized:
            return self._empty(query, len(raw_offers), "No valid offers")

        ranked = dedup_and_rank(normalized, self.result_limit)
        self.logger.log_filtering(
            stage="dedup_and_rank",
            kept=len(ranked),
            dropped={"duplicate_or_over_limit": len(normalized) - len(ranked)},
            query=query,
        )

        if self.offer_source == OfferSource.SELLERS:
            # seller links are already direct merchant URLs
            resolved = [ResolvedOffer.from_offer(offer) for offer in ranked]
        else:
            resolved = await self.link_resolution.resolve_all(ranked)

        self.logger.log_action(
            "compare",
            "completed",
            query=query,
            results=[{"source": o.merchant_display_name, "price": o.price} for o in resolved],
        )
        return CompareResult(query=query, offers=resolved, upstream_count=len(raw_offers))

    async def _offers_from_sellers(self, raw_offers: List[RawOffer], query: str) -> List[NormalizedOffer]:
        product = next(
            (raw for raw in raw_offers if raw.lookup_url and self.normalization.is_relevant(raw, query)),
            None,
        )
        if product is None:
            self.logger.log_decision(
                decision="no_product_selected",
                reason="No relevant search result carries a seller lookup URL",
                query=query,
            )
            return []

        self.logger.log_decision(
            decision="product_selected",
            reason="First relevant search result with a seller lookup URL",
            query=query,
            title=product.title,
        )

        try:
            sellers = await self.seller_lookup.fetch_sellers(product.lookup_url)
        except Exception as e:
            self.logger.log_fallback(
                from_source="seller_lookup",
                to_source="no_sellers",
                reason=f"Seller lookup failed: {str(e)}",
                query=query,
            )
            return []

        seller_offers = [
            RawOffer(
                title=product.title,
                price_raw=seller.price_raw,
                merchant_name_raw=seller.name,
                link=seller.link,
                image_url=product.image_url,
                rating=seller.rating,
            )
            for seller in sellers
        ]
        # relevance was decided on the product itself
        return self.normalization.normalize(seller_offers, query, check_relevance=False)

    def _empty(self, query: str, upstream_count: int, message: str) -> CompareResult:
        self.logger.log_decision(decision="empty_result", reason=message, query=query, upstream_count=upstream_count)
        return CompareResult(query=query, upstream_count=upstream_count, message=message)
