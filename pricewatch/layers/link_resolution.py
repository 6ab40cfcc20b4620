"""
Link Resolution Layer for the PriceWatch comparison service.
Upgrades aggregator or redirect links into direct merchant URLs, one offer at
a time, without letting a slow or failing offer hold up the others.
"""
import asyncio
from enum import Enum
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from pricewatch.adapters.link_scraper import LinkScraper
from pricewatch.adapters.seller_lookup import SellerLookupAdapter
from pricewatch.layers.merchant_resolver import MerchantResolver
from pricewatch.models.offer import NormalizedOffer, ResolvedOffer
from pricewatch.utils.logger import LayerLogger


class LinkMode(str, Enum):
    """How purchase links are resolved for a deployment."""
    STRUCTURED = "structured"  # secondary seller lookup API
    SCRAPE = "scrape"          # fetch and scan the intermediate page


class Pacer:
    """Launch gate for outbound requests. The base class never waits."""

    async def wait_turn(self) -> None:
        return None


class StaggeredPacer(Pacer):
    """
    Hands out launch slots `interval` seconds apart.

    Callers still run concurrently; only their start times are spread out.
    One instance per request, never shared.
    """

    def __init__(self, interval: float):
        if interval < 0:
            raise ValueError("interval cannot be negative")
        self.interval = interval
        self._lock = asyncio.Lock()
        self._next_slot: Optional[float] = None

    async def wait_turn(self) -> None:
        async with self._lock:
            now = asyncio.get_running_loop().time()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.interval
        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)


class LinkResolutionLayer:
    """
    Link Resolution Layer - best-effort purchase link upgrade.

    Every failure degrades to the offer's raw link; nothing raised by a
    single resolution escapes resolve_all.
    """

    def __init__(
        self,
        mode: LinkMode,
        resolver: MerchantResolver,
        seller_lookup: Optional[SellerLookupAdapter] = None,
        scraper: Optional[LinkScraper] = None,
        pacing_interval: float = 0.5,
    ):
        self.mode = LinkMode(mode)
        if self.mode == LinkMode.STRUCTURED and seller_lookup is None:
            raise ValueError("structured link mode needs a seller lookup adapter")
        if self.mode == LinkMode.SCRAPE and scraper is None:
            raise ValueError("scrape link mode needs a link scraper")
        self.resolver = resolver
        self.seller_lookup = seller_lookup
        self.scraper = scraper
        self.pacing_interval = pacing_interval
        self.logger = LayerLogger("link_resolution_layer")

    def _new_pacer(self) -> Pacer:
        # only scrape fetches are paced
        if self.mode == LinkMode.SCRAPE and self.pacing_interval > 0:
            return StaggeredPacer(self.pacing_interval)
        return Pacer()

    async def resolve_all(self, offers: Sequence[NormalizedOffer]) -> List[ResolvedOffer]:
        """Resolve every offer concurrently; output follows input order."""
        self.logger.log_action("resolve_links", "started", mode=self.mode.value, offers_count=len(offers))

        pacer = self._new_pacer()
        resolved = await asyncio.gather(*(self._resolve_isolated(offer, pacer) for offer in offers))

        self.logger.log_action(
            "resolve_links",
            "completed",
            mode=self.mode.value,
            offers_count=len(resolved),
            direct_links=sum(1 for offer in resolved if offer.is_direct),
        )
        return list(resolved)

    async def _resolve_isolated(self, offer: NormalizedOffer, pacer: Pacer) -> ResolvedOffer:
        try:
            link = await self.resolve(offer, pacer)
        except Exception as e:
            self.logger.log_fallback(
                from_source=f"link_{self.mode.value}",
                to_source="raw_link",
                reason=f"Link resolution failed: {str(e)}",
                merchant=offer.merchant_key,
                error_type=type(e).__name__,
            )
            link = None
        return ResolvedOffer.from_offer(offer, link)

    async def resolve(self, offer: NormalizedOffer, pacer: Optional[Pacer] = None) -> Optional[str]:
        """
        Best direct link for one offer, or None to keep the raw link.

        May raise; resolve_all isolates failures.
        """
        if self.mode == LinkMode.STRUCTURED:
            return await self._resolve_structured(offer)
        return await self._resolve_scrape(offer, pacer or Pacer())

    async def _resolve_structured(self, offer: NormalizedOffer) -> Optional[str]:
        if not offer.lookup_url:
            self.logger.log_decision(
                decision="keep_raw_link",
                reason="Offer has no structured lookup URL",
                merchant=offer.merchant_key,
            )
            return None

        sellers = await self.seller_lookup.fetch_sellers(offer.lookup_url)
        for seller in sellers:
            if seller.link and self.resolver.resolve_key(seller.name) == offer.merchant_key:
                return seller.link

        self.logger.log_decision(
            decision="keep_raw_link",
            reason="No seller in lookup matches the offer's merchant",
            merchant=offer.merchant_key,
            sellers_count=len(sellers),
        )
        return None

    async def _resolve_scrape(self, offer: NormalizedOffer, pacer: Pacer) -> Optional[str]:
        if not offer.raw_link:
            return None

        host = (urlparse(offer.raw_link).hostname or "").lower()
        if any(domain in host for domain in self.scraper.merchant_domains):
            self.logger.log_decision(
                decision="keep_raw_link",
                reason="Raw link already points at a known merchant",
                merchant=offer.merchant_key,
            )
            return offer.raw_link

        await pacer.wait_turn()
        return await self.scraper.find_merchant_url(offer.raw_link)
