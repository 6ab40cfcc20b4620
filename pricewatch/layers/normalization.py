"""
Normalization Layer for the PriceWatch comparison service.
Turns the provider's schema-variable payload into validated NormalizedOffer
values: relevance filtering, price parsing and merchant resolution.
"""
from collections import Counter
from typing import Any, List, Optional, Tuple

from pricewatch.adapters.payload import SEARCH_RESULT_CANDIDATES, extract_first
from pricewatch.layers.merchant_resolver import MerchantResolver
from pricewatch.layers.pricing import is_valid_price, parse_price
from pricewatch.layers.relevance import is_relevant
from pricewatch.models.offer import NormalizedOffer, RawOffer, UNTITLED_PRODUCT
from pricewatch.utils.logger import LayerLogger

DEFAULT_RELEVANCE_THRESHOLD = 0.5
DEFAULT_MAX_PRICE = 15000.0

# Drop reasons, reported in logs
DROP_IRRELEVANT = "irrelevant"
DROP_INVALID_PRICE = "invalid_price"
DROP_UNKNOWN_MERCHANT = "unknown_merchant"


class NormalizationLayer:
    """
    Normalization Layer - source-agnostic offer validation.

    Upstream order is preserved: offer i of the output comes from an
    earlier raw offer than offer i + 1.
    """

    def __init__(
        self,
        resolver: MerchantResolver,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        max_price: float = DEFAULT_MAX_PRICE,
    ):
        if not 0 <= relevance_threshold <= 1:
            raise ValueError("relevance_threshold must be between 0 and 1")
        if max_price <= 0:
            raise ValueError("max_price must be positive")
        self.resolver = resolver
        self.relevance_threshold = relevance_threshold
        self.max_price = max_price
        self.logger = LayerLogger("normalization_layer")

    def extract_offers(self, payload: Any) -> List[RawOffer]:
        """
        Find the offer list in a search payload.

        A payload without any known offer list is treated as zero offers.
        """
        path, raw_offers = extract_first(payload, SEARCH_RESULT_CANDIDATES)
        if raw_offers is None:
            self.logger.log_fallback(
                from_source="search_payload",
                to_source="empty_offer_list",
                reason="No offer list found at any known location",
                candidates=[candidate.label for candidate in SEARCH_RESULT_CANDIDATES],
            )
            return []

        self.logger.log_action("extract_offers", "completed", path=path, offers_count=len(raw_offers))
        return raw_offers

    def is_relevant(self, raw: RawOffer, query: str) -> bool:
        return is_relevant(raw.title, query, self.relevance_threshold)

    def normalize_offer(
        self,
        raw: RawOffer,
        query: str,
        check_relevance: bool = True,
    ) -> Tuple[Optional[NormalizedOffer], Optional[str]]:
        """
        Validate one raw offer.

        Returns:
            (offer, None) when it survives, (None, drop_reason) otherwise
        """
        if check_relevance and not self.is_relevant(raw, query):
            return None, DROP_IRRELEVANT

        price = parse_price(raw.price_raw)
        if not is_valid_price(price, self.max_price):
            return None, DROP_INVALID_PRICE

        merchant_key = self.resolver.resolve_key(raw.merchant_name_raw)
        if merchant_key is None:
            return None, DROP_UNKNOWN_MERCHANT

        offer = NormalizedOffer(
            title=raw.title or UNTITLED_PRODUCT,
            price=price,
            merchant_display_name=raw.merchant_name_raw or merchant_key,
            merchant_key=merchant_key,
            raw_link=raw.link or "",
            image_url=raw.image_url,
            lookup_url=raw.lookup_url,
        )
        return offer, None

    def normalize(
        self,
        raw_offers: List[RawOffer],
        query: str,
        check_relevance: bool = True,
    ) -> List[NormalizedOffer]:
        """Validate every raw offer, keeping upstream order."""
        offers: List[NormalizedOffer] = []
        dropped: Counter = Counter()

        for raw in raw_offers:
            offer, reason = self.normalize_offer(raw, query, check_relevance=check_relevance)
            if offer is None:
                dropped[reason] += 1
                continue
            offers.append(offer)

        self.logger.log_filtering(
            stage="normalize",
            kept=len(offers),
            dropped=dict(dropped),
            query=query,
            received=len(raw_offers),
        )
        return offers
