"""
Offer deduplication and ranking.
Keeps the cheapest offer per merchant, then sorts by price.
"""
from typing import Dict, List, Sequence

from pricewatch.models.offer import NormalizedOffer

DEFAULT_RESULT_LIMIT = 10


def dedup_and_rank(
    offers: Sequence[NormalizedOffer],
    limit: int = DEFAULT_RESULT_LIMIT,
) -> List[NormalizedOffer]:
    """
    Collapse offers to one per merchant_key and return the cheapest `limit`.

    Within a merchant the strictly lowest price wins; on an exact tie the
    offer seen first is kept. The sort is stable, so equal prices across
    merchants keep upstream order.
    """
    if limit <= 0:
        return []

    best_by_merchant: Dict[str, NormalizedOffer] = {}
    for offer in offers:
        current = best_by_merchant.get(offer.merchant_key)
        if current is None or offer.price < current.price:
            best_by_merchant[offer.merchant_key] = offer

    ranked = sorted(best_by_merchant.values(), key=lambda offer: offer.price)
    return ranked[:limit]
