"""
Upstream payload extraction for the PriceWatch comparison service.

Provider responses are schema-variable: the offer list lives under different
keys depending on the engine and account setup, and each item names its
fields differently. Extraction is an ordered list of (path, extractor)
candidates; the first path yielding at least one item wins.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from pricewatch.models.offer import RawOffer, SellerRecord

T = TypeVar("T")

TITLE_FIELDS = ("title", "name")
PRICE_FIELDS = ("extracted_price", "price", "price_range")
MERCHANT_FIELDS = ("source", "seller", "merchant", "store")
LINK_FIELDS = ("link", "product_link", "offer_link")
IMAGE_FIELDS = ("thumbnail", "serpapi_thumbnail", "image")
LOOKUP_FIELDS = ("serpapi_immersive_product_api", "serpapi_product_api")

SELLER_NAME_FIELDS = ("name", "source", "seller")
SELLER_PRICE_FIELDS = ("extracted_price", "price", "base_price", "total_price")
SELLER_LINK_FIELDS = ("link", "direct_link")


@dataclass(frozen=True)
class PayloadCandidate(Generic[T]):
    """A location to probe in a payload and how to turn its items into T."""
    path: Tuple[str, ...]
    extractor: Callable[[Dict[str, Any]], T]

    @property
    def label(self) -> str:
        return ".".join(self.path)


def _is_present(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def first_field(item: Dict[str, Any], names: Sequence[str]) -> Any:
    """Value of the first listed field that is present and non-empty."""
    for name in names:
        value = item.get(name)
        if _is_present(value):
            return value
    return None


def first_price_field(item: Dict[str, Any], names: Sequence[str]) -> Any:
    """Like first_field, but a zero or negative number does not count as a price."""
    for name in names:
        value = item.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value <= 0:
            continue
        if _is_present(value):
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, dict):
        # some engines nest the seller as {"name": ...}
        return _text(value.get("name"))
    return None


def _rating(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def resolve_path(payload: Any, path: Sequence[str]) -> Any:
    """Walk nested dict keys; None as soon as one is missing."""
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def extract_first(
    payload: Any,
    candidates: Sequence[PayloadCandidate[T]],
) -> Tuple[Optional[str], Optional[List[T]]]:
    """
    Try each candidate in order.

    Returns:
        (label of the matching path, extracted items), or (None, None) when
        no candidate location yields any item.
    """
    for candidate in candidates:
        items = resolve_path(payload, candidate.path)
        if not isinstance(items, list) or not items:
            continue
        extracted = [candidate.extractor(item) for item in items if isinstance(item, dict)]
        if extracted:
            return candidate.label, extracted
    return None, None


def raw_offer_from_search_item(item: Dict[str, Any]) -> RawOffer:
    """Shopping search result -> RawOffer."""
    return RawOffer(
        title=_text(first_field(item, TITLE_FIELDS)),
        price_raw=first_price_field(item, PRICE_FIELDS),
        merchant_name_raw=_text(first_field(item, MERCHANT_FIELDS)),
        link=_text(first_field(item, LINK_FIELDS)),
        image_url=_text(first_field(item, IMAGE_FIELDS)),
        rating=_rating(item.get("rating")),
        lookup_url=_text(first_field(item, LOOKUP_FIELDS)),
    )


def seller_record_from_item(item: Dict[str, Any]) -> SellerRecord:
    """Structured lookup seller entry -> SellerRecord."""
    return SellerRecord(
        name=_text(first_field(item, SELLER_NAME_FIELDS)),
        price_raw=first_price_field(item, SELLER_PRICE_FIELDS),
        link=_text(first_field(item, SELLER_LINK_FIELDS)),
        rating=_rating(item.get("rating")),
    )


SEARCH_RESULT_CANDIDATES: Tuple[PayloadCandidate[RawOffer], ...] = (
    PayloadCandidate(("shopping_results",), raw_offer_from_search_item),
    PayloadCandidate(("inline_shopping_results",), raw_offer_from_search_item),
    PayloadCandidate(("products",), raw_offer_from_search_item),
)

SELLER_CANDIDATES: Tuple[PayloadCandidate[SellerRecord], ...] = (
    PayloadCandidate(("online_sellers",), seller_record_from_item),
    PayloadCandidate(("sellers_results", "online_sellers"), seller_record_from_item),
    PayloadCandidate(("product_results", "stores"), seller_record_from_item),
)
