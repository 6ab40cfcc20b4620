"""
Offer models for the PriceWatch comparison service.
RawOffer is whatever the search provider handed us; NormalizedOffer and
ResolvedOffer are the validated, immutable values the pipeline produces.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


UNTITLED_PRODUCT = "Untitled product"


class RawOffer(BaseModel):
    """
    One offer as received from the upstream provider.

    Producer-controlled and untrusted: every field may be missing, and
    price_raw may be a number, a localized string, or a list of strings
    describing a price range.
    """
    title: Optional[str] = None
    price_raw: Any = None
    merchant_name_raw: Optional[str] = None
    link: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[float] = None
    lookup_url: Optional[str] = None  # secondary structured lookup endpoint


class SellerRecord(BaseModel):
    """Seller entry returned by the secondary structured lookup."""
    name: Optional[str] = None
    price_raw: Any = None
    link: Optional[str] = None
    rating: Optional[float] = None


class NormalizedOffer(BaseModel):
    """Validated offer, grouped by canonical merchant key."""
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    price: float = Field(gt=0)
    merchant_display_name: str
    merchant_key: str = Field(min_length=1)
    raw_link: str = ""
    image_url: Optional[str] = None
    lookup_url: Optional[str] = None


class ResolvedOffer(NormalizedOffer):
    """NormalizedOffer plus the best purchase URL found for it."""
    link: str = ""

    @classmethod
    def from_offer(cls, offer: NormalizedOffer, link: Optional[str] = None) -> "ResolvedOffer":
        """Copy a ranked offer, falling back to its raw link."""
        return cls(**offer.model_dump(), link=link or offer.raw_link)

    @property
    def is_direct(self) -> bool:
        return self.link != self.raw_link
