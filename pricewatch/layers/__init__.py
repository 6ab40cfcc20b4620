"""Layers package initialization."""
from pricewatch.layers.merchant_resolver import MerchantAliasTable, MerchantPolicy, MerchantResolver
from pricewatch.layers.normalization import NormalizationLayer
from pricewatch.layers.link_resolution import LinkMode, LinkResolutionLayer, StaggeredPacer
from pricewatch.layers.pipeline import ComparePipeline, CompareResult, OfferSource, UpstreamUnavailable

__all__ = [
    "MerchantAliasTable",
    "MerchantPolicy",
    "MerchantResolver",
    "NormalizationLayer",
    "LinkMode",
    "LinkResolutionLayer",
    "StaggeredPacer",
    "ComparePipeline",
    "CompareResult",
    "OfferSource",
    "UpstreamUnavailable",
]
