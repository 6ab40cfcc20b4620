"""
PriceWatch - FastAPI Application
Main entry point with REST API endpoints.
"""
from typing import List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from pricewatch.config import config
from pricewatch.utils.logger import get_logger, set_trace_id
from pricewatch.layers.pipeline import ComparePipeline, UpstreamUnavailable
from pricewatch.models.offer import ResolvedOffer

VERSION = "1.0.0"


# Initialize FastAPI app
app = FastAPI(
    title="PriceWatch",
    description="Compares merchant offers for a product and returns direct purchase links",
    version=VERSION,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize pipeline
compare_pipeline = ComparePipeline.from_config(config)

logger = get_logger("main")


# Request/Response models
class CompareRequest(BaseModel):
    """Request model for a price comparison."""
    query: Optional[str] = None


class OfferView(BaseModel):
    """One ranked offer as shown to the client."""
    title: str
    price: float
    priceFormatted: str
    source: str
    link: str
    image: str

    @classmethod
    def from_offer(cls, offer: ResolvedOffer, currency_symbol: str = "€") -> "OfferView":
        return cls(
            title=offer.title,
            price=offer.price,
            priceFormatted=format_price(offer.price, currency_symbol),
            source=offer.merchant_display_name,
            link=offer.link,
            image=offer.image_url or "",
        )


class CompareResponse(BaseModel):
    """Response model for a price comparison."""
    results: List[OfferView]
    total: int
    trace_id: str


def format_price(price: float, currency_symbol: str = "€") -> str:
    """349.0 -> "349,00€"."""
    return f"{price:.2f}".replace(".", ",") + currency_symbol


def _error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# API Routes
@app.get("/health")
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": VERSION}


@app.post("/compare")
@app.post("/api/compare")
async def compare_offers(request: CompareRequest):
    """
    Compare merchant offers for a free-text product query.

    Returns the cheapest offer per merchant, sorted by price. A 500 is
    only returned when the search provider could not be reached at all.
    """
    trace_id = set_trace_id()

    query = (request.query or "").strip()
    if not query:
        logger.info("compare_rejected", reason="missing_query", trace_id=trace_id)
        return _error_response(400, "Query required")

    logger.info("compare_request", query=query, trace_id=trace_id)

    try:
        result = await compare_pipeline.compare(query)
    except UpstreamUnavailable as e:
        logger.error("compare_upstream_unavailable", error=str(e), query=query)
        return _error_response(500, "Failed", str(e))
    except Exception as e:
        logger.error("compare_error", error=str(e), error_type=type(e).__name__, query=query)
        return _error_response(500, "Failed", str(e))

    results = [OfferView.from_offer(offer, config.CURRENCY_SYMBOL) for offer in result.offers]

    logger.info(
        "compare_completed",
        query=query,
        total=len(results),
        upstream_count=result.upstream_count,
        message=result.message,
    )

    return CompareResponse(results=results, total=len(results), trace_id=trace_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pricewatch.main:app", host=config.HOST, port=config.PORT, reload=config.DEBUG)
