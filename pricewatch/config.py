"""
Configuration management for the PriceWatch comparison service.
Handles environment variables and application settings.
"""
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Search provider (SerpAPI Google Shopping)
    # Loaded from environment variables, NEVER hardcoded
    SERPAPI_KEY: Optional[str] = os.getenv("SERPAPI_KEY")
    SERPAPI_BASE_URL: str = os.getenv("SERPAPI_BASE_URL", "https://serpapi.com/search.json")
    SEARCH_ENGINE: str = os.getenv("SEARCH_ENGINE", "google_shopping")
    SEARCH_LOCATION: str = os.getenv("SEARCH_LOCATION", "France")
    SEARCH_LANGUAGE: str = os.getenv("SEARCH_LANGUAGE", "fr")
    SEARCH_COUNTRY: str = os.getenv("SEARCH_COUNTRY", "fr")
    SEARCH_GOOGLE_DOMAIN: str = os.getenv("SEARCH_GOOGLE_DOMAIN", "google.fr")
    SEARCH_NUM: int = int(os.getenv("SEARCH_NUM", "10"))

    # Request settings (seconds)
    SEARCH_TIMEOUT: float = float(os.getenv("SEARCH_TIMEOUT", "15"))
    LOOKUP_TIMEOUT: float = float(os.getenv("LOOKUP_TIMEOUT", "10"))
    SCRAPE_TIMEOUT: float = float(os.getenv("SCRAPE_TIMEOUT", "15"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "2"))
    RETRY_BACKOFF: float = float(os.getenv("RETRY_BACKOFF", "1.0"))
    PACING_INTERVAL: float = float(os.getenv("PACING_INTERVAL", "0.5"))

    # Pipeline tuning
    RELEVANCE_THRESHOLD: float = float(os.getenv("RELEVANCE_THRESHOLD", "0.5"))
    MAX_PRICE: float = float(os.getenv("MAX_PRICE", "15000"))
    RESULT_LIMIT: int = int(os.getenv("RESULT_LIMIT", "10"))
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "€")

    # Strategies
    LINK_MODE: str = os.getenv("LINK_MODE", "structured").lower()  # structured or scrape
    OFFER_SOURCE: str = os.getenv("OFFER_SOURCE", "search").lower()  # search or sellers
    MERCHANT_POLICY: str = os.getenv("MERCHANT_POLICY", "strict").lower()  # strict or permissive

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")  # json or console

    @classmethod
    def is_search_configured(cls) -> bool:
        """Check if the search provider API key is configured."""
        return bool(cls.SERPAPI_KEY)


config = Config()
