"""Market catalog adapter (Polymarket Gamma API)."""

from market_research.catalog.client import PolymarketCatalog, parse_gamma_market
from market_research.catalog.config import CatalogConfig
from market_research.catalog.exceptions import (
    CatalogAPIError,
    CatalogError,
    CatalogRateLimitError,
)

__all__ = [
    "CatalogAPIError",
    "CatalogConfig",
    "CatalogError",
    "CatalogRateLimitError",
    "PolymarketCatalog",
    "parse_gamma_market",
]
