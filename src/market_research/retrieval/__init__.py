"""Evidence retrieval: Exa search client and models."""

from market_research.retrieval.client import ExaSearchClient
from market_research.retrieval.config import ExaConfig
from market_research.retrieval.exceptions import (
    SearchAPIError,
    SearchAuthError,
    SearchError,
    SearchRateLimitError,
)
from market_research.retrieval.models import SearchHit, SearchResponse

__all__ = [
    "ExaConfig",
    "ExaSearchClient",
    "SearchAPIError",
    "SearchAuthError",
    "SearchError",
    "SearchHit",
    "SearchRateLimitError",
    "SearchResponse",
]
