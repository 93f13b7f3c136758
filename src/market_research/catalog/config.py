"""Configuration for the Polymarket Gamma catalog client."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_GAMMA_URL = "https://gamma-api.polymarket.com"


@dataclass(frozen=True)
class CatalogConfig:
    """Configuration for the market catalog client."""

    base_url: str = DEFAULT_GAMMA_URL
    timeout_seconds: float = 10.0
    max_retries: int = 3
    page_size: int = 100

    @classmethod
    def from_env(cls) -> CatalogConfig:
        """Load configuration from environment variables.

        Optional:
            POLYMARKET_GAMMA_URL: Override base URL (default: https://gamma-api.polymarket.com)
            POLYMARKET_TIMEOUT: Request timeout in seconds (default: 10)
            POLYMARKET_MAX_RETRIES: Attempts for transient errors (default: 3)
        """
        return cls(
            base_url=os.environ.get("POLYMARKET_GAMMA_URL", DEFAULT_GAMMA_URL),
            timeout_seconds=float(os.environ.get("POLYMARKET_TIMEOUT", "10")),
            max_retries=int(os.environ.get("POLYMARKET_MAX_RETRIES", "3")),
        )
