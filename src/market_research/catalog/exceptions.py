"""Market catalog errors."""

from __future__ import annotations


class CatalogError(Exception):
    """Base exception for market catalog errors."""


class CatalogAPIError(CatalogError):
    """HTTP API error with status code."""

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Catalog API error {status_code}: {message}")


class CatalogRateLimitError(CatalogAPIError):
    """Rate limit exceeded (HTTP 429)."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        super().__init__(429, message)
        self.retry_after = retry_after
