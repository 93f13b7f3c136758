"""Search API errors."""

from __future__ import annotations


class SearchError(Exception):
    """Base exception for evidence search errors."""


class SearchAPIError(SearchError):
    """Non-success response (or unusable payload) from the search API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class SearchAuthError(SearchAPIError):
    """Authentication error (invalid API key)."""


class SearchRateLimitError(SearchAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, *, retry_after_seconds: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after_seconds = retry_after_seconds
