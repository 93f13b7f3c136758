"""Async Exa search client (httpx + tenacity)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from market_research.retrieval.config import ExaConfig
from market_research.retrieval.exceptions import (
    SearchAPIError,
    SearchAuthError,
    SearchRateLimitError,
)
from market_research.retrieval.models import SearchResponse

if TYPE_CHECKING:
    from types import TracebackType

    from tenacity import RetryCallState

logger = structlog.get_logger()

_RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=30)


def _wait_with_retry_after(retry_state: RetryCallState) -> float:
    """Wait using Retry-After when the API sent one, else exponential backoff."""
    outcome = retry_state.outcome
    if outcome is not None:
        exc = outcome.exception()
        if isinstance(exc, SearchRateLimitError) and exc.retry_after_seconds is not None:
            return float(exc.retry_after_seconds)
    return float(_RETRY_WAIT(retry_state))


class _TransientServerError(SearchAPIError):
    """5xx response; retried, then surfaced as SearchAPIError."""


class ExaSearchClient:
    """
    Minimal Exa client covering the `/search` endpoint.

    Use as an async context manager:

        async with ExaSearchClient.from_env() as client:
            response = await client.search("bitcoin etf flows", num_results=5)
    """

    def __init__(
        self,
        config: ExaConfig,
        *,
        max_characters: int = 3000,
        wait: Any = None,
    ) -> None:
        self._config = config
        self._max_characters = max_characters
        self._wait = wait if wait is not None else _wait_with_retry_after
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_env(cls) -> ExaSearchClient:
        """Create a client from environment configuration.

        Raises:
            ValueError: If `EXA_API_KEY` is missing.
        """
        return cls(ExaConfig.from_env())

    async def open(self) -> None:
        """Initialize the underlying `httpx.AsyncClient` if needed."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
                "x-api-key": self._config.api_key,
            },
        )

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> ExaSearchClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the initialized `httpx.AsyncClient`.

        Raises:
            RuntimeError: If `open()` has not been called yet.
        """
        if self._client is None:
            raise RuntimeError(
                "ExaSearchClient not initialized. "
                "Use 'async with ExaSearchClient.from_env()' or call open()."
            )
        return self._client

    async def search(self, query: str, *, num_results: int = 5) -> SearchResponse:
        """
        Run a search and return hits with page text.

        Args:
            query: Free-text query
            num_results: Number of results to request (1..100)

        Returns:
            Parsed SearchResponse.
        """
        body = {
            "query": query,
            "type": "auto",
            "numResults": num_results,
            "contents": {"text": {"maxCharacters": self._max_characters}},
        }
        data = await self._post("/search", body)
        response = SearchResponse.model_validate(data)
        logger.debug("exa_search_complete", query=query, results=len(response.results))
        return response

    async def _post(self, path: str, json_body: dict[str, Any]) -> dict[str, Any]:
        """POST with bounded retries for rate limits, 5xx and network errors.

        Raises:
            SearchAuthError: On 401.
            SearchRateLimitError: On 429 once retries are exhausted.
            SearchAPIError: For other non-success responses or invalid JSON.
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(
                    (
                        SearchRateLimitError,
                        _TransientServerError,
                        httpx.NetworkError,
                        httpx.TimeoutException,
                    )
                ),
                stop=stop_after_attempt(self._config.max_retries),
                wait=self._wait,
                reraise=True,
            ):
                with attempt:
                    response = await self.client.post(path, json=json_body)
                    return self._parse(response)
        except _TransientServerError as e:
            raise SearchAPIError(str(e), status_code=e.status_code) from e
        except (httpx.NetworkError, httpx.TimeoutException) as e:
            raise SearchAPIError(
                f"Request failed after {self._config.max_retries} attempts: {e}"
            ) from e

        raise AssertionError("AsyncRetrying should have returned or raised")  # pragma: no cover

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        if response.status_code == 401:
            raise SearchAuthError("Invalid API key", status_code=401)

        if response.status_code == 429:
            retry_after: int | None = None
            header = response.headers.get("Retry-After")
            if header is not None:
                try:
                    retry_after = max(0, int(float(header)))
                except ValueError:
                    retry_after = None
            raise SearchRateLimitError(
                f"Rate limited. Retry after {retry_after}s",
                retry_after_seconds=retry_after,
            )

        if response.status_code >= 500:
            raise _TransientServerError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise SearchAPIError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except json.JSONDecodeError as e:
            raise SearchAPIError(
                f"Response was not valid JSON: {response.text}",
                status_code=response.status_code,
            ) from e
        return data
