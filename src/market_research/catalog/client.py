"""Polymarket Gamma API adapter for the market catalog contract."""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from market_research.catalog.config import CatalogConfig
from market_research.catalog.exceptions import CatalogAPIError, CatalogRateLimitError
from market_research.schemas import Market

if TYPE_CHECKING:
    from tenacity import RetryCallState

logger = structlog.get_logger()

_RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=30)


def _wait_with_retry_after(retry_state: RetryCallState) -> float:
    """Wait using Retry-After header if available, else exponential backoff."""
    outcome = retry_state.outcome
    if outcome is not None:
        exc = outcome.exception()
        if isinstance(exc, CatalogRateLimitError) and exc.retry_after is not None:
            return float(exc.retry_after)
    return float(_RETRY_WAIT(retry_state))


class PolymarketCatalog:
    """
    Read-only market catalog backed by the public Gamma API.

    Market ids may be numeric ids, slugs, or `0x...` condition ids.
    """

    def __init__(self, config: CatalogConfig | None = None, *, wait: Any = None) -> None:
        self._config = config or CatalogConfig.from_env()
        self._wait = wait if wait is not None else _wait_with_retry_after
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> PolymarketCatalog:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_market(self, market_id: str) -> Market | None:
        """
        Fetch a single market.

        Returns:
            The market, or None when Gamma does not know the id.
        """
        if market_id.startswith("0x") and len(market_id) > 20:
            data = await self._get("/markets", params={"condition_ids": market_id})
            rows = data if isinstance(data, list) else []
            match = next(
                (r for r in rows if str(r.get("conditionId", "")).lower() == market_id.lower()),
                None,
            )
            return parse_gamma_market(match) if match is not None else None

        try:
            data = await self._get(f"/markets/{market_id}")
        except CatalogAPIError as e:
            if e.status_code in (404, 422):
                logger.info("catalog_market_not_found", market_id=market_id)
                return None
            raise

        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None
        return parse_gamma_market(data)

    async def get_markets(self, *, active: bool = True) -> list[Market]:
        """List open markets (one page of `page_size`)."""
        params = {
            "active": str(active).lower(),
            "closed": "false",
            "limit": self._config.page_size,
        }
        data = await self._get("/markets", params=params)
        rows = data if isinstance(data, list) else []

        markets: list[Market] = []
        for row in rows:
            try:
                markets.append(parse_gamma_market(row))
            except (KeyError, ValueError) as e:
                logger.warning("catalog_market_skipped", market_id=row.get("id"), error=str(e))
        return markets

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return await self._get_with_retry(path, params)
        except (httpx.NetworkError, httpx.TimeoutException) as e:
            raise CatalogAPIError(None, f"Request to {path} failed: {e}") from e
        except json.JSONDecodeError as e:
            raise CatalogAPIError(None, f"Response from {path} was not valid JSON") from e

    async def _get_with_retry(self, path: str, params: dict[str, Any] | None) -> Any:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(
                (
                    CatalogRateLimitError,
                    httpx.NetworkError,
                    httpx.TimeoutException,
                )
            ),
            stop=stop_after_attempt(self._config.max_retries),
            wait=self._wait,
            reraise=True,
        ):
            with attempt:
                response = await self._client.get(path, params=params)

                if response.status_code == 429:
                    retry_after: int | None = None
                    retry_after_header = response.headers.get("Retry-After")
                    if retry_after_header is not None:
                        try:
                            retry_after = int(retry_after_header)
                        except ValueError:
                            retry_after = None
                    raise CatalogRateLimitError(
                        message=response.text or "Rate limit exceeded",
                        retry_after=retry_after,
                    )

                if response.status_code >= 400:
                    raise CatalogAPIError(
                        status_code=response.status_code,
                        message=response.text,
                    )
                return response.json()

        raise AssertionError("AsyncRetrying should have returned or raised")  # pragma: no cover


def parse_gamma_market(data: dict[str, Any]) -> Market:
    """Convert a Gamma market payload into a Market snapshot."""
    events = data.get("events") or []
    event = events[0] if events else {}

    return Market(
        id=str(data["id"]),
        question=data.get("question") or data.get("title") or "",
        slug=data.get("slug"),
        category=data.get("category"),
        description=data.get("description"),
        end_date=_parse_datetime(data.get("endDate")),
        event_id=str(event["id"]) if event.get("id") is not None else None,
        event_title=event.get("title"),
        resolution_source=data.get("resolutionSource") or None,
        resolution_criteria=data.get("description"),
        yes_price=_parse_yes_price(data.get("outcomePrices")),
        active=bool(data.get("active", True)) and not bool(data.get("closed", False)),
    )


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_yes_price(value: Any) -> float | None:
    # Gamma encodes outcomePrices as a JSON string: '["0.62", "0.38"]'
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if not isinstance(value, list) or not value:
        return None
    try:
        price = float(value[0])
    except (TypeError, ValueError):
        return None
    return price if 0.0 <= price <= 1.0 else None
