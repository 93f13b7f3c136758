"""
Search client tests - mock ONLY at HTTP boundary.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from httpx import Response
from tenacity import wait_none

from market_research.retrieval import (
    ExaConfig,
    ExaSearchClient,
    SearchAPIError,
    SearchAuthError,
    SearchRateLimitError,
)

SEARCH_URL = "https://api.exa.ai/search"


def _client(max_retries: int = 3) -> ExaSearchClient:
    return ExaSearchClient(
        ExaConfig(api_key="test-key", max_retries=max_retries), wait=wait_none()
    )


@pytest.mark.asyncio
@respx.mock
async def test_search_sends_query_and_parses_hits() -> None:
    route = respx.post(SEARCH_URL).mock(
        return_value=Response(
            200,
            json={
                "requestId": "req_1",
                "resolvedSearchType": "neural",
                "results": [
                    {
                        "id": "doc_1",
                        "url": "https://www.reuters.com/a",
                        "title": "ETF inflows",
                        "publishedDate": "2025-05-30T00:00:00.000Z",
                        "author": "",
                        "text": "Full article text.",
                    },
                    {
                        "url": "https://example.com/b",
                        "publishedDate": "",
                        "highlights": ["first", "second"],
                    },
                ],
            },
        )
    )

    async with _client() as exa:
        resp = await exa.search("bitcoin etf", num_results=2)

    assert route.call_count == 1
    request = route.calls[0].request
    assert request.headers.get("x-api-key") == "test-key"
    body = json.loads(request.content.decode("utf-8"))
    assert body == {
        "query": "bitcoin etf",
        "type": "auto",
        "numResults": 2,
        "contents": {"text": {"maxCharacters": 3000}},
    }

    assert resp.request_id == "req_1"
    assert resp.search_type == "neural"
    first, second = resp.results
    assert first.author is None
    assert second.published_date is None

    source = first.to_raw_source()
    assert source.content == "Full article text."
    assert source.domain == "reuters.com"
    assert second.to_raw_source().content == "first second"


@pytest.mark.asyncio
@respx.mock
async def test_auth_error_is_not_retried() -> None:
    route = respx.post(SEARCH_URL).mock(return_value=Response(401, json={"error": "bad key"}))

    async with _client() as exa:
        with pytest.raises(SearchAuthError):
            await exa.search("q")

    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_then_success_retries() -> None:
    route = respx.post(SEARCH_URL).mock(
        side_effect=[
            Response(429, headers={"Retry-After": "0"}),
            Response(200, json={"requestId": "req_2", "results": []}),
        ]
    )

    async with _client() as exa:
        resp = await exa.search("q")

    assert resp.request_id == "req_2"
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_exhausts_retries() -> None:
    route = respx.post(SEARCH_URL).mock(return_value=Response(429))

    async with _client(max_retries=2) as exa:
        with pytest.raises(SearchRateLimitError):
            await exa.search("q")

    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_server_errors_surface_as_api_error_after_retries() -> None:
    route = respx.post(SEARCH_URL).mock(return_value=Response(503, text="unavailable"))

    async with _client(max_retries=3) as exa:
        with pytest.raises(SearchAPIError) as exc_info:
            await exa.search("q")

    assert exc_info.value.status_code == 503
    assert type(exc_info.value) is SearchAPIError
    assert route.call_count == 3


@pytest.mark.asyncio
@respx.mock
async def test_network_errors_are_wrapped() -> None:
    respx.post(SEARCH_URL).mock(side_effect=httpx.ConnectError("boom"))

    async with _client(max_retries=2) as exa:
        with pytest.raises(SearchAPIError, match="after 2 attempts"):
            await exa.search("q")


@pytest.mark.asyncio
@respx.mock
async def test_invalid_json_raises_api_error() -> None:
    respx.post(SEARCH_URL).mock(return_value=Response(200, text="not json"))

    async with _client() as exa:
        with pytest.raises(SearchAPIError, match="not valid JSON"):
            await exa.search("q")


@pytest.mark.asyncio
async def test_client_requires_open() -> None:
    exa = _client()

    with pytest.raises(RuntimeError, match="not initialized"):
        await exa.search("q")


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXA_API_KEY", "k")
    monkeypatch.setenv("EXA_TIMEOUT", "5")
    monkeypatch.setenv("EXA_MAX_RETRIES", "1")

    config = ExaConfig.from_env()

    assert config.api_key == "k"
    assert config.timeout_seconds == 5.0
    assert config.max_retries == 1


def test_config_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EXA_API_KEY", raising=False)

    with pytest.raises(ValueError, match="EXA_API_KEY"):
        ExaConfig.from_env()
