"""Tests for the Codex, Jupiter and OpenAI clients."""
import json
import httpx
import pytest
from conftest import BONK, raw_token
from vibetrader.agents.llm_client import OpenAIChatClient
from vibetrader.core.error_codes import GenerationError
from vibetrader.providers.codex_market_data import SOLANA_NETWORK_ID, CodexError, CodexMarketDataProvider
from vibetrader.providers.jupiter_provider import JupiterCredentialsError, JupiterError, JupiterUltraClient


class TestCodex:

    @pytest.mark.asyncio
    async def test_filter_tokens_request_shape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"filterTokens": {"results": [raw_token(BONK), None]}}})

        provider = CodexMarketDataProvider(api_key="codex-key", api_url="https://codex.test/graphql",
                                           transport=httpx.MockTransport(handler))
        results = await provider.filter_tokens(BONK, limit=1)

        assert len(results) == 1
        request = seen[0]
        assert request.headers["Authorization"] == "codex-key"
        body = json.loads(request.content)
        assert body["variables"] == {"phrase": BONK, "limit": 1, "networks": [SOLANA_NETWORK_ID]}
        assert "filterTokens" in body["query"]

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"errors": [{"message": "bad"}]}))
        provider = CodexMarketDataProvider(api_key="k", api_url="https://codex.test/graphql", transport=transport)
        with pytest.raises(CodexError):
            await provider.filter_tokens("bonk")

    @pytest.mark.asyncio
    async def test_http_errors_raise(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(503, text="unavailable"))
        provider = CodexMarketDataProvider(api_key="k", api_url="https://codex.test/graphql", transport=transport)
        with pytest.raises(httpx.HTTPStatusError):
            await provider.filter_tokens("bonk")

    @pytest.mark.asyncio
    async def test_missing_key_returns_nothing(self):
        provider = CodexMarketDataProvider(api_key=None)
        provider.api_key = None
        assert await provider.filter_tokens("bonk") == []


class TestJupiter:

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = JupiterUltraClient(api_key=None, api_url="https://jup.test/ultra/v1")
        client.api_key = None
        with pytest.raises(JupiterCredentialsError):
            await client.get_order(BONK, 1_000_000, "taker")

    @pytest.mark.asyncio
    async def test_error_body_is_truncated(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(400, text="x" * 1000))
        client = JupiterUltraClient(api_key="k", api_url="https://jup.test/ultra/v1", transport=transport)
        with pytest.raises(JupiterError) as exc_info:
            await client.execute("signed", "req-1")
        assert exc_info.value.status_code == 400
        assert exc_info.value.operation == "execute"
        assert len(str(exc_info.value)) < 300


class TestOpenAIClient:

    @pytest.mark.asyncio
    async def test_missing_key_is_generation_error(self):
        client = OpenAIChatClient(api_key=None)
        client.api_key = None
        with pytest.raises(GenerationError):
            await client.complete([{"role": "user", "content": "gm"}])
