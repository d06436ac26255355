"""Codex GraphQL token data provider (Solana network)."""
from typing import List, Dict, Any, Optional
import httpx
from vibetrader.providers.market_data_base import TokenDataProvider
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

SOLANA_NETWORK_ID = 1399811149

FILTER_TOKENS_QUERY = """
query FilterTokens($phrase: String, $limit: Int, $networks: [Int]) {
  filterTokens(filters: {network: $networks}, phrase: $phrase, limit: $limit) {
    results {
      token { address name symbol }
      priceUSD
      liquidity
      marketCap
      circulatingMarketCap
      createdAt
      lastTransaction
      exchanges { name }
      pair { address }
      holders
      change5m change1 change4 change12 change24
      high24 low24
      volume5m volume1 volume4 volume12 volume24
      buyCount5m buyCount1 buyCount4 buyCount12 buyCount24 buyVolume24
      sellCount5m sellCount1 sellCount4 sellCount12 sellCount24 sellVolume24
      uniqueBuys24 uniqueSells24
      isScam
      sniperCount sniperHeldPercentage
      bundlerCount bundlerHeldPercentage
      insiderCount insiderHeldPercentage
      devHeldPercentage
      swapPct1dOldWallet swapPct7dOldWallet
    }
  }
}
"""


class CodexError(Exception):
    """Codex returned a GraphQL error payload."""


class CodexMarketDataProvider(TokenDataProvider):
    """Token lookups against the Codex GraphQL API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        settings = get_settings()
        self.api_key = api_key or settings.codex_api_key
        self.api_url = api_url or settings.codex_api_url
        self.transport = transport
        self.timeout = timeout

    async def filter_tokens(self, phrase: str, limit: int = 5) -> List[Dict[str, Any]]:
        if not self.api_key:
            logger.warning("CODEX_API_KEY not set, skipping token lookup")
            return []

        payload = {
            "query": FILTER_TOKENS_QUERY,
            "variables": {"phrase": phrase, "limit": limit, "networks": [SOLANA_NETWORK_ID]},
        }
        headers = {"Authorization": self.api_key, "Content-Type": "application/json"}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()

        if body.get("errors"):
            raise CodexError(str(body["errors"])[:300])

        results = ((body.get("data") or {}).get("filterTokens") or {}).get("results") or []
        return [r for r in results if r is not None]
