"""Resolve free-text asset mentions into cached market snapshots.

Snapshots are best-effort enrichment: every upstream or cache failure is
logged here and surfaces to callers as "no snapshot".
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from vibetrader.core.addresses import ADDRESS_RE, is_valid_address
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger
from vibetrader.providers.market_data_base import TokenDataProvider
from vibetrader.services.snapshot_cache import SnapshotCache, token_info_key, token_search_key
from vibetrader.services.token_snapshot import TokenSnapshot, normalize_token_result

logger = get_logger(__name__)

SYMBOL_RE = re.compile(r"\$([A-Za-z][A-Za-z0-9]{0,9})\b")

SEARCH_LIMIT = 5


@dataclass
class AssetReference:
    """An asset mention found in human text."""
    address: Optional[str] = None
    symbol: Optional[str] = None

    @property
    def query(self) -> Optional[str]:
        return self.address or self.symbol


def extract_asset_reference(text: str) -> Optional[AssetReference]:
    """Find an on-chain address, else a $SYMBOL, in free text."""
    if not text:
        return None
    match = ADDRESS_RE.search(text)
    if match:
        return AssetReference(address=match.group(0))
    match = SYMBOL_RE.search(text)
    if match:
        return AssetReference(symbol=match.group(1))
    return None


class MarketSnapshotFetcher:
    """Address lookups and fuzzy search through the snapshot cache."""

    def __init__(self, provider: TokenDataProvider, cache: Optional[SnapshotCache] = None):
        settings = get_settings()
        self.provider = provider
        self.cache = cache or SnapshotCache(None)
        self.info_ttl = settings.token_info_ttl_seconds
        self.search_ttl = settings.token_search_ttl_seconds

    async def _fetch_by_address(self, address: str) -> Optional[dict]:
        try:
            logger.info(f"Fetching token info for {address}")
            results = await self.provider.filter_tokens(address, limit=1)
        except Exception as e:
            logger.warning(f"Token info fetch failed for {address}: {e}")
            return None
        if not results:
            logger.info(f"No token data found for {address}")
            return None
        snapshot = normalize_token_result(results[0], fallback_address=address)
        return snapshot.to_dict()

    async def _fetch_search(self, query: str) -> Optional[list]:
        try:
            logger.info("Searching tokens for %r", query)
            results = await self.provider.filter_tokens(query, limit=SEARCH_LIMIT)
        except Exception as e:
            logger.warning(f"Token search failed for {query!r}: {e}")
            return None
        fetched_at = datetime.now(timezone.utc)
        return [normalize_token_result(r, fetched_at=fetched_at).to_dict() for r in results[:SEARCH_LIMIT]]

    async def get_by_address(self, address: str) -> Optional[TokenSnapshot]:
        data = await self.cache.with_cache(
            token_info_key(address), self.info_ttl, lambda: self._fetch_by_address(address)
        )
        return TokenSnapshot.from_dict(data) if data else None

    async def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[TokenSnapshot]:
        """Fuzzy search, best match first. Upstream failure yields []."""
        data = await self.cache.with_cache(
            token_search_key(query), self.search_ttl, lambda: self._fetch_search(query)
        )
        return [TokenSnapshot.from_dict(d) for d in (data or [])][:limit]

    async def resolve(self, identifier_or_query: str) -> Optional[TokenSnapshot]:
        """Exact fetch for an address, else the top fuzzy-search hit."""
        value = (identifier_or_query or "").strip().lstrip("$")
        if not value:
            return None
        if is_valid_address(value):
            return await self.get_by_address(value)
        results = await self.search(value)
        return results[0] if results else None

    async def resolve_text(self, text: str) -> Optional[TokenSnapshot]:
        """Resolve whatever asset the human text mentions, if any."""
        reference = extract_asset_reference(text)
        if reference is None:
            return None
        return await self.resolve(reference.query)
