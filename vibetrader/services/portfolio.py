"""Wallet balance and purchase history."""
from typing import Any, Dict, List, Optional
from vibetrader.agents.prompts import build_portfolio_context
from vibetrader.core.logging import get_logger
from vibetrader.db.repo.purchases_repo import PurchasesRepo

logger = get_logger(__name__)


class PortfolioService:
    """Read side of the trade ledger plus the live wallet balance."""

    def __init__(self, wallet, purchases_repo: Optional[PurchasesRepo] = None, fetcher=None):
        self.wallet = wallet
        self.purchases_repo = purchases_repo or PurchasesRepo()
        self.fetcher = fetcher

    async def get_balance(self) -> Optional[float]:
        try:
            return await self.wallet.get_balance()
        except Exception as e:
            logger.warning(f"Balance lookup failed: {e}")
            return None

    async def backfill_symbols(self, purchases: List[Dict[str, Any]]) -> None:
        """Resolve UNKNOWN symbols in place and persist them (best effort)."""
        if self.fetcher is None:
            return
        resolved: Dict[str, Optional[str]] = {}
        for purchase in purchases:
            if purchase.get("tokenSymbol") not in (None, "", "UNKNOWN"):
                continue
            address = purchase["tokenAddress"]
            if address not in resolved:
                snapshot = await self.fetcher.get_by_address(address)
                resolved[address] = snapshot.symbol if snapshot and snapshot.symbol != "???" else None
            symbol = resolved[address]
            if symbol:
                purchase["tokenSymbol"] = symbol
                self.purchases_repo.update_symbol(purchase["id"], symbol)

    async def get_portfolio(self) -> Dict[str, Any]:
        purchases = self.purchases_repo.list_purchases()
        await self.backfill_symbols(purchases)
        return {
            "balance": await self.get_balance(),
            "walletAddress": self.wallet.public_key,
            "purchases": purchases,
        }

    async def context_block(self) -> str:
        """Holdings summary appended to each human turn."""
        purchases = self.purchases_repo.list_purchases()
        return build_portfolio_context(await self.get_balance(), purchases)
