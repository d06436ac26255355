"""Portfolio API routes."""
from fastapi import APIRouter, Depends
from vibetrader.api.deps import get_components

router = APIRouter()


@router.get("")
async def get_portfolio(components=Depends(get_components)):
    """Wallet balance (None when the RPC is unreachable) and the purchase ledger."""
    return await components.portfolio.get_portfolio()
