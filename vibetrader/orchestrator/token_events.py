"""Token lifecycle events pushed to live observers."""
import time
from typing import Literal, Optional
from pydantic import BaseModel, Field
from vibetrader.services.token_snapshot import TokenSnapshot

REJECT_REASON_MAX_CHARS = 200


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenEventBase(BaseModel):
    timestamp: int = Field(default_factory=_now_ms)
    tokenAddress: str
    symbol: str
    name: str
    priceUsd: Optional[float] = None
    marketCap: Optional[float] = None
    liquidity: float = 0.0


class PitchedEvent(TokenEventBase):
    """A snapshot was shown to a human."""
    type: Literal["pitched"] = "pitched"


class RejectedEvent(TokenEventBase):
    """The agent passed on a surfaced token."""
    type: Literal["rejected"] = "rejected"
    reason: str


class BoughtEvent(TokenEventBase):
    """A swap settled."""
    type: Literal["bought"] = "bought"
    amountSol: float
    amountToken: float
    txSignature: str


def _common(snapshot: Optional[TokenSnapshot], token_address: str) -> dict:
    if snapshot is None:
        return {"tokenAddress": token_address, "symbol": "UNKNOWN", "name": "Unknown"}
    return {
        "tokenAddress": snapshot.address or token_address,
        "symbol": snapshot.symbol,
        "name": snapshot.name,
        "priceUsd": snapshot.price_usd,
        "marketCap": snapshot.market_cap,
        "liquidity": snapshot.liquidity,
    }


def pitched_event(snapshot: TokenSnapshot) -> PitchedEvent:
    return PitchedEvent(**_common(snapshot, snapshot.address))


def rejected_event(snapshot: TokenSnapshot, reason: str) -> RejectedEvent:
    return RejectedEvent(**_common(snapshot, snapshot.address), reason=reason[:REJECT_REASON_MAX_CHARS])


def bought_event(snapshot: Optional[TokenSnapshot], token_address: str, amount_sol: float,
                 amount_token: float, tx_signature: str) -> BoughtEvent:
    return BoughtEvent(
        **_common(snapshot, token_address),
        amountSol=amount_sol,
        amountToken=amount_token,
        txSignature=tx_signature,
    )
