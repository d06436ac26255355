"""Shared pytest fixtures for the test suite.

Provides:
- Per-test SQLite database with migrations applied
- Fakes for the chat model, token data provider and wallet
- Codex-shaped raw token records
- Component graph and TestClient wiring
"""
import pytest
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment early (BEFORE vibetrader imports)
_IMPORT_DB_DIR = tempfile.mkdtemp(prefix="vibetrader-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_IMPORT_DB_DIR, 'import.db')}"
os.environ["APP_ENV"] = "test"
os.environ["ANON_DAILY_LIMIT"] = "50"
os.environ["USER_DAILY_LIMIT"] = "100"
for _var in ("REDIS_URL", "OPENAI_API_KEY", "JUPITER_API_KEY", "CODEX_API_KEY", "SOLANA_PRIVATE_KEY"):
    os.environ.pop(_var, None)

from vibetrader.agents.llm_client import ChatCompletionClient
from vibetrader.core.config import reset_settings
from vibetrader.core.error_codes import GenerationError
from vibetrader.providers.market_data_base import TokenDataProvider

BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WIF = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"
TOKEN_45 = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB2634"


@pytest.fixture(autouse=True)
def test_db(tmp_path):
    """Fresh database per test; settings re-read so DATABASE_URL takes effect."""
    db_path = tmp_path / "test_vibetrader.db"
    old_db_url = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_settings()

    from vibetrader.db.connect import init_db
    init_db()

    yield str(db_path)

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    reset_settings()


# === FAKES ===

class FakeLLM(ChatCompletionClient):
    """Scripted chat model. Each call consumes the next reply."""

    def __init__(self, replies: Optional[List[Any]] = None, chunk_size: int = 7):
        self.replies = list(replies or [])
        self.chunk_size = chunk_size
        self.calls: List[List[Dict[str, str]]] = []

    def _next(self, messages) -> str:
        self.calls.append([dict(m) for m in messages])
        reply = self.replies.pop(0) if self.replies else "gm ser"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete(self, messages):
        return self._next(messages)

    async def stream(self, messages):
        reply = self._next(messages)
        for i in range(0, len(reply), self.chunk_size):
            yield reply[i:i + self.chunk_size]


class FailingLLM(FakeLLM):
    async def complete(self, messages):
        self.calls.append(messages)
        raise GenerationError("upstream exploded")

    async def stream(self, messages):
        self.calls.append(messages)
        yield "half a thought"
        raise GenerationError("stream cut off")


class FakeTokenProvider(TokenDataProvider):
    """filter_tokens answers from a phrase -> results mapping."""

    def __init__(self, results: Optional[Dict[str, List[Dict[str, Any]]]] = None, error: Exception = None):
        self.results = results or {}
        self.error = error
        self.calls: List[str] = []

    async def filter_tokens(self, phrase: str, limit: int = 5):
        self.calls.append(phrase)
        if self.error is not None:
            raise self.error
        return self.results.get(phrase, [])[:limit]


class FakeWallet:
    def __init__(self, balance: Optional[float] = 1.5, public_key: str = "FakeWa11etPubkey111111111111111111111111111"):
        self.balance = balance
        self.public_key = public_key
        self.signed: List[str] = []

    def sign_transaction(self, transaction_b64: str) -> str:
        self.signed.append(transaction_b64)
        return f"signed:{transaction_b64}"

    async def get_balance(self) -> float:
        if self.balance is None:
            raise ConnectionError("rpc down")
        return self.balance


class FakeVenue:
    """Jupiter Ultra stand-in with scripted order/execute responses."""

    def __init__(self, order: Optional[Dict[str, Any]] = None, result: Optional[Dict[str, Any]] = None,
                 order_error: Exception = None, execute_error: Exception = None):
        self.order = order if order is not None else {
            "transaction": "dW5zaWduZWQ=",
            "requestId": "req-1",
            "inAmount": "100000000",
            "outAmount": "500000",
        }
        self.result = result if result is not None else {"status": "Success", "signature": "5igTx"}
        self.order_error = order_error
        self.execute_error = execute_error
        self.order_calls: List[tuple] = []
        self.execute_calls: List[tuple] = []

    async def get_order(self, output_mint, amount_lamports, taker, input_mint=None):
        self.order_calls.append((output_mint, amount_lamports, taker))
        if self.order_error is not None:
            raise self.order_error
        return dict(self.order) if isinstance(self.order, dict) else self.order

    async def execute(self, signed_transaction, request_id):
        self.execute_calls.append((signed_transaction, request_id))
        if self.execute_error is not None:
            raise self.execute_error
        return dict(self.result) if isinstance(self.result, dict) else self.result


def raw_token(address: str, symbol: str = "BONK", name: str = "Bonk", price: Any = "0.0000234",
              **overrides) -> Dict[str, Any]:
    """A Codex filterTokens result with string-encoded numbers."""
    raw = {
        "token": {"address": address, "name": name, "symbol": symbol},
        "priceUSD": price,
        "liquidity": "1250000.5",
        "marketCap": "1500000000",
        "circulatingMarketCap": "1400000000",
        "createdAt": 1_700_000_000,
        "lastTransaction": 1_700_086_400,
        "exchanges": [{"name": "Raydium"}],
        "pair": {"address": "PairAddr"},
        "holders": "812345",
        "change5m": "0.012",
        "change1": "-0.05",
        "change4": "0.1",
        "change12": 0,
        "change24": "0.2534",
        "high24": "0.000025",
        "low24": "0.000021",
        "volume5m": "12000",
        "volume1": "150000",
        "volume4": "600000",
        "volume12": "1800000",
        "volume24": "3500000",
        "buyCount24": 4200,
        "sellCount24": 2100,
        "buyVolume24": "1900000",
        "sellVolume24": "1600000",
        "uniqueBuys24": 1800,
        "uniqueSells24": 900,
        "isScam": False,
        "sniperCount": 3,
        "sniperHeldPercentage": 1.25,
    }
    raw.update(overrides)
    return raw


# === COMPONENT FIXTURES ===

@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def token_provider():
    return FakeTokenProvider({
        BONK: [raw_token(BONK)],
        USDC: [raw_token(USDC, symbol="USDC", name="USD Coin", price="1.0001")],
        "WIF": [raw_token(WIF, symbol="WIF", name="dogwifhat", price="2.31")],
        TOKEN_45: [raw_token(TOKEN_45, symbol="PEPE2", name="Pepe Two", price="0.0000041")],
    })


@pytest.fixture
def fake_wallet():
    return FakeWallet()


@pytest.fixture
def fake_venue():
    return FakeVenue()


@pytest.fixture
def components(fake_llm, token_provider, fake_wallet, fake_venue):
    from vibetrader.core.config import get_settings
    from vibetrader.services.container import build_components
    from vibetrader.services.snapshot_cache import SnapshotCache

    return build_components(
        settings=get_settings(),
        llm=fake_llm,
        token_provider=token_provider,
        venue=fake_venue,
        cache=SnapshotCache(None),
        wallet=fake_wallet,
    )


@pytest.fixture
def client(components):
    from fastapi.testclient import TestClient
    from vibetrader.api.main import create_app

    return TestClient(create_app(components))
