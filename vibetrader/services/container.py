"""Application component wiring.

Everything stateful (conversation store, broadcaster, wallet, in-flight swaps)
is built once here and shared through app.state. Tests pass fakes for the
external collaborators.
"""
from dataclasses import dataclass
from typing import Optional
from vibetrader.agents.decision_engine import DecisionEngine
from vibetrader.agents.llm_client import ChatCompletionClient, OpenAIChatClient
from vibetrader.core.config import Settings, get_settings
from vibetrader.core.logging import get_logger
from vibetrader.db.repo.leaderboard_repo import LeaderboardRepo
from vibetrader.db.repo.purchases_repo import PurchasesRepo
from vibetrader.orchestrator.event_pubsub import TokenEventBroadcaster
from vibetrader.providers.codex_market_data import CodexMarketDataProvider
from vibetrader.providers.jupiter_provider import JupiterUltraClient
from vibetrader.providers.market_data_base import TokenDataProvider
from vibetrader.services.conversation_store import ConversationStore
from vibetrader.services.market_snapshot import MarketSnapshotFetcher
from vibetrader.services.portfolio import PortfolioService
from vibetrader.services.quota import QuotaGate
from vibetrader.services.snapshot_cache import SnapshotCache
from vibetrader.services.swap_executor import SwapExecutor
from vibetrader.services.trade_pipeline import TradePipeline
from vibetrader.services.wallet import Wallet

logger = get_logger(__name__)


@dataclass
class AppComponents:
    settings: Settings
    quota_gate: QuotaGate
    cache: SnapshotCache
    fetcher: MarketSnapshotFetcher
    store: ConversationStore
    wallet: Wallet
    portfolio: PortfolioService
    engine: DecisionEngine
    executor: SwapExecutor
    broadcaster: TokenEventBroadcaster
    pipeline: TradePipeline
    purchases_repo: PurchasesRepo
    leaderboard_repo: LeaderboardRepo


def build_components(
    settings: Optional[Settings] = None,
    llm: Optional[ChatCompletionClient] = None,
    token_provider: Optional[TokenDataProvider] = None,
    venue: Optional[JupiterUltraClient] = None,
    cache: Optional[SnapshotCache] = None,
    wallet: Optional[Wallet] = None,
    store: Optional[ConversationStore] = None,
    broadcaster: Optional[TokenEventBroadcaster] = None
) -> AppComponents:
    """Build the component graph, filling gaps from settings."""
    settings = settings or get_settings()
    purchases_repo = PurchasesRepo()

    cache = cache or SnapshotCache.from_settings()
    fetcher = MarketSnapshotFetcher(token_provider or CodexMarketDataProvider(), cache)
    store = store or ConversationStore(
        max_entries=settings.conversation_max_entries,
        idle_ttl_seconds=settings.conversation_idle_ttl_seconds,
    )
    wallet = wallet or Wallet.from_settings()
    portfolio = PortfolioService(wallet, purchases_repo, fetcher)
    engine = DecisionEngine(llm or OpenAIChatClient(), store, fetcher, portfolio)
    executor = SwapExecutor(venue or JupiterUltraClient(), wallet)
    broadcaster = broadcaster or TokenEventBroadcaster()
    pipeline = TradePipeline(executor, broadcaster, purchases_repo, settings.buy_amount_sol)

    logger.info(
        "Components ready: wallet=%s cache=%s buy_amount=%s SOL",
        wallet.public_key, "redis" if cache.enabled else "off", settings.buy_amount_sol
    )
    return AppComponents(
        settings=settings,
        quota_gate=QuotaGate(user_limit=settings.user_daily_limit, anon_limit=settings.anon_daily_limit),
        cache=cache,
        fetcher=fetcher,
        store=store,
        wallet=wallet,
        portfolio=portfolio,
        engine=engine,
        executor=executor,
        broadcaster=broadcaster,
        pipeline=pipeline,
        purchases_repo=purchases_repo,
        leaderboard_repo=LeaderboardRepo(),
    )
