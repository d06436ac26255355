"""Tests for settling turns into swaps, ledger rows and token events."""
import asyncio
import pytest
from conftest import BONK, USDC, FakeLLM, FakeVenue, FakeWallet, raw_token
from vibetrader.agents.decision_engine import DecisionEngine, TurnOutcome
from vibetrader.agents.decision_parser import Decision, Verdict
from vibetrader.db.repo.purchases_repo import PurchasesRepo
from vibetrader.orchestrator.event_pubsub import TokenEventBroadcaster
from vibetrader.services.conversation_store import ConversationStore
from vibetrader.services.market_snapshot import MarketSnapshotFetcher
from vibetrader.services.swap_executor import SwapExecutor
from vibetrader.services.token_snapshot import normalize_token_result
from vibetrader.services.trade_pipeline import SWAP_FAILED_NOTE, TradePipeline

BONK_SNAPSHOT = normalize_token_result(raw_token(BONK))


def _pipeline(venue=None, broadcaster=None):
    venue = venue or FakeVenue()
    return TradePipeline(
        SwapExecutor(venue, FakeWallet()),
        broadcaster or TokenEventBroadcaster(),
        PurchasesRepo(),
        buy_amount_sol=0.1,
    )


def _buy(target=BONK, snapshot=BONK_SNAPSHOT, decision_id="dec_1", text=None):
    text = text or f"aping in\nDECISION: BUY {target}"
    return TurnOutcome(
        conversation_id="conv_1",
        response_text=text,
        decision=Decision(Verdict.ACT, text, target=target, raw_target=target),
        snapshot=snapshot,
        decision_id=decision_id,
    )


def _drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class TestBuy:

    @pytest.mark.asyncio
    async def test_settled_buy_is_recorded_and_announced(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        venue = FakeVenue()
        pipeline = _pipeline(venue, broadcaster)

        settlement = await pipeline.settle(_buy(), user_id="ip:1.2.3.4", user_type="ip")

        assert venue.order_calls[0][:2] == (BONK, 100_000_000)
        purchases = PurchasesRepo().list_purchases()
        assert len(purchases) == 1
        record = purchases[0]
        assert record["tokenAddress"] == BONK
        assert record["tokenSymbol"] == "BONK"
        assert record["amountSol"] == 0.1
        assert record["pricePerToken"] == pytest.approx(0.1 / (500000 / 10 ** 9))
        assert record["txSignature"] == "5igTx"

        assert [e["type"] for e in _drain(queue)] == ["pitched", "bought"]
        assert settlement.message == settlement.decision.rationale
        assert settlement.to_decision_payload() == {
            "action": "buy",
            "token": BONK,
            "amount": pytest.approx(0.0005),
            "reasoning": settlement.decision.rationale,
        }

    @pytest.mark.asyncio
    async def test_failed_swap_records_nothing(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        pipeline = _pipeline(FakeVenue(result={"status": "Failed", "error": "slippage"}), broadcaster)

        settlement = await pipeline.settle(_buy())

        assert PurchasesRepo().count() == 0
        assert "bought" not in [e["type"] for e in _drain(queue)]
        assert settlement.message.endswith(SWAP_FAILED_NOTE)
        assert settlement.error is not None
        assert settlement.to_decision_payload() is None

    @pytest.mark.asyncio
    async def test_malformed_venue_reply_is_a_failed_swap(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        pipeline = _pipeline(FakeVenue(result=["unexpected"]), broadcaster)

        settlement = await pipeline.settle(_buy())

        assert settlement.error is not None
        assert settlement.error.phase == "SUBMITTED"
        assert settlement.message.endswith(SWAP_FAILED_NOTE)
        assert PurchasesRepo().count() == 0
        assert "bought" not in [e["type"] for e in _drain(queue)]

    @pytest.mark.asyncio
    async def test_symbol_unknown_when_snapshot_is_for_another_token(self):
        pipeline = _pipeline()
        await pipeline.settle(_buy(target=USDC, snapshot=BONK_SNAPSHOT))
        assert PurchasesRepo().list_purchases()[0]["tokenSymbol"] == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_buy_without_target_never_reaches_venue(self):
        venue = FakeVenue()
        outcome = _buy()
        outcome.decision = Decision(Verdict.ACT, "yolo", target=None, raw_target="$BONK")

        settlement = await _pipeline(venue).settle(outcome)

        assert venue.order_calls == []
        assert settlement.to_decision_payload() is None


class TestAtMostOnce:

    @pytest.mark.asyncio
    async def test_duplicate_delivery_writes_one_row(self):
        venue = FakeVenue()
        pipeline = _pipeline(venue)
        outcome = _buy()

        first = await pipeline.settle(outcome)
        second = await pipeline.settle(outcome)

        assert PurchasesRepo().count() == 1
        assert len(venue.execute_calls) == 1
        assert second.execution.signature == first.execution.signature

    @pytest.mark.asyncio
    async def test_concurrent_delivery_shares_one_execution(self):
        venue = FakeVenue()
        pipeline = _pipeline(venue)
        outcome = _buy()

        results = await asyncio.gather(pipeline.settle(outcome), pipeline.settle(outcome))

        assert len(venue.execute_calls) == 1
        assert PurchasesRepo().count() == 1
        assert results[0].execution == results[1].execution

    @pytest.mark.asyncio
    async def test_ledger_guards_across_pipeline_instances(self):
        outcome = _buy()
        await _pipeline().settle(outcome)

        other_venue = FakeVenue()
        settlement = await _pipeline(other_venue).settle(outcome)

        assert other_venue.order_calls == []
        assert settlement.execution.signature == "5igTx"
        assert PurchasesRepo().count() == 1

    @pytest.mark.asyncio
    async def test_failed_decision_is_not_retried(self):
        venue = FakeVenue(result={"status": "Failed"})
        pipeline = _pipeline(venue)
        outcome = _buy()

        await pipeline.settle(outcome)
        await pipeline.settle(outcome)

        assert len(venue.execute_calls) == 1

    @pytest.mark.asyncio
    async def test_execution_survives_caller_cancellation(self):
        class SlowVenue(FakeVenue):
            def __init__(self):
                super().__init__()
                self.release = asyncio.Event()

            async def execute(self, signed_transaction, request_id):
                await self.release.wait()
                return await super().execute(signed_transaction, request_id)

        venue = SlowVenue()
        pipeline = _pipeline(venue)
        outcome = _buy()

        task = asyncio.create_task(pipeline.settle(outcome))
        for _ in range(20):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        venue.release.set()
        settlement = await pipeline.settle(outcome)

        assert settlement.execution is not None
        assert len(venue.execute_calls) == 1
        assert PurchasesRepo().count() == 1


class TestDecline:

    @pytest.mark.asyncio
    async def test_pass_on_surfaced_token_is_rejected_event(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        text = "rug vibes\nDECISION: PASS"
        outcome = TurnOutcome("conv_1", text, Decision(Verdict.DECLINE, text), BONK_SNAPSHOT, "dec_2")

        settlement = await _pipeline(broadcaster=broadcaster).settle(outcome)

        events = _drain(queue)
        assert [e["type"] for e in events] == ["pitched", "rejected"]
        assert events[1]["reason"] == text
        assert settlement.to_decision_payload() == {"action": "pass", "reasoning": text}

    @pytest.mark.asyncio
    async def test_pass_without_snapshot_emits_nothing(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        outcome = TurnOutcome("conv_1", "nah", Decision(Verdict.DECLINE, "nah"), None, "dec_3")

        await _pipeline(broadcaster=broadcaster).settle(outcome)

        assert _drain(queue) == []

    @pytest.mark.asyncio
    async def test_announced_snapshot_is_not_repeated(self):
        broadcaster = TokenEventBroadcaster()
        queue = await broadcaster.subscribe()
        outcome = TurnOutcome("conv_1", "hmm", None, BONK_SNAPSHOT)

        await _pipeline(broadcaster=broadcaster).settle(outcome, snapshot_announced=True)

        assert _drain(queue) == []


@pytest.mark.asyncio
async def test_locked_conversation_executes_against_first_address(token_provider):
    llm = FakeLLM(["tell me more", "hmm", f"ok fine\nDECISION: BUY {USDC}"])
    engine = DecisionEngine(llm, ConversationStore(max_entries=10, idle_ttl_seconds=3600),
                            MarketSnapshotFetcher(token_provider))
    venue = FakeVenue()
    pipeline = _pipeline(venue)

    await engine.advance("conv_lock", f"check out {BONK}")
    await engine.advance("conv_lock", f"actually look at {USDC}")
    outcome = await engine.advance("conv_lock", f"buy {USDC} now")
    settlement = await pipeline.settle(outcome)

    assert [call[0] for call in venue.order_calls] == [BONK]
    assert settlement.execution.token_address == BONK
    assert PurchasesRepo().list_purchases()[0]["tokenAddress"] == BONK
