"""Tests for token event fan-out."""
import asyncio
import pytest
from conftest import BONK, raw_token
from vibetrader.orchestrator.event_pubsub import TokenEventBroadcaster
from vibetrader.orchestrator.token_events import bought_event, pitched_event, rejected_event
from vibetrader.services.token_snapshot import normalize_token_result

SNAPSHOT = normalize_token_result(raw_token(BONK))


@pytest.mark.asyncio
async def test_every_subscriber_receives_event():
    broadcaster = TokenEventBroadcaster()
    first = await broadcaster.subscribe()
    second = await broadcaster.subscribe()

    delivered = await broadcaster.publish(pitched_event(SNAPSHOT))

    assert delivered == 2
    assert first.get_nowait()["type"] == "pitched"
    assert second.get_nowait()["tokenAddress"] == BONK


@pytest.mark.asyncio
async def test_slow_subscriber_does_not_block_others():
    broadcaster = TokenEventBroadcaster()
    slow = await broadcaster.subscribe(maxsize=1)
    fast = await broadcaster.subscribe(maxsize=10)

    for _ in range(3):
        await asyncio.wait_for(broadcaster.publish(pitched_event(SNAPSHOT)), timeout=1)

    assert slow.qsize() == 1
    assert fast.qsize() == 3
    assert broadcaster.dropped == 2


@pytest.mark.asyncio
async def test_no_replay_for_late_subscribers():
    broadcaster = TokenEventBroadcaster()
    assert await broadcaster.publish(pitched_event(SNAPSHOT)) == 0

    late = await broadcaster.subscribe()
    assert late.empty()


@pytest.mark.asyncio
async def test_unsubscribe():
    broadcaster = TokenEventBroadcaster()
    queue = await broadcaster.subscribe()
    await broadcaster.unsubscribe(queue)
    await broadcaster.unsubscribe(queue)

    assert broadcaster.subscriber_count == 0
    assert await broadcaster.publish(pitched_event(SNAPSHOT)) == 0


@pytest.mark.asyncio
async def test_independent_instances():
    a, b = TokenEventBroadcaster(), TokenEventBroadcaster()
    queue = await a.subscribe()
    await b.publish(pitched_event(SNAPSHOT))
    assert queue.empty()


class TestEventShapes:

    def test_pitched(self):
        event = pitched_event(SNAPSHOT).model_dump()
        assert event["type"] == "pitched"
        assert event["symbol"] == "BONK"
        assert event["name"] == "Bonk"
        assert event["liquidity"] == pytest.approx(1250000.5)
        assert isinstance(event["timestamp"], int)

    def test_rejected_reason_is_truncated(self):
        event = rejected_event(SNAPSHOT, "x" * 500)
        assert len(event.reason) == 200

    def test_bought_without_snapshot(self):
        event = bought_event(None, BONK, 0.1, 0.0005, "sig").model_dump()
        assert event["symbol"] == "UNKNOWN"
        assert event["tokenAddress"] == BONK
        assert event["amountSol"] == 0.1
        assert event["txSignature"] == "sig"
