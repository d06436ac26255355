"""Tests for the Redis snapshot cache (fail-open behaviour)."""
import json
from unittest.mock import AsyncMock
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from vibetrader.services.snapshot_cache import SnapshotCache, token_info_key, token_search_key


def test_key_prefixes():
    assert token_info_key("Abc") == "codex:token:Abc"
    assert token_search_key("BoNk") == "codex:search:bonk"


@pytest.mark.asyncio
async def test_disabled_cache_always_calls_through():
    cache = SnapshotCache(None)
    fn = AsyncMock(return_value={"v": 1})

    assert await cache.with_cache("k", 30, fn) == {"v": 1}
    assert await cache.with_cache("k", 30, fn) == {"v": 1}
    assert fn.await_count == 2
    assert cache.enabled is False


@pytest.mark.asyncio
async def test_hit_skips_fetch():
    client = AsyncMock()
    client.get.return_value = json.dumps({"v": 2})
    cache = SnapshotCache(client)
    fn = AsyncMock()

    assert await cache.with_cache("k", 30, fn) == {"v": 2}
    fn.assert_not_awaited()


@pytest.mark.asyncio
async def test_miss_stores_with_ttl():
    client = AsyncMock()
    client.get.return_value = None
    cache = SnapshotCache(client)

    await cache.with_cache("k", 300, AsyncMock(return_value=[1, 2]))

    client.setex.assert_awaited_once_with("k", 300, json.dumps([1, 2]))


@pytest.mark.asyncio
async def test_none_result_is_not_cached():
    client = AsyncMock()
    client.get.return_value = None
    cache = SnapshotCache(client)

    assert await cache.with_cache("k", 30, AsyncMock(return_value=None)) is None
    client.setex.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_failure_falls_through_to_fetch():
    client = AsyncMock()
    client.get.side_effect = RedisConnectionError("connection refused")
    cache = SnapshotCache(client)
    fn = AsyncMock(return_value={"fresh": True})

    assert await cache.with_cache("k", 30, fn) == {"fresh": True}
    fn.assert_awaited_once()


@pytest.mark.asyncio
async def test_write_failure_still_returns_value():
    client = AsyncMock()
    client.get.return_value = None
    client.setex.side_effect = RedisConnectionError("connection reset")
    cache = SnapshotCache(client)

    assert await cache.with_cache("k", 30, AsyncMock(return_value={"v": 3})) == {"v": 3}


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss():
    client = AsyncMock()
    client.get.return_value = "{not json"
    cache = SnapshotCache(client)

    assert await cache.get_json("k") is None


@pytest.mark.asyncio
async def test_ping_failure_reports_false():
    client = AsyncMock()
    client.ping.side_effect = RedisConnectionError("down")
    assert await SnapshotCache(client).ping() is False
