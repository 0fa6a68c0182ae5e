"""Tests for polyclob.cache — lazy, single-flight token metadata cache."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from polyclob.cache import TokenMetadataCache
from polyclob.errors import TransportError, UnknownToken
from polyclob.models import TickSize


def _make_cache(tick=None, neg_risk=None, fee=None):
    return TokenMetadataCache(
        tick or AsyncMock(return_value=TickSize.HUNDREDTH),
        neg_risk or AsyncMock(return_value=False),
        fee or AsyncMock(return_value=0),
    )


class TestTokenMetadataCache:
    @pytest.mark.asyncio
    async def test_fetches_once(self):
        fetch = AsyncMock(return_value=TickSize.THOUSANDTH)
        cache = _make_cache(tick=fetch)

        assert await cache.get_tick_size("tok") is TickSize.THOUSANDTH
        assert await cache.get_tick_size("tok") is TickSize.THOUSANDTH
        fetch.assert_awaited_once_with("tok")

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        calls = []

        async def slow_fetch(token_id):
            calls.append(token_id)
            await asyncio.sleep(0.01)
            return True

        cache = _make_cache(neg_risk=slow_fetch)
        results = await asyncio.gather(*(cache.get_neg_risk("tok") for _ in range(10)))

        assert results == [True] * 10
        assert calls == ["tok"]

    @pytest.mark.asyncio
    async def test_tokens_are_independent(self):
        fetch = AsyncMock(side_effect=[100, 0])
        cache = _make_cache(fee=fetch)

        assert await cache.get_fee_rate_bps("a") == 100
        assert await cache.get_fee_rate_bps("b") == 0
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_nothing_stored_on_failure(self):
        fetch = AsyncMock(side_effect=[TransportError("boom", status_code=503), TickSize.TENTH])
        cache = _make_cache(tick=fetch)

        with pytest.raises(TransportError):
            await cache.get_tick_size("tok")
        assert len(cache) == 0

        assert await cache.get_tick_size("tok") is TickSize.TENTH
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_nothing_stored_on_cancellation(self):
        fetch = AsyncMock(side_effect=[asyncio.CancelledError(), TickSize.TENTH])
        cache = _make_cache(tick=fetch)

        with pytest.raises(asyncio.CancelledError):
            await cache.get_tick_size("tok")
        assert len(cache) == 0

        assert await cache.get_tick_size("tok") is TickSize.TENTH
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_releases_lock(self):
        started = asyncio.Event()
        calls = []

        async def hanging_then_ok(token_id):
            calls.append(token_id)
            if len(calls) == 1:
                started.set()
                await asyncio.sleep(3600)
            return False

        cache = _make_cache(neg_risk=hanging_then_ok)
        task = asyncio.create_task(cache.get_neg_risk("tok"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(cache) == 0

        assert await asyncio.wait_for(cache.get_neg_risk("tok"), timeout=1) is False
        assert calls == ["tok", "tok"]

    @pytest.mark.asyncio
    async def test_unknown_token_propagates(self):
        cache = _make_cache(tick=AsyncMock(side_effect=UnknownToken("nope")))
        with pytest.raises(UnknownToken):
            await cache.get_tick_size("missing")

    @pytest.mark.asyncio
    async def test_prime_skips_fetch(self):
        fetch = AsyncMock(return_value=TickSize.HUNDREDTH)
        cache = _make_cache(tick=fetch)
        cache.prime("tok", tick_size="0.001", neg_risk=True, fee_rate_bps=25)

        assert await cache.get_tick_size("tok") is TickSize.THOUSANDTH
        assert await cache.get_neg_risk("tok") is True
        assert await cache.get_fee_rate_bps("tok") == 25
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prime_does_not_overwrite(self):
        cache = _make_cache()
        await cache.get_tick_size("tok")
        cache.prime("tok", tick_size="0.1")
        assert await cache.get_tick_size("tok") is TickSize.HUNDREDTH

    @pytest.mark.asyncio
    async def test_clear(self):
        fetch = AsyncMock(return_value=TickSize.HUNDREDTH)
        cache = _make_cache(tick=fetch)
        await cache.get_tick_size("tok")
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0
        await cache.get_tick_size("tok")
        assert fetch.await_count == 2
