"""Per-client token metadata cache — tick size, neg-risk flag and fee rate.

Entries are created on first access and never evicted for the life of the
owning client. Concurrent misses for the same token share one fetch.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .models import TickSize

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable]


class TokenMetadataCache:
    """Lazily populated, single-flight cache keyed by token id.

    Args:
        fetch_tick_size: ``async (token_id) -> TickSize``.
        fetch_neg_risk: ``async (token_id) -> bool``.
        fetch_fee_rate: ``async (token_id) -> int`` (basis points).
    """

    TICK_SIZE = "tick_size"
    NEG_RISK = "neg_risk"
    FEE_RATE = "fee_rate"

    def __init__(self, fetch_tick_size: Fetcher, fetch_neg_risk: Fetcher, fetch_fee_rate: Fetcher):
        self._fetchers = {
            self.TICK_SIZE: fetch_tick_size,
            self.NEG_RISK: fetch_neg_risk,
            self.FEE_RATE: fetch_fee_rate,
        }
        self._values: dict[str, dict[str, object]] = {kind: {} for kind in self._fetchers}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def __len__(self) -> int:
        return sum(len(store) for store in self._values.values())

    async def _get(self, kind: str, token_id: str):
        store = self._values[kind]
        if token_id in store:
            return store[token_id]

        lock = self._locks.setdefault((kind, token_id), asyncio.Lock())
        async with lock:
            # Another waiter may have populated it while we queued
            if token_id in store:
                return store[token_id]
            value = await self._fetchers[kind](token_id)
            store[token_id] = value
            logger.debug("Cached %s=%s for token %s", kind, value, token_id[:16])
            return value

    async def get_tick_size(self, token_id: str) -> TickSize:
        return await self._get(self.TICK_SIZE, token_id)

    async def get_neg_risk(self, token_id: str) -> bool:
        return await self._get(self.NEG_RISK, token_id)

    async def get_fee_rate_bps(self, token_id: str) -> int:
        return await self._get(self.FEE_RATE, token_id)

    def prime(
        self,
        token_id: str,
        tick_size: TickSize | str | None = None,
        neg_risk: bool | None = None,
        fee_rate_bps: int | None = None,
    ) -> None:
        """Seed known values (e.g. from an order book response) without fetching."""
        if tick_size is not None:
            self._values[self.TICK_SIZE].setdefault(token_id, TickSize.parse(tick_size))
        if neg_risk is not None:
            self._values[self.NEG_RISK].setdefault(token_id, bool(neg_risk))
        if fee_rate_bps is not None:
            self._values[self.FEE_RATE].setdefault(token_id, int(fee_rate_bps))

    def clear(self) -> None:
        for store in self._values.values():
            store.clear()
        self._locks.clear()
