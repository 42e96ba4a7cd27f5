"""
basedex Stats Aggregator

Running counters fed synchronously by the swap engine and the liquidity
manager after each committed mutation. Amounts are normalised to the
token registry's common unit (18 decimals by default) before they are
summed, so pools with different token precisions add up.

Windowed queries (24h volume) sum a time-ordered trade log; entries older
than the retention period are pruned from the log, never from the
cumulative counters.
"""

from __future__ import annotations

import bisect
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from ..constants import (
    RECENT_TRADES_DEFAULT,
    TRADE_RETENTION_SECONDS,
    VOLUME_WINDOW_SECONDS,
)
from ..exceptions import PoolNotFound
from ..tokens import TokenRegistry
from .events import LiquidityAdded, LiquidityRemoved
from .pool import PoolSnapshot
from .swap import Trade


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExchangeStats:
    total_volume: int
    total_trades: int
    total_liquidity: int
    total_fees_collected: int
    total_users: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PoolAggregateStats:
    total_pools: int
    active_pools: int
    total_liquidity: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PoolStats:
    pool_id: str
    volume: int
    trades: int
    fees: int
    providers: int
    tvl: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TokenStats:
    total_tokens: int
    active_tokens: int
    volume_by_token: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _PoolCounters:
    token_a: str
    token_b: str
    volume: int = 0
    trades: int = 0
    fees: int = 0
    providers: int = 0
    tvl: int = 0
    active: bool = False


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class StatsAggregator:
    """
    Exchange-wide, per-pool and per-token counters.

    Callers hold the pool lock when recording; the aggregator lock is
    always taken second.
    """

    def __init__(
        self,
        tokens: Optional[TokenRegistry] = None,
        clock: Callable[[], float] = time.time,
        volume_window_seconds: int = VOLUME_WINDOW_SECONDS,
        trade_retention_seconds: int = TRADE_RETENTION_SECONDS,
    ) -> None:
        self.tokens = tokens if tokens is not None else TokenRegistry()
        self.clock = clock
        self.volume_window_seconds = volume_window_seconds
        self.trade_retention_seconds = max(trade_retention_seconds, volume_window_seconds)

        self._total_volume = 0
        self._total_trades = 0
        self._total_fees = 0
        self._users: Set[str] = set()
        self._pools: Dict[str, _PoolCounters] = {}
        self._token_volume: Dict[str, int] = {}

        # time-ordered trade log: parallel lists keyed by timestamp
        self._trade_times: List[float] = []
        self._trades: List[Trade] = []
        self._trade_volumes: List[int] = []

        self._lock = threading.Lock()

    # -- Recording ----------------------------------------------------------

    def register_pool(self, snapshot: PoolSnapshot) -> None:
        with self._lock:
            self._counters(snapshot)

    def record_trade(self, trade: Trade, snapshot: PoolSnapshot) -> None:
        volume = self.tokens.normalize(trade.token_in, trade.amount_in)
        fees = self.tokens.normalize(trade.token_in, trade.fee_paid)
        with self._lock:
            counters = self._counters(snapshot)
            counters.volume += volume
            counters.trades += 1
            counters.fees += fees
            self._refresh(counters, snapshot)

            self._total_volume += volume
            self._total_trades += 1
            self._total_fees += fees
            self._token_volume[trade.token_in] = self._token_volume.get(trade.token_in, 0) + volume
            self._users.add(trade.trader)

            i = bisect.bisect_right(self._trade_times, trade.timestamp)
            self._trade_times.insert(i, trade.timestamp)
            self._trades.insert(i, trade)
            self._trade_volumes.insert(i, volume)
            self._prune(self.clock())

    def record_liquidity(self, event, snapshot: PoolSnapshot) -> None:
        """Refresh TVL and providers after a LiquidityAdded / LiquidityRemoved."""
        if not isinstance(event, (LiquidityAdded, LiquidityRemoved)):
            raise TypeError(f"Not a liquidity event: {type(event).__name__}")
        with self._lock:
            self._refresh(self._counters(snapshot), snapshot)
            self._users.add(event.provider)

    def _counters(self, snapshot: PoolSnapshot) -> _PoolCounters:
        counters = self._pools.get(snapshot.id)
        if counters is None:
            counters = _PoolCounters(token_a=snapshot.token_a, token_b=snapshot.token_b)
            self._pools[snapshot.id] = counters
            self._refresh(counters, snapshot)
        return counters

    def _refresh(self, counters: _PoolCounters, snapshot: PoolSnapshot) -> None:
        counters.tvl = self._tvl(snapshot)
        counters.providers = snapshot.provider_count
        counters.active = snapshot.is_active

    def _tvl(self, snapshot: PoolSnapshot) -> int:
        return (self.tokens.normalize(snapshot.token_a, snapshot.reserve_a)
                + self.tokens.normalize(snapshot.token_b, snapshot.reserve_b))

    def _prune(self, now: float) -> None:
        cutoff = bisect.bisect_left(self._trade_times, now - self.trade_retention_seconds)
        if cutoff:
            del self._trade_times[:cutoff]
            del self._trades[:cutoff]
            del self._trade_volumes[:cutoff]

    def prune(self) -> None:
        with self._lock:
            self._prune(self.clock())

    # -- Queries ------------------------------------------------------------

    def get_exchange_stats(self) -> ExchangeStats:
        with self._lock:
            return ExchangeStats(
                total_volume=self._total_volume,
                total_trades=self._total_trades,
                total_liquidity=sum(c.tvl for c in self._pools.values()),
                total_fees_collected=self._total_fees,
                total_users=len(self._users),
            )

    def get_pool_stats(self, pool_id: Optional[str] = None):
        """
        Aggregate pool totals, or one pool's counters when `pool_id` is given.

        Returns:
            PoolAggregateStats, or PoolStats for a single pool

        Raises:
            PoolNotFound: unknown pool id
        """
        with self._lock:
            if pool_id is None:
                return PoolAggregateStats(
                    total_pools=len(self._pools),
                    active_pools=sum(1 for c in self._pools.values() if c.active),
                    total_liquidity=sum(c.tvl for c in self._pools.values()),
                )
            c = self._require(pool_id)
            return PoolStats(
                pool_id=pool_id,
                volume=c.volume,
                trades=c.trades,
                fees=c.fees,
                providers=c.providers,
                tvl=c.tvl,
            )

    def get_volume(self, window_seconds: float, pool_id: Optional[str] = None) -> int:
        """Normalised input volume of trades in (now - window_seconds, now]."""
        now = self.clock()
        with self._lock:
            if pool_id is not None:
                self._require(pool_id)
            start = bisect.bisect_right(self._trade_times, now - window_seconds)
            end = bisect.bisect_right(self._trade_times, now)
            if pool_id is None:
                return sum(self._trade_volumes[start:end])
            return sum(
                v for t, v in zip(self._trades[start:end], self._trade_volumes[start:end])
                if t.pool_id == pool_id
            )

    def get_volume_24h(self, pool_id: Optional[str] = None) -> int:
        return self.get_volume(self.volume_window_seconds, pool_id)

    def get_token_stats(self) -> TokenStats:
        with self._lock:
            tokens = {t.address for t in self.tokens.all()}
            active = set()
            for c in self._pools.values():
                tokens.update((c.token_a, c.token_b))
                if c.active:
                    active.update((c.token_a, c.token_b))
            return TokenStats(
                total_tokens=len(tokens),
                active_tokens=len(active),
                volume_by_token=dict(self._token_volume),
            )

    def get_recent_trades(self, count: int = RECENT_TRADES_DEFAULT) -> List[Trade]:
        """Newest first."""
        with self._lock:
            return list(reversed(self._trades[-count:])) if count > 0 else []

    def _require(self, pool_id: str) -> _PoolCounters:
        counters = self._pools.get(pool_id)
        if counters is None:
            raise PoolNotFound(f"No stats for pool {pool_id}")
        return counters
