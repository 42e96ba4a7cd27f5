"""
basedex Decentralized Exchange

Facade that owns every exchange component and exposes the public surface:

  - PairRegistry      pool creation and lookup
  - SwapEngine        constant-product swaps
  - LiquidityManager  share minting and burning
  - StatsAggregator   running counters for report generators
  - EventLog          append-only event record + subscribers

Usage::

    dex = DecentralizedExchange(gateway=ledger)
    pool_id = dex.create_pair("0xaaa", "0xbbb", 30)
    dex.add_liquidity(pool_id, "alice", 10**18, 10**18, 0, 0, deadline)
    trade = dex.swap(pool_id, "bob", "0xaaa", 10**15, 0, None, deadline)

State is held in memory; a host that persists it can compare
state_root() before and after a reload.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import BaseDexConfig
from ..constants import (
    DEFAULT_FEE_BPS,
    EVENT_LOG_MAX_EVENTS,
    MINIMUM_LIQUIDITY,
    RECENT_TRADES_DEFAULT,
)
from ..tokens import Token, TokenGateway, TokenRegistry
from . import swap as pricing
from .events import EventFlags, EventLog, ExchangeEvent, Subscriber
from .liquidity import LiquidityManager
from .pool import FeeTier, LiquidityPosition, PoolSnapshot, PoolType
from .registry import PairRegistry
from .stats import ExchangeStats, StatsAggregator, TokenStats
from .swap import SwapEngine, Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolLiquidity:
    """Depth and balance of one pool, in the common unit."""
    pool_id: str
    liquidity_depth: int
    tvl: int
    liquidity_ratio: int  # percent, 100 = perfectly balanced value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "liquidity_depth": str(self.liquidity_depth),
            "tvl": str(self.tvl),
            "liquidity_ratio": self.liquidity_ratio,
        }


class DecentralizedExchange:
    """The exchange core: one instance per exchange state."""

    def __init__(
        self,
        gateway: Optional[TokenGateway] = None,
        vault: str = "basedex:vault",
        tokens: Optional[TokenRegistry] = None,
        clock: Callable[[], float] = time.time,
        min_fee_bps: Optional[int] = None,
        max_fee_bps: Optional[int] = None,
        default_fee_bps: int = DEFAULT_FEE_BPS,
        minimum_liquidity: int = MINIMUM_LIQUIDITY,
        volume_window_seconds: Optional[int] = None,
        trade_retention_seconds: Optional[int] = None,
        max_events: int = EVENT_LOG_MAX_EVENTS,
    ) -> None:
        self.gateway = gateway
        self.vault = vault
        self.clock = clock
        self.default_fee_bps = default_fee_bps
        self.tokens = tokens if tokens is not None else TokenRegistry()

        self.event_log = EventLog(max_events=max_events)
        registry_kwargs = {}
        if min_fee_bps is not None:
            registry_kwargs["min_fee_bps"] = min_fee_bps
        if max_fee_bps is not None:
            registry_kwargs["max_fee_bps"] = max_fee_bps
        self.registry = PairRegistry(events=self.event_log, clock=clock, **registry_kwargs)

        stats_kwargs = {}
        if volume_window_seconds is not None:
            stats_kwargs["volume_window_seconds"] = volume_window_seconds
        if trade_retention_seconds is not None:
            stats_kwargs["trade_retention_seconds"] = trade_retention_seconds
        self.stats = StatsAggregator(tokens=self.tokens, clock=clock, **stats_kwargs)

        self.swap_engine = SwapEngine(
            self.registry, stats=self.stats, events=self.event_log,
            gateway=gateway, vault=vault, clock=clock,
        )
        self.liquidity = LiquidityManager(
            self.registry, stats=self.stats, events=self.event_log,
            gateway=gateway, vault=vault, minimum_liquidity=minimum_liquidity, clock=clock,
        )

    @classmethod
    def from_config(
        cls,
        config: BaseDexConfig,
        gateway: Optional[TokenGateway] = None,
        clock: Callable[[], float] = time.time,
    ) -> "DecentralizedExchange":
        ex, st = config.exchange, config.stats
        return cls(
            gateway=gateway,
            vault=ex.vault_address,
            tokens=TokenRegistry(common_decimals=st.common_decimals),
            clock=clock,
            min_fee_bps=ex.min_fee_bps,
            max_fee_bps=ex.max_fee_bps,
            default_fee_bps=ex.default_fee_bps,
            minimum_liquidity=ex.minimum_liquidity,
            volume_window_seconds=st.volume_window_seconds,
            trade_retention_seconds=st.trade_retention_seconds,
            max_events=ex.max_events,
        )

    # =====================================================================
    #  Mutations
    # =====================================================================

    def create_pair(
        self,
        token_a: str,
        token_b: str,
        fee_bps: Optional[int] = None,
        pool_type: PoolType = PoolType.CLASSIC,
        fee_tier: FeeTier = FeeTier.STANDARD,
        creator: str = "",
    ) -> str:
        fee = self.default_fee_bps if fee_bps is None else fee_bps
        pool_id = self.registry.create_pair(token_a, token_b, fee, pool_type, fee_tier, creator)
        self.stats.register_pool(self.registry.get_pool(pool_id))
        return pool_id

    def add_liquidity(
        self,
        pool_id: str,
        provider: str,
        amount_a_desired: int,
        amount_b_desired: int,
        amount_a_min: int,
        amount_b_min: int,
        deadline: float,
    ) -> Tuple[int, int, int]:
        return self.liquidity.add_liquidity(
            pool_id, provider, amount_a_desired, amount_b_desired,
            amount_a_min, amount_b_min, deadline,
        )

    def remove_liquidity(
        self,
        pool_id: str,
        provider: str,
        shares: int,
        amount_a_min: int,
        amount_b_min: int,
        deadline: float,
    ) -> Tuple[int, int]:
        return self.liquidity.remove_liquidity(
            pool_id, provider, shares, amount_a_min, amount_b_min, deadline,
        )

    def swap(
        self,
        pool_id: str,
        trader: str,
        token_in: str,
        amount_in: int,
        min_amount_out: int,
        recipient: Optional[str],
        deadline: float,
    ) -> Trade:
        return self.swap_engine.swap(
            pool_id, trader, token_in, amount_in, min_amount_out, recipient, deadline,
        )

    def register_token(self, address: str, decimals: int = 18, symbol: str = "") -> Token:
        token = self.tokens.register(address, decimals, symbol)
        logger.debug("Token %s registered (%d decimals)", address, decimals)
        return token

    def subscribe(self, callback: Subscriber, flags: EventFlags = EventFlags.ALL) -> None:
        self.event_log.subscribe(callback, flags)

    def unsubscribe(self, callback: Subscriber) -> None:
        self.event_log.unsubscribe(callback)

    # =====================================================================
    #  Pricing
    # =====================================================================

    @staticmethod
    def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int,
                       fee_bps: int = DEFAULT_FEE_BPS) -> int:
        return pricing.get_amount_out(amount_in, reserve_in, reserve_out, fee_bps)

    @staticmethod
    def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int,
                      fee_bps: int = DEFAULT_FEE_BPS) -> int:
        return pricing.get_amount_in(amount_out, reserve_in, reserve_out, fee_bps)

    @staticmethod
    def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
        return pricing.quote(amount_a, reserve_a, reserve_b)

    def quote_swap(self, pool_id: str, token_in: str, amount_in: int) -> int:
        return self.swap_engine.quote_swap(pool_id, token_in, amount_in)

    # =====================================================================
    #  Queries
    # =====================================================================

    def get_pool_info(self, pool_id: str) -> PoolSnapshot:
        return self.registry.get_pool(pool_id)

    def get_all_pools(self) -> List[PoolSnapshot]:
        return self.registry.get_all_pools()

    def find_pool(self, token_a: str, token_b: str, fee_tier: FeeTier = FeeTier.STANDARD) -> PoolSnapshot:
        return self.registry.find_pool(token_a, token_b, fee_tier)

    def get_pools_for_pair(self, token_a: str, token_b: str) -> List[PoolSnapshot]:
        return self.registry.get_pools_for_pair(token_a, token_b)

    def get_pool_liquidity(self, pool_id: str) -> PoolLiquidity:
        snap = self.registry.get_pool(pool_id)
        value_a = self.tokens.normalize(snap.token_a, snap.reserve_a)
        value_b = self.tokens.normalize(snap.token_b, snap.reserve_b)
        high = max(value_a, value_b)
        return PoolLiquidity(
            pool_id=pool_id,
            liquidity_depth=math.isqrt(snap.reserve_a * snap.reserve_b),
            tvl=value_a + value_b,
            liquidity_ratio=min(value_a, value_b) * 100 // high if high else 0,
        )

    def get_position(self, pool_id: str, owner: str) -> LiquidityPosition:
        """Copy of `owner`'s position; zero shares if it holds none."""
        pool = self.registry.pool(pool_id)
        with pool.locked():
            position = pool.positions.get(owner)
            if position is None:
                return LiquidityPosition(owner=owner, pool_id=pool_id, shares=0)
            return replace(position)

    def get_positions(self, owner: str) -> List[LiquidityPosition]:
        positions = []
        for pool_id in self.registry.pool_ids():
            position = self.get_position(pool_id, owner)
            if position.shares > 0:
                positions.append(position)
        return positions

    def get_exchange_stats(self) -> ExchangeStats:
        return self.stats.get_exchange_stats()

    def get_pool_stats(self, pool_id: Optional[str] = None):
        return self.stats.get_pool_stats(pool_id)

    def get_volume_24h(self, pool_id: Optional[str] = None) -> int:
        return self.stats.get_volume_24h(pool_id)

    def get_volume(self, window_seconds: float, pool_id: Optional[str] = None) -> int:
        return self.stats.get_volume(window_seconds, pool_id)

    def get_token_stats(self) -> TokenStats:
        return self.stats.get_token_stats()

    def get_recent_trades(self, count: int = RECENT_TRADES_DEFAULT) -> List[Trade]:
        return self.stats.get_recent_trades(count)

    def events(self, kind: EventFlags = EventFlags.ALL) -> List[ExchangeEvent]:
        return self.event_log.events(kind)

    # =====================================================================
    #  State commitment
    # =====================================================================

    def state_root(self) -> str:
        """
        Deterministic hash of every pool's reserves, shares and positions.

        Returns:
            64-char hex string (blake2b-256)
        """
        hasher = hashlib.blake2b(digest_size=32)
        for pool_id in sorted(self.registry.pool_ids()):
            pool = self.registry.pool(pool_id)
            with pool.locked():
                positions = sorted((p.owner, p.shares) for p in pool.positions.values())
                raw = (
                    f"{pool_id}:{pool.token_a}:{pool.token_b}:{pool.fee_bps}:"
                    f"{int(pool.pool_type)}:{int(pool.fee_tier)}:"
                    f"{pool.reserve_a}:{pool.reserve_b}:{pool.total_shares}:{positions}"
                )
            hasher.update(hashlib.blake2b(raw.encode(), digest_size=16).digest())
        return hasher.hexdigest()

    def get_stats(self) -> Dict[str, Any]:
        """Summary counts for logs and the CLI."""
        stats = self.stats.get_exchange_stats()
        return {
            "pools": self.registry.pool_count,
            "tokens": len(self.tokens),
            "events": len(self.event_log),
            "subscribers": self.event_log.subscriber_count,
            "total_trades": stats.total_trades,
            "total_users": stats.total_users,
        }
