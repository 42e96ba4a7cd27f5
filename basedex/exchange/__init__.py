"""
basedex Exchange Core

Constant-product automated market maker:
  - Pair Registry (pool creation, uniqueness per fee tier)
  - Swap Engine (x * y = k pricing with an input-side fee)
  - Liquidity Manager (share minting and burning, locked minimum liquidity)
  - Stats Aggregator (running volume, fees, TVL and user counters)
  - Event Log (PairCreated, Swap, LiquidityAdded, LiquidityRemoved)
"""

from .pool import (
    PoolType,
    FeeTier,
    LiquidityPosition,
    PoolSnapshot,
    Pool,
)
from .events import (
    EventFlags,
    EventLog,
    PairCreated,
    Swap,
    LiquidityAdded,
    LiquidityRemoved,
)
from .registry import PairRegistry, sort_tokens
from .swap import (
    SwapEngine,
    Trade,
    get_amount_in,
    get_amount_out,
    quote,
)
from .liquidity import LiquidityManager
from .stats import (
    ExchangeStats,
    PoolAggregateStats,
    PoolStats,
    StatsAggregator,
    TokenStats,
)
from .engine import DecentralizedExchange, PoolLiquidity

__all__ = [
    # Pool
    "PoolType",
    "FeeTier",
    "LiquidityPosition",
    "PoolSnapshot",
    "Pool",
    # Events
    "EventFlags",
    "EventLog",
    "PairCreated",
    "Swap",
    "LiquidityAdded",
    "LiquidityRemoved",
    # Registry
    "PairRegistry",
    "sort_tokens",
    # Swap
    "SwapEngine",
    "Trade",
    "get_amount_in",
    "get_amount_out",
    "quote",
    # Liquidity
    "LiquidityManager",
    # Stats
    "ExchangeStats",
    "PoolAggregateStats",
    "PoolStats",
    "StatsAggregator",
    "TokenStats",
    # Facade
    "DecentralizedExchange",
    "PoolLiquidity",
]
