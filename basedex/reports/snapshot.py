"""
Metrics snapshot for report generation.

One read-only pass over the exchange query surface. Every report rule set
is evaluated against the same snapshot, so alerts and recommendations in a
report always refer to one consistent set of numbers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List


def collect_snapshot(exchange) -> Dict[str, Any]:
    """
    Gather exchange, pool and token metrics.

    Amounts stay ints (common 18-decimal unit); averages are floats.
    """
    exchange_stats = exchange.get_exchange_stats()
    pool_stats = exchange.get_pool_stats()
    token_stats = exchange.get_token_stats()

    pools: List[Dict[str, Any]] = []
    for info in exchange.get_all_pools():
        liquidity = exchange.get_pool_liquidity(info.id)
        stats = exchange.get_pool_stats(info.id)
        pools.append({
            "pool_id": info.id,
            "info": {
                "token_a": info.token_a,
                "token_b": info.token_b,
                "reserve_a": info.reserve_a,
                "reserve_b": info.reserve_b,
                "fee_bps": info.fee_bps,
                "pool_type": info.pool_type.name,
                "fee_tier": info.fee_tier.name,
                "total_shares": info.total_shares,
                "active": info.is_active,
            },
            "liquidity": {
                "liquidity_depth": liquidity.liquidity_depth,
                "tvl": liquidity.tvl,
                "liquidity_ratio": liquidity.liquidity_ratio,
            },
            "stats": {
                "volume": stats.volume,
                "trades": stats.trades,
                "fees": stats.fees,
                "providers": stats.providers,
            },
        })

    count = len(pools)
    total_tvl = sum(p["liquidity"]["tvl"] for p in pools)
    averages = {
        "avg_trade_size": (
            exchange_stats.total_volume / exchange_stats.total_trades
            if exchange_stats.total_trades else 0.0
        ),
        "avg_liquidity_ratio": (
            sum(p["liquidity"]["liquidity_ratio"] for p in pools) / count if count else 0.0
        ),
        "avg_pool_tvl": total_tvl / count if count else 0.0,
        "active_pool_percent": (
            pool_stats.active_pools * 100 / pool_stats.total_pools
            if pool_stats.total_pools else 0.0
        ),
    }

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "exchange": exchange_stats.to_dict(),
        "pools": pool_stats.to_dict(),
        "volume_24h": exchange.get_volume_24h(),
        "tokens": {
            "total_tokens": token_stats.total_tokens,
            "active_tokens": token_stats.active_tokens,
        },
        "total_tvl": total_tvl,
        "averages": averages,
        "pool_details": pools,
    }
