"""
Tests for the stats aggregator: cumulative counters, decimal normalisation,
windowed volume and trade log retention.
"""

import pytest

from basedex.exceptions import PoolNotFound, SlippageExceeded
from basedex.exchange import (
    DecentralizedExchange,
    PoolAggregateStats,
    PoolStats,
)

TOKEN_A = "0xaaaa000000000000000000000000000000000001"
TOKEN_B = "0xbbbb000000000000000000000000000000000002"
TOKEN_C = "0xcccc000000000000000000000000000000000003"
NOW = 1_700_000_000.0
DAY = 86_400


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _make_exchange(**kwargs):
    clock = FakeClock()
    dex = DecentralizedExchange(clock=clock, **kwargs)
    pool_id = dex.create_pair(TOKEN_A, TOKEN_B, 30)
    dex.add_liquidity(pool_id, "lp", 100_000, 50_000, 0, 0, clock() + 60)
    return dex, pool_id, clock


def _swap(dex, pool_id, clock, trader="bob", token=TOKEN_A, amount=1000):
    return dex.swap(pool_id, trader, token, amount, 0, None, clock() + 60)


class TestExchangeStats:

    def test_initial_counters(self):
        dex = DecentralizedExchange(clock=FakeClock())
        stats = dex.get_exchange_stats()
        assert stats.to_dict() == {
            "total_volume": 0,
            "total_trades": 0,
            "total_liquidity": 0,
            "total_fees_collected": 0,
            "total_users": 0,
        }

    def test_trade_updates_counters(self):
        dex, pid, clock = _make_exchange()
        _swap(dex, pid, clock)
        stats = dex.get_exchange_stats()
        assert stats.total_volume == 1000
        assert stats.total_trades == 1
        assert stats.total_fees_collected == 3
        assert stats.total_users == 2  # lp + bob
        assert stats.total_liquidity == 101_000 + 49_507

    def test_users_are_distinct(self):
        dex, pid, clock = _make_exchange()
        for _ in range(3):
            _swap(dex, pid, clock, trader="bob")
        _swap(dex, pid, clock, trader="lp")
        assert dex.get_exchange_stats().total_users == 2

    def test_amounts_normalised_to_18_decimals(self):
        dex, pid, clock = _make_exchange()
        dex.register_token(TOKEN_A, decimals=6, symbol="USDC")
        _swap(dex, pid, clock, amount=1000)
        assert dex.get_exchange_stats().total_volume == 1000 * 10**12

    def test_failed_swap_records_nothing(self):
        dex, pid, clock = _make_exchange()
        with pytest.raises(SlippageExceeded):
            dex.swap(pid, "bob", TOKEN_A, 1000, 10_000, None, clock() + 60)
        stats = dex.get_exchange_stats()
        assert stats.total_trades == 0
        assert stats.total_users == 1


class TestPoolStats:

    def test_aggregate(self):
        dex, pid, _ = _make_exchange()
        dex.create_pair(TOKEN_B, TOKEN_C, 30)
        agg = dex.get_pool_stats()
        assert isinstance(agg, PoolAggregateStats)
        assert (agg.total_pools, agg.active_pools) == (2, 1)
        assert agg.total_liquidity == 150_000

    def test_single_pool(self):
        dex, pid, clock = _make_exchange()
        _swap(dex, pid, clock)
        _swap(dex, pid, clock, token=TOKEN_B, amount=2000)
        stats = dex.get_pool_stats(pid)
        assert isinstance(stats, PoolStats)
        assert stats.trades == 2
        assert stats.volume == 3000
        assert stats.fees == 3 + 6
        assert stats.providers == 1
        info = dex.get_pool_info(pid)
        assert stats.tvl == info.reserve_a + info.reserve_b

    def test_unknown_pool(self):
        dex, _, _ = _make_exchange()
        with pytest.raises(PoolNotFound):
            dex.get_pool_stats("0123456789abcdef")

    def test_tvl_follows_withdrawal(self):
        dex, pid, clock = _make_exchange()
        shares = dex.get_position(pid, "lp").shares
        dex.remove_liquidity(pid, "lp", shares, 0, 0, clock() + 60)
        info = dex.get_pool_info(pid)
        assert dex.get_pool_stats(pid).tvl == info.reserve_a + info.reserve_b


class TestVolumeWindow:

    def test_volume_24h(self):
        dex, pid, clock = _make_exchange()
        _swap(dex, pid, clock)
        clock.now += 3600
        _swap(dex, pid, clock, amount=2000)
        assert dex.get_volume_24h() == 3000
        assert dex.get_volume_24h(pid) == 3000

    def test_old_trades_leave_window_but_stay_in_totals(self):
        dex, pid, clock = _make_exchange()
        _swap(dex, pid, clock)
        clock.now += DAY + 1
        _swap(dex, pid, clock, amount=2000)
        assert dex.get_volume_24h() == 2000
        assert dex.get_exchange_stats().total_volume == 3000

    def test_custom_window(self):
        dex, pid, clock = _make_exchange()
        _swap(dex, pid, clock)
        clock.now += 120
        assert dex.get_volume(60) == 0
        assert dex.get_volume(300) == 1000

    def test_per_pool_window(self):
        dex, pid, clock = _make_exchange()
        other = dex.create_pair(TOKEN_B, TOKEN_C, 30)
        dex.add_liquidity(other, "lp", 10**6, 10**6, 0, 0, clock() + 60)
        _swap(dex, pid, clock, amount=1000)
        _swap(dex, other, clock, token=TOKEN_C, amount=5000)
        assert dex.get_volume_24h(pid) == 1000
        assert dex.get_volume_24h(other) == 5000
        assert dex.get_volume_24h() == 6000

    def test_unknown_pool(self):
        dex, _, _ = _make_exchange()
        with pytest.raises(PoolNotFound):
            dex.get_volume_24h("0123456789abcdef")


class TestTokenStatsAndTrades:

    def test_token_stats(self):
        dex, pid, clock = _make_exchange()
        dex.create_pair(TOKEN_B, TOKEN_C, 30)
        _swap(dex, pid, clock)
        tokens = dex.get_token_stats()
        assert tokens.total_tokens == 3
        assert tokens.active_tokens == 2
        assert tokens.volume_by_token == {TOKEN_A: 1000}

    def test_registered_tokens_count(self):
        dex = DecentralizedExchange(clock=FakeClock())
        dex.register_token(TOKEN_C, 8)
        assert dex.get_token_stats().total_tokens == 1

    def test_recent_trades_newest_first(self):
        dex, pid, clock = _make_exchange()
        for amount in (1000, 2000, 3000):
            _swap(dex, pid, clock, amount=amount)
            clock.now += 1
        recent = dex.get_recent_trades(2)
        assert [t.amount_in for t in recent] == [3000, 2000]

    def test_retention_prunes_log_only(self):
        clock = FakeClock()
        dex = DecentralizedExchange(clock=clock, volume_window_seconds=10, trade_retention_seconds=10)
        stats = dex.stats
        pid = dex.create_pair(TOKEN_A, TOKEN_B, 30)
        dex.add_liquidity(pid, "lp", 100_000, 50_000, 0, 0, clock() + 60)
        _swap(dex, pid, clock)
        clock.now += 20
        stats.prune()
        assert stats.get_recent_trades() == []
        assert stats.get_exchange_stats().total_trades == 1
