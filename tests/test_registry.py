"""
Tests for the pair registry: validation, uniqueness per fee tier, lookup.
"""

import pytest

from basedex.exceptions import DuplicatePool, InvalidFee, InvalidPair, PoolNotFound
from basedex.exchange import EventFlags, EventLog, FeeTier, PairCreated, PairRegistry, PoolType

TOKEN_A = "0xaaaa000000000000000000000000000000000001"
TOKEN_B = "0xbbbb000000000000000000000000000000000002"
TOKEN_C = "0xcccc000000000000000000000000000000000003"


class TestCreatePair:

    def test_create_pair(self):
        reg = PairRegistry()
        pool_id = reg.create_pair(TOKEN_A, TOKEN_B, 30)
        snap = reg.get_pool(pool_id)
        assert len(pool_id) == 16
        assert snap.reserve_a == 0 and snap.reserve_b == 0
        assert snap.total_shares == 0
        assert snap.pool_type == PoolType.CLASSIC
        assert snap.fee_tier == FeeTier.STANDARD

    def test_tokens_are_sorted(self):
        reg = PairRegistry()
        snap = reg.get_pool(reg.create_pair(TOKEN_B, TOKEN_A, 30))
        assert (snap.token_a, snap.token_b) == (TOKEN_A, TOKEN_B)

    def test_identical_tokens(self):
        with pytest.raises(InvalidPair, match="itself"):
            PairRegistry().create_pair(TOKEN_A, TOKEN_A, 30)

    def test_empty_token(self):
        with pytest.raises(InvalidPair):
            PairRegistry().create_pair("", TOKEN_B, 30)

    @pytest.mark.parametrize("fee", [0, 1001, 10_000])
    def test_fee_out_of_range(self, fee):
        with pytest.raises(InvalidFee):
            PairRegistry().create_pair(TOKEN_A, TOKEN_B, fee)

    def test_fee_bounds_inclusive(self):
        reg = PairRegistry()
        reg.create_pair(TOKEN_A, TOKEN_B, 1)
        reg.create_pair(TOKEN_A, TOKEN_C, 1000)
        assert reg.pool_count == 2

    def test_custom_fee_bounds(self):
        reg = PairRegistry(min_fee_bps=5, max_fee_bps=50)
        with pytest.raises(InvalidFee):
            reg.create_pair(TOKEN_A, TOKEN_B, 1)

    def test_duplicate_in_either_order(self):
        reg = PairRegistry()
        reg.create_pair(TOKEN_A, TOKEN_B, 30)
        with pytest.raises(DuplicatePool):
            reg.create_pair(TOKEN_B, TOKEN_A, 50)

    def test_same_pair_other_tier(self):
        reg = PairRegistry()
        p1 = reg.create_pair(TOKEN_A, TOKEN_B, 30, fee_tier=FeeTier.STANDARD)
        p2 = reg.create_pair(TOKEN_A, TOKEN_B, 5, fee_tier=FeeTier.LOW)
        assert p1 != p2
        assert len(reg.get_pools_for_pair(TOKEN_B, TOKEN_A)) == 2

    def test_failed_create_leaves_registry_unchanged(self):
        events = EventLog()
        reg = PairRegistry(events=events)
        with pytest.raises(InvalidFee):
            reg.create_pair(TOKEN_A, TOKEN_B, 5000)
        assert reg.pool_count == 0
        assert len(events) == 0

    def test_pair_created_event(self):
        events = EventLog()
        reg = PairRegistry(events=events)
        pool_id = reg.create_pair(TOKEN_A, TOKEN_B, 30, PoolType.STABLE, FeeTier.MEDIUM, creator="alice")
        (ev,) = events.events(EventFlags.PAIR_CREATED)
        assert isinstance(ev, PairCreated)
        assert ev.pool_id == pool_id
        assert (ev.token_a, ev.token_b, ev.fee_bps) == (TOKEN_A, TOKEN_B, 30)
        assert ev.pool_type == int(PoolType.STABLE)
        assert ev.fee_tier == int(FeeTier.MEDIUM)
        assert ev.creator == "alice"

    def test_int_enums_accepted(self):
        reg = PairRegistry()
        snap = reg.get_pool(reg.create_pair(TOKEN_A, TOKEN_B, 30, 0, 0))
        assert snap.pool_type is PoolType.CLASSIC

    @pytest.mark.parametrize("pool_type, fee_tier", [(9, 0), (0, 9)])
    def test_unknown_enum_values(self, pool_type, fee_tier):
        reg = PairRegistry()
        with pytest.raises(InvalidPair, match="pool type or fee tier"):
            reg.create_pair(TOKEN_A, TOKEN_B, 30, pool_type, fee_tier)
        assert reg.pool_count == 0


class TestLookup:

    def test_unknown_pool(self):
        with pytest.raises(PoolNotFound):
            PairRegistry().get_pool("0000000000000000")

    def test_find_pool(self):
        reg = PairRegistry()
        pool_id = reg.create_pair(TOKEN_A, TOKEN_B, 30)
        assert reg.find_pool(TOKEN_B, TOKEN_A).id == pool_id

    def test_find_pool_wrong_tier(self):
        reg = PairRegistry()
        reg.create_pair(TOKEN_A, TOKEN_B, 30)
        with pytest.raises(PoolNotFound):
            reg.find_pool(TOKEN_A, TOKEN_B, FeeTier.HIGH)

    def test_find_pool_unknown_tier_value(self):
        reg = PairRegistry()
        reg.create_pair(TOKEN_A, TOKEN_B, 30)
        with pytest.raises(PoolNotFound):
            reg.find_pool(TOKEN_A, TOKEN_B, 42)

    def test_get_all_pools(self):
        reg = PairRegistry()
        ids = {reg.create_pair(TOKEN_A, TOKEN_B, 30), reg.create_pair(TOKEN_B, TOKEN_C, 30)}
        assert {p.id for p in reg.get_all_pools()} == ids
        assert all(pid in reg for pid in ids)

    def test_snapshot_is_immutable(self):
        reg = PairRegistry()
        snap = reg.get_pool(reg.create_pair(TOKEN_A, TOKEN_B, 30))
        with pytest.raises(AttributeError):
            snap.reserve_a = 5
