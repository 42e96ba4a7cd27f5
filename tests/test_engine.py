"""
Integration tests for the DecentralizedExchange facade: token settlement,
atomic failure, concurrency across pools, subscribers and state commitment.
"""

import threading

import pytest

from basedex.config import BaseDexConfig
from basedex.constants import MAX_UINT256, RECENT_TRADES_DEFAULT
from basedex.exceptions import InvalidAccount, InvalidFee, TransferFailed
from basedex.exchange import DecentralizedExchange, EventFlags, PairCreated, Swap
from basedex.tokens import InMemoryTokenLedger, InsufficientAllowanceError, TokenError

TOKEN_A = "0xaaaa000000000000000000000000000000000001"
TOKEN_B = "0xbbbb000000000000000000000000000000000002"
TOKEN_C = "0xcccc000000000000000000000000000000000003"
VAULT = "basedex:vault"
NOW = 1_700_000_000.0
DEADLINE = NOW + 60


def _clock():
    return NOW


def _funded_exchange(users=("alice", "bob"), amount=10**24):
    ledger = InMemoryTokenLedger(spender=VAULT)
    for token in (TOKEN_A, TOKEN_B, TOKEN_C):
        for user in users:
            ledger.credit(token, user, amount)
            ledger.approve(token, user, VAULT, MAX_UINT256)
    dex = DecentralizedExchange(gateway=ledger, vault=VAULT, clock=_clock)
    return dex, ledger


class FailingPayoutGateway:
    """Wraps a ledger and rejects vault payouts of one token."""

    def __init__(self, ledger, blocked_token):
        self.ledger = ledger
        self.blocked_token = blocked_token

    def _guard(self, token, owner):
        if owner == VAULT and token == self.blocked_token:
            raise TokenError("payouts suspended")

    def check_transfer(self, token, owner, to, amount):
        self._guard(token, owner)
        self.ledger.check_transfer(token, owner, to, amount)

    def transfer_from(self, token, owner, to, amount):
        self._guard(token, owner)
        self.ledger.transfer_from(token, owner, to, amount)


class LatePayoutFailureGateway(FailingPayoutGateway):
    """Accepts the blocked payout when checked, rejects it when moved."""

    def check_transfer(self, token, owner, to, amount):
        self.ledger.check_transfer(token, owner, to, amount)


def _exact_approval_exchange(amount=1000):
    ledger = InMemoryTokenLedger(spender=VAULT)
    for token in (TOKEN_A, TOKEN_B):
        ledger.credit(token, "alice", amount)
        ledger.approve(token, "alice", VAULT, amount)
    dex = DecentralizedExchange(gateway=ledger, vault=VAULT, clock=_clock)
    pid = dex.create_pair(TOKEN_A, TOKEN_B)
    dex.add_liquidity(pid, "alice", amount, amount, 0, 0, DEADLINE)
    return dex, ledger, pid


class TestSettlement:

    def test_add_liquidity_pulls_tokens(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**20, 2 * 10**20, 0, 0, DEADLINE)
        assert ledger.balance_of(TOKEN_A, VAULT) == 10**20
        assert ledger.balance_of(TOKEN_B, VAULT) == 2 * 10**20
        assert ledger.balance_of(TOKEN_A, "alice") == 10**24 - 10**20

    def test_swap_moves_both_legs(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**20, 10**20, 0, 0, DEADLINE)
        trade = dex.swap(pid, "bob", TOKEN_A, 10**18, 0, "carol", DEADLINE)
        assert ledger.balance_of(TOKEN_A, "bob") == 10**24 - 10**18
        assert ledger.balance_of(TOKEN_B, "carol") == trade.amount_out
        info = dex.get_pool_info(pid)
        assert ledger.balance_of(TOKEN_A, VAULT) == info.reserve_a
        assert ledger.balance_of(TOKEN_B, VAULT) == info.reserve_b

    def test_remove_liquidity_pays_out(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        _, _, shares = dex.add_liquidity(pid, "alice", 10**20, 10**20, 0, 0, DEADLINE)
        a, b = dex.remove_liquidity(pid, "alice", shares, 0, 0, DEADLINE)
        assert ledger.balance_of(TOKEN_A, "alice") == 10**24 - 10**20 + a
        assert ledger.balance_of(TOKEN_B, VAULT) == 10**20 - b

    def test_missing_allowance_is_transfer_failed(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**20, 10**20, 0, 0, DEADLINE)
        ledger.credit(TOKEN_A, "mallory", 10**18)
        root, n = dex.state_root(), len(dex.events())

        with pytest.raises(TransferFailed) as exc:
            dex.swap(pid, "mallory", TOKEN_A, 10**18, 0, None, DEADLINE)

        assert isinstance(exc.value.__cause__, InsufficientAllowanceError)
        assert dex.state_root() == root
        assert len(dex.events()) == n
        assert dex.get_exchange_stats().total_trades == 0
        assert ledger.balance_of(TOKEN_A, "mallory") == 10**18

    def test_second_leg_failure_refunds_first(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**20, 10**20, 0, 0, DEADLINE)
        ledger.approve(TOKEN_B, "bob", VAULT, 0)
        root = dex.state_root()

        # bob can pay token A but not token B
        with pytest.raises(TransferFailed):
            dex.add_liquidity(pid, "bob", 10**18, 10**18, 0, 0, DEADLINE)

        assert ledger.balance_of(TOKEN_A, "bob") == 10**24
        assert ledger.balance_of(TOKEN_A, VAULT) == 10**20
        assert dex.state_root() == root
        assert dex.get_position(pid, "bob").shares == 0

    def test_payout_failure_refunds_input(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**20, 10**20, 0, 0, DEADLINE)

        dex.swap_engine.gateway = FailingPayoutGateway(ledger, blocked_token=TOKEN_B)

        with pytest.raises(TransferFailed, match="payouts suspended"):
            dex.swap(pid, "bob", TOKEN_A, 10**18, 0, None, DEADLINE)
        assert ledger.balance_of(TOKEN_A, "bob") == 10**24
        assert ledger.balance_of(TOKEN_A, VAULT) == 10**20

    def test_withdrawal_payout_failure_moves_nothing(self):
        dex, ledger, pid = _exact_approval_exchange()
        root = dex.state_root()
        dex.liquidity.gateway = FailingPayoutGateway(ledger, blocked_token=TOKEN_B)

        with pytest.raises(TransferFailed, match="payouts suspended"):
            dex.remove_liquidity(pid, "alice", 500, 0, 0, DEADLINE)

        assert ledger.balance_of(TOKEN_A, "alice") == 0
        assert ledger.balance_of(TOKEN_A, VAULT) == 1000
        assert dex.get_pool_info(pid).reserve_a == 1000
        assert dex.get_position(pid, "alice").shares == 990
        assert dex.state_root() == root

    def test_failed_reversal_is_transfer_failed(self):
        dex, ledger, pid = _exact_approval_exchange()
        dex.liquidity.gateway = LatePayoutFailureGateway(ledger, blocked_token=TOKEN_B)

        # token A reaches alice, token B is refused, alice has no allowance left to return A
        with pytest.raises(TransferFailed, match="Reversal") as exc:
            dex.remove_liquidity(pid, "alice", 500, 0, 0, DEADLINE)

        assert isinstance(exc.value.__cause__, InsufficientAllowanceError)
        assert dex.get_pool_info(pid).reserve_a == 1000
        assert dex.get_position(pid, "alice").shares == 990

    def test_vault_cannot_trade(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)
        root = dex.state_root()

        with pytest.raises(InvalidAccount):
            dex.swap(pid, VAULT, TOKEN_A, 10**5, 0, "mallory", DEADLINE)
        with pytest.raises(InvalidAccount):
            dex.swap(pid, "bob", TOKEN_A, 10**5, 0, VAULT, DEADLINE)

        assert ledger.balance_of(TOKEN_B, "mallory") == 0
        assert ledger.balance_of(TOKEN_A, VAULT) == dex.get_pool_info(pid).reserve_a
        assert dex.state_root() == root

    def test_vault_cannot_provide_liquidity(self):
        dex, ledger = _funded_exchange()
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)

        with pytest.raises(InvalidAccount):
            dex.add_liquidity(pid, VAULT, 10**5, 10**5, 0, 0, DEADLINE)

        assert dex.get_position(pid, VAULT).shares == 0
        assert dex.get_pool_info(pid).reserve_a == ledger.balance_of(TOKEN_A, VAULT)


class TestConcurrency:

    def test_parallel_swaps_across_and_within_pools(self):
        dex = DecentralizedExchange(clock=_clock)
        pools = [
            dex.create_pair(TOKEN_A, TOKEN_B),
            dex.create_pair(TOKEN_B, TOKEN_C),
            dex.create_pair(TOKEN_A, TOKEN_C),
        ]
        for pid in pools:
            dex.add_liquidity(pid, "lp", 10**24, 10**24, 0, 0, DEADLINE)
        errors = []

        def worker(pid, token):
            try:
                for _ in range(100):
                    dex.swap(pid, "trader", token, 10**18, 0, None, DEADLINE)
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = []
        for pid in pools:
            info = dex.get_pool_info(pid)
            threads.append(threading.Thread(target=worker, args=(pid, info.token_a)))
            threads.append(threading.Thread(target=worker, args=(pid, info.token_b)))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert dex.get_exchange_stats().total_trades == 600
        assert len(dex.events(EventFlags.SWAP)) == 600
        for pid in pools:
            assert dex.get_pool_stats(pid).trades == 200
            assert dex.get_pool_info(pid).k >= 10**48

    def test_parallel_deposits_keep_share_invariant(self):
        dex = DecentralizedExchange(clock=_clock)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "seed", 10**20, 10**20, 0, 0, DEADLINE)

        def worker(name):
            for _ in range(50):
                dex.add_liquidity(pid, name, 10**18, 10**18, 0, 0, DEADLINE)
                dex.swap(pid, name, TOKEN_A, 10**16, 0, None, DEADLINE)

        threads = [threading.Thread(target=worker, args=(f"lp{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        pool = dex.registry.pool(pid)
        assert sum(p.shares for p in pool.positions.values()) == pool.total_shares


class TestFacade:

    def test_default_fee(self):
        dex = DecentralizedExchange()
        assert dex.get_pool_info(dex.create_pair(TOKEN_A, TOKEN_B)).fee_bps == 30

    def test_from_config(self):
        cfg = BaseDexConfig()
        cfg.exchange.min_fee_bps = 10
        cfg.exchange.default_fee_bps = 25
        cfg.exchange.minimum_liquidity = 1000
        dex = DecentralizedExchange.from_config(cfg, clock=_clock)
        with pytest.raises(InvalidFee):
            dex.create_pair(TOKEN_A, TOKEN_B, 5)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        assert dex.get_pool_info(pid).fee_bps == 25
        _, _, shares = dex.add_liquidity(pid, "alice", 10**4, 10**4, 0, 0, DEADLINE)
        assert shares == 10**4 - 1000

    def test_pool_liquidity(self):
        dex = DecentralizedExchange(clock=_clock)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 100, 400, 0, 0, DEADLINE)
        liq = dex.get_pool_liquidity(pid)
        assert liq.liquidity_depth == 200
        assert liq.tvl == 500
        assert liq.liquidity_ratio == 25

    def test_pool_liquidity_empty(self):
        dex = DecentralizedExchange(clock=_clock)
        liq = dex.get_pool_liquidity(dex.create_pair(TOKEN_A, TOKEN_B))
        assert (liq.liquidity_depth, liq.tvl, liq.liquidity_ratio) == (0, 0, 0)

    def test_positions_across_pools(self):
        dex = DecentralizedExchange(clock=_clock)
        p1 = dex.create_pair(TOKEN_A, TOKEN_B)
        p2 = dex.create_pair(TOKEN_B, TOKEN_C)
        dex.add_liquidity(p1, "alice", 1000, 1000, 0, 0, DEADLINE)
        dex.add_liquidity(p2, "alice", 4000, 1000, 0, 0, DEADLINE)
        positions = {p.pool_id: p.shares for p in dex.get_positions("alice")}
        assert positions == {p1: 990, p2: 1990}

    def test_position_is_a_copy(self):
        dex = DecentralizedExchange(clock=_clock)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 1000, 1000, 0, 0, DEADLINE)
        dex.get_position(pid, "alice").shares = 0
        assert dex.get_position(pid, "alice").shares == 990

    def test_subscribers(self):
        dex = DecentralizedExchange(clock=_clock)
        seen = []
        dex.subscribe(seen.append, EventFlags.SWAP | EventFlags.PAIR_CREATED)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)
        dex.swap(pid, "bob", TOKEN_A, 1000, 0, None, DEADLINE)
        assert [type(e) for e in seen] == [PairCreated, Swap]

    def test_unsubscribe(self):
        dex = DecentralizedExchange(clock=_clock)
        seen = []
        dex.subscribe(seen.append)
        dex.create_pair(TOKEN_A, TOKEN_B)
        dex.unsubscribe(seen.append)
        dex.create_pair(TOKEN_B, TOKEN_C)
        assert len(seen) == 1
        assert dex.get_stats()["subscribers"] == 0

    def test_event_log_keeps_newest(self):
        dex = DecentralizedExchange(clock=_clock, max_events=3)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)
        for _ in range(4):
            dex.swap(pid, "bob", TOKEN_A, 1000, 0, None, DEADLINE)
        assert [type(e) for e in dex.events()] == [Swap, Swap, Swap]
        assert dex.get_exchange_stats().total_trades == 4

    def test_event_log_length_from_config(self):
        cfg = BaseDexConfig()
        cfg.exchange.max_events = 2
        dex = DecentralizedExchange.from_config(cfg, clock=_clock)
        for token in (TOKEN_B, TOKEN_C):
            dex.create_pair(TOKEN_A, token)
        dex.create_pair(TOKEN_B, TOKEN_C)
        assert [e.token_a for e in dex.events()] == [TOKEN_A, TOKEN_B]

    def test_recent_trades_default_count(self):
        dex = DecentralizedExchange(clock=_clock)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**9, 10**9, 0, 0, DEADLINE)
        for _ in range(RECENT_TRADES_DEFAULT + 5):
            dex.swap(pid, "bob", TOKEN_A, 1000, 0, None, DEADLINE)
        assert len(dex.get_recent_trades()) == RECENT_TRADES_DEFAULT

    def test_failing_subscriber_does_not_undo_swap(self):
        dex = DecentralizedExchange(clock=_clock)

        def broken(event):
            raise RuntimeError("subscriber bug")

        dex.subscribe(broken)
        pid = dex.create_pair(TOKEN_A, TOKEN_B)
        dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)
        trade = dex.swap(pid, "bob", TOKEN_A, 1000, 0, None, DEADLINE)
        assert trade.amount_out > 0
        assert dex.get_exchange_stats().total_trades == 1

    def test_state_root_is_deterministic(self):
        def build():
            dex = DecentralizedExchange(clock=_clock)
            pid = dex.create_pair(TOKEN_A, TOKEN_B)
            dex.add_liquidity(pid, "alice", 10**6, 10**6, 0, 0, DEADLINE)
            dex.swap(pid, "bob", TOKEN_B, 5000, 0, None, DEADLINE)
            return dex

        first, second = build(), build()
        assert first.state_root() == second.state_root()
        assert len(first.state_root()) == 64
        first.swap(first.get_all_pools()[0].id, "bob", TOKEN_A, 5000, 0, None, DEADLINE)
        assert first.state_root() != second.state_root()

    def test_get_stats_summary(self):
        dex = DecentralizedExchange(clock=_clock)
        dex.create_pair(TOKEN_A, TOKEN_B)
        summary = dex.get_stats()
        assert summary["pools"] == 1
        assert summary["events"] == 1
