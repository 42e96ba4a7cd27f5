"""
basedex Swap Engine

Constant-product pricing with an input-side fee:

    amount_in_with_fee = amount_in * (10000 - fee_bps) // 10000
    amount_out = reserve_out * amount_in_with_fee // (reserve_in + amount_in_with_fee)

The fee stays in the pool, so reserve_in * reserve_out never decreases
across a swap.

Security features:
  - Slippage protection (min_amount_out on every swap)
  - Deadline enforcement, checked once at operation start
  - Per-pool lock around quote + settle + commit
  - Checked uint256 arithmetic
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..constants import BPS_DENOMINATOR, DEFAULT_FEE_BPS
from ..exceptions import (
    Expired,
    InsufficientLiquidity,
    InvalidAccount,
    InvalidFee,
    InvalidPair,
    SlippageExceeded,
)
from . import uint
from .events import EventLog, Swap
from .registry import PairRegistry
from .settlement import Settlement

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

def _check_fee(fee_bps: int) -> None:
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise InvalidFee(f"fee_bps must be in [0, {BPS_DENOMINATOR}) (got {fee_bps})")


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """
    Output for an exact input.

    Guarantees 0 <= amount_out < reserve_out; amount_in == 0 gives 0.

    Raises:
        InsufficientLiquidity: either reserve is zero
        InvalidAmount: negative input or reserves
    """
    uint.require_amount(amount_in, "amount_in")
    uint.require_amount(reserve_in, "reserve_in")
    uint.require_amount(reserve_out, "reserve_out")
    _check_fee(fee_bps)
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("Pool has no liquidity")

    amount_in_with_fee = uint.mul_div(amount_in, BPS_DENOMINATOR - fee_bps, BPS_DENOMINATOR)
    numerator = uint.mul(reserve_out, amount_in_with_fee)
    denominator = uint.add(reserve_in, amount_in_with_fee)
    return numerator // denominator


def get_amount_in(amount_out: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS) -> int:
    """
    Smallest input whose get_amount_out is at least `amount_out`.

    Raises:
        InsufficientLiquidity: either reserve is zero, or amount_out >= reserve_out
    """
    uint.require_amount(amount_out, "amount_out")
    uint.require_amount(reserve_in, "reserve_in")
    uint.require_amount(reserve_out, "reserve_out")
    _check_fee(fee_bps)
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("Pool has no liquidity")
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(f"Requested {amount_out} but reserve is {reserve_out}")
    if amount_out == 0:
        return 0

    # ceiling divisions: smallest net input, then smallest gross input
    net_in = -(-uint.mul(reserve_in, amount_out) // (reserve_out - amount_out))
    keep = BPS_DENOMINATOR - fee_bps
    return -(-uint.mul(net_in, BPS_DENOMINATOR) // keep)


def quote(amount_a: int, reserve_a: int, reserve_b: int) -> int:
    """Amount of B worth `amount_a` of A at the current reserve ratio."""
    uint.require_amount(amount_a, "amount_a")
    if reserve_a == 0 or reserve_b == 0:
        raise InsufficientLiquidity("Pool has no liquidity")
    return uint.mul_div(amount_a, reserve_b, reserve_a)


# ---------------------------------------------------------------------------
# Trade record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Trade:
    """One executed swap. Append-only."""
    pool_id: str
    trader: str
    recipient: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee_paid: int
    timestamp: float = field(default_factory=time.time)


# ---------------------------------------------------------------------------
# Swap engine
# ---------------------------------------------------------------------------

class SwapEngine:
    """Prices and executes exact-input swaps against one pool at a time."""

    def __init__(
        self,
        registry: PairRegistry,
        stats=None,
        events: Optional[EventLog] = None,
        gateway=None,
        vault: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.stats = stats
        self.events = events if events is not None else registry.events
        self.gateway = gateway
        self.vault = vault
        self.clock = clock

    def quote_swap(self, pool_id: str, token_in: str, amount_in: int) -> int:
        """Read-only: output the pool would pay right now."""
        snap = self.registry.get_pool(pool_id)
        if token_in == snap.token_a:
            reserve_in, reserve_out = snap.reserve_a, snap.reserve_b
        elif token_in == snap.token_b:
            reserve_in, reserve_out = snap.reserve_b, snap.reserve_a
        else:
            raise InvalidPair(f"Token {token_in} is not in pool {pool_id}")
        return get_amount_out(amount_in, reserve_in, reserve_out, snap.fee_bps)

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
        """
        Execute a swap on a pool.

        Args:
            pool_id: target pool
            trader: identity paying `amount_in`
            token_in: token paid in; the other pool token is paid out
            amount_in: exact input amount
            min_amount_out: minimum acceptable output (slippage protection)
            recipient: receiver of the output (defaults to trader)
            deadline: unix timestamp; the swap is rejected once now > deadline

        Returns:
            The Trade record

        Raises:
            Expired, PoolNotFound, InvalidPair, InvalidAmount, InvalidAccount,
            InsufficientLiquidity, SlippageExceeded, TransferFailed,
            ArithmeticOverflow
        """
        now = self.clock()
        if now > deadline:
            raise Expired(f"Swap deadline {deadline} passed (now {now})")
        uint.require_amount(amount_in, "amount_in", positive=True)
        uint.require_amount(min_amount_out, "min_amount_out")
        recipient = recipient or trader
        if self.vault in (trader, recipient):
            raise InvalidAccount(f"The vault {self.vault} cannot trade against its own pools")

        pool = self.registry.pool(pool_id)
        with pool.locked():
            reserve_in, reserve_out = pool.reserves_for(token_in)
            token_out = pool.other_token(token_in)

            amount_out = get_amount_out(amount_in, reserve_in, reserve_out, pool.fee_bps)
            if amount_out == 0:
                raise InsufficientLiquidity(f"Output for {amount_in} {token_in} rounds to zero")
            if amount_out < min_amount_out:
                raise SlippageExceeded(
                    f"Slippage exceeded: got {amount_out}, minimum {min_amount_out}"
                )
            uint.add(reserve_in, amount_in)
            fee_paid = amount_in - uint.mul_div(amount_in, BPS_DENOMINATOR - pool.fee_bps, BPS_DENOMINATOR)

            settlement = Settlement(self.gateway, self.vault)
            settlement.pull(token_in, trader, amount_in)
            settlement.push(token_out, recipient, amount_out)
            settlement.execute()

            # --- commit ---
            pool.apply_swap(token_in, amount_in, amount_out)
            trade = Trade(
                pool_id=pool_id,
                trader=trader,
                recipient=recipient,
                token_in=token_in,
                token_out=token_out,
                amount_in=amount_in,
                amount_out=amount_out,
                fee_paid=fee_paid,
                timestamp=now,
            )
            snapshot = pool.snapshot()
            if self.stats is not None:
                self.stats.record_trade(trade, snapshot)
            self.events.emit(Swap(
                pool_id=pool_id,
                trader=trader,
                recipient=recipient,
                token_in=token_in,
                token_out=token_out,
                amount_in=amount_in,
                amount_out=amount_out,
                fee_paid=fee_paid,
                reserve_a=snapshot.reserve_a,
                reserve_b=snapshot.reserve_b,
                timestamp=now,
            ))

        logger.debug("Swap on %s: %s %s -> %s %s", pool_id, amount_in, token_in, amount_out, token_out)
        return trade
