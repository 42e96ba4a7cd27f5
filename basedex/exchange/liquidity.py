"""
basedex Liquidity Manager

Mints and burns pool shares on deposit and withdrawal.

  - First deposit: shares = isqrt(amount_a * amount_b) - MINIMUM_LIQUIDITY,
    with MINIMUM_LIQUIDITY minted to the locked burn-address position
  - Later deposits: amounts matched to the current reserve ratio, shares
    proportional to the smaller side's contribution
  - Withdrawal: pro-rata share of both reserves, floored
  - Slippage minimums and deadlines on every call
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

from ..constants import LOCKED_LIQUIDITY_OWNER, MINIMUM_LIQUIDITY
from ..exceptions import (
    Expired,
    InsufficientInitialLiquidity,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidAccount,
    SlippageExceeded,
)
from . import uint
from .events import EventLog, LiquidityAdded, LiquidityRemoved
from .pool import Pool
from .registry import PairRegistry
from .settlement import Settlement

logger = logging.getLogger(__name__)


class LiquidityManager:
    """Deposits and withdrawals against one pool at a time."""

    def __init__(
        self,
        registry: PairRegistry,
        stats=None,
        events: Optional[EventLog] = None,
        gateway=None,
        vault: str = "",
        minimum_liquidity: int = MINIMUM_LIQUIDITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.stats = stats
        self.events = events if events is not None else registry.events
        self.gateway = gateway
        self.vault = vault
        self.minimum_liquidity = minimum_liquidity
        self.clock = clock

    # -- Deposit ------------------------------------------------------------

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
        """
        Deposit both pool tokens and mint shares to `provider`.

        Amounts are in pool order (token_a, token_b).

        Returns:
            (amount_a, amount_b, shares_minted)

        Raises:
            Expired, PoolNotFound, InvalidAmount, InvalidAccount, InsufficientInitialLiquidity,
            InsufficientLiquidity, SlippageExceeded, TransferFailed,
            ArithmeticOverflow
        """
        now = self.clock()
        if now > deadline:
            raise Expired(f"Deposit deadline {deadline} passed (now {now})")
        uint.require_amount(amount_a_desired, "amount_a_desired")
        uint.require_amount(amount_b_desired, "amount_b_desired")
        uint.require_amount(amount_a_min, "amount_a_min")
        uint.require_amount(amount_b_min, "amount_b_min")
        if provider == self.vault:
            raise InvalidAccount(f"The vault {self.vault} cannot provide liquidity")

        pool = self.registry.pool(pool_id)
        with pool.locked():
            if pool.is_empty:
                amount_a, amount_b = amount_a_desired, amount_b_desired
                shares = uint.isqrt(uint.mul(amount_a, amount_b)) - self.minimum_liquidity
                if shares <= 0:
                    raise InsufficientInitialLiquidity(
                        f"Initial deposit mints {shares} shares after locking "
                        f"{self.minimum_liquidity}; deposit more"
                    )
                locked = self.minimum_liquidity
            else:
                amount_a, amount_b = self._optimal_amounts(pool, amount_a_desired, amount_b_desired)
                shares = min(
                    uint.mul_div(amount_a, pool.total_shares, pool.reserve_a),
                    uint.mul_div(amount_b, pool.total_shares, pool.reserve_b),
                )
                if shares == 0:
                    raise InsufficientLiquidity("Deposit too small to mint any shares")
                locked = 0

            if amount_a < amount_a_min or amount_b < amount_b_min:
                raise SlippageExceeded(
                    f"Deposit amounts ({amount_a}, {amount_b}) below minimums "
                    f"({amount_a_min}, {amount_b_min})"
                )
            # range checks before any token moves
            uint.add(pool.reserve_a, amount_a)
            uint.add(pool.reserve_b, amount_b)
            uint.add(pool.total_shares, shares + locked)

            settlement = Settlement(self.gateway, self.vault)
            settlement.pull(pool.token_a, provider, amount_a)
            settlement.pull(pool.token_b, provider, amount_b)
            settlement.execute()

            # --- commit ---
            pool.apply_mint(provider, amount_a, amount_b, shares, locked=locked)
            snapshot = pool.snapshot()
            event = LiquidityAdded(
                pool_id=pool_id,
                provider=provider,
                amount_a=amount_a,
                amount_b=amount_b,
                shares=shares,
                reserve_a=snapshot.reserve_a,
                reserve_b=snapshot.reserve_b,
                timestamp=now,
            )
            if self.stats is not None:
                self.stats.record_liquidity(event, snapshot)
            self.events.emit(event)

        logger.debug("LiquidityAdded %s: %s minted %s shares for (%s, %s)",
                     pool_id, provider, shares, amount_a, amount_b)
        return amount_a, amount_b, shares

    @staticmethod
    def _optimal_amounts(pool: Pool, amount_a_desired: int, amount_b_desired: int) -> Tuple[int, int]:
        """Largest pair within the desired amounts that keeps the reserve ratio."""
        if pool.reserve_a == 0 or pool.reserve_b == 0:
            raise InsufficientLiquidity(f"Pool {pool.id} has shares but an empty reserve")
        amount_b_optimal = uint.mul_div(amount_a_desired, pool.reserve_b, pool.reserve_a)
        if amount_b_optimal <= amount_b_desired:
            return amount_a_desired, amount_b_optimal
        amount_a_optimal = uint.mul_div(amount_b_desired, pool.reserve_a, pool.reserve_b)
        return amount_a_optimal, amount_b_desired

    # -- Withdrawal ---------------------------------------------------------

    def remove_liquidity(
        self,
        pool_id: str,
        provider: str,
        shares: int,
        amount_a_min: int,
        amount_b_min: int,
        deadline: float,
    ) -> Tuple[int, int]:
        """
        Burn `shares` of `provider` and pay out the pro-rata reserves.

        Returns:
            (amount_a, amount_b)

        Raises:
            Expired, PoolNotFound, InvalidAmount, InvalidAccount, InsufficientShares,
            InsufficientLiquidity, SlippageExceeded, TransferFailed
        """
        now = self.clock()
        if now > deadline:
            raise Expired(f"Withdrawal deadline {deadline} passed (now {now})")
        uint.require_amount(shares, "shares", positive=True)
        uint.require_amount(amount_a_min, "amount_a_min")
        uint.require_amount(amount_b_min, "amount_b_min")
        if provider == LOCKED_LIQUIDITY_OWNER:
            raise InsufficientShares("Locked minimum liquidity cannot be withdrawn")
        if provider == self.vault:
            raise InvalidAccount(f"The vault {self.vault} cannot withdraw liquidity")

        pool = self.registry.pool(pool_id)
        with pool.locked():
            held = pool.shares_of(provider)
            if held < shares:
                raise InsufficientShares(f"{provider} holds {held} shares, requested {shares}")

            amount_a = uint.mul_div(pool.reserve_a, shares, pool.total_shares)
            amount_b = uint.mul_div(pool.reserve_b, shares, pool.total_shares)
            if amount_a == 0 or amount_b == 0:
                raise InsufficientLiquidity(f"Burning {shares} shares returns nothing on one side")
            if amount_a < amount_a_min or amount_b < amount_b_min:
                raise SlippageExceeded(
                    f"Withdrawal amounts ({amount_a}, {amount_b}) below minimums "
                    f"({amount_a_min}, {amount_b_min})"
                )

            settlement = Settlement(self.gateway, self.vault)
            settlement.push(pool.token_a, provider, amount_a)
            settlement.push(pool.token_b, provider, amount_b)
            settlement.execute()

            # --- commit ---
            pool.apply_burn(provider, shares, amount_a, amount_b)
            snapshot = pool.snapshot()
            event = LiquidityRemoved(
                pool_id=pool_id,
                provider=provider,
                amount_a=amount_a,
                amount_b=amount_b,
                shares=shares,
                reserve_a=snapshot.reserve_a,
                reserve_b=snapshot.reserve_b,
                timestamp=now,
            )
            if self.stats is not None:
                self.stats.record_liquidity(event, snapshot)
            self.events.emit(event)

        logger.debug("LiquidityRemoved %s: %s burned %s shares for (%s, %s)",
                     pool_id, provider, shares, amount_a, amount_b)
        return amount_a, amount_b
