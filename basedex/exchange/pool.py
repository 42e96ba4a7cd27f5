"""
basedex Constant-Product Pool State

A pool holds one trading pair's reserves and its liquidity-share ledger:
  - Canonical token ordering (token_a < token_b)
  - Closed pool types and fee tiers
  - Share positions per provider, including the locked minimum liquidity
  - One re-entrant lock per pool; mutations run under it, reads copy under it

Pools are created by the PairRegistry and mutated only by the SwapEngine
and the LiquidityManager.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, Tuple

from ..constants import LOCKED_LIQUIDITY_OWNER
from ..exceptions import InsufficientShares, InvalidPair
from . import uint


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PoolType(IntEnum):
    """Pool variants. All price with the constant-product curve."""
    CLASSIC = 0
    STABLE = 1
    CONCENTRATED = 2


class FeeTier(IntEnum):
    """
    Fee tier index. A tier is a bucket that allows several pools for the
    same pair; the rate itself is the pool's fee_bps.
    """
    STANDARD = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class LiquidityPosition:
    """A provider's share balance in one pool."""
    owner: str
    pool_id: str
    shares: int = 0
    created_at: float = field(default_factory=time.time)

    @property
    def is_locked(self) -> bool:
        return self.owner == LOCKED_LIQUIDITY_OWNER


@dataclass(frozen=True)
class PoolSnapshot:
    """Immutable copy of a pool's state, taken under the pool lock."""
    id: str
    token_a: str
    token_b: str
    reserve_a: int
    reserve_b: int
    fee_bps: int
    pool_type: PoolType
    fee_tier: FeeTier
    total_shares: int
    provider_count: int
    created_at: float
    creator: str

    @property
    def k(self) -> int:
        return self.reserve_a * self.reserve_b

    @property
    def is_active(self) -> bool:
        return self.reserve_a > 0 and self.reserve_b > 0

    def to_dict(self) -> dict:
        return {
            "pool_id": self.id,
            "token_a": self.token_a,
            "token_b": self.token_b,
            "reserve_a": str(self.reserve_a),
            "reserve_b": str(self.reserve_b),
            "fee_bps": self.fee_bps,
            "pool_type": self.pool_type.name,
            "fee_tier": self.fee_tier.name,
            "total_shares": str(self.total_shares),
            "provider_count": self.provider_count,
            "created_at": self.created_at,
            "creator": self.creator,
        }


@dataclass
class Pool:
    """
    Mutable pool record.

    token_a < token_b (canonical ordering).
    """
    id: str
    token_a: str
    token_b: str
    fee_bps: int
    pool_type: PoolType
    fee_tier: FeeTier
    creator: str = ""

    reserve_a: int = 0
    reserve_b: int = 0
    total_shares: int = 0

    positions: Dict[str, LiquidityPosition] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    # -- Locking ------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator["Pool"]:
        """Hold this pool's exclusive lock for a read-modify-write."""
        with self._lock:
            yield self

    def snapshot(self) -> PoolSnapshot:
        with self._lock:
            return PoolSnapshot(
                id=self.id,
                token_a=self.token_a,
                token_b=self.token_b,
                reserve_a=self.reserve_a,
                reserve_b=self.reserve_b,
                fee_bps=self.fee_bps,
                pool_type=self.pool_type,
                fee_tier=self.fee_tier,
                total_shares=self.total_shares,
                provider_count=sum(
                    1 for p in self.positions.values() if p.shares > 0 and not p.is_locked
                ),
                created_at=self.created_at,
                creator=self.creator,
            )

    # -- Queries ------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return self.total_shares == 0

    def has_token(self, token: str) -> bool:
        return token == self.token_a or token == self.token_b

    def other_token(self, token: str) -> str:
        if token == self.token_a:
            return self.token_b
        if token == self.token_b:
            return self.token_a
        raise InvalidPair(f"Token {token} is not in pool {self.id}")

    def reserves_for(self, token_in: str) -> Tuple[int, int]:
        """(reserve_in, reserve_out) for a swap paying `token_in`."""
        if token_in == self.token_a:
            return self.reserve_a, self.reserve_b
        if token_in == self.token_b:
            return self.reserve_b, self.reserve_a
        raise InvalidPair(f"Token {token_in} is not in pool {self.id}")

    def shares_of(self, owner: str) -> int:
        position = self.positions.get(owner)
        return position.shares if position is not None else 0

    # -- Mutations (caller holds the lock and has validated the amounts) -----

    def apply_swap(self, token_in: str, amount_in: int, amount_out: int) -> None:
        if token_in == self.token_a:
            new_a = uint.add(self.reserve_a, amount_in)
            new_b = uint.sub(self.reserve_b, amount_out)
        else:
            new_b = uint.add(self.reserve_b, amount_in)
            new_a = uint.sub(self.reserve_a, amount_out)
        self.reserve_a, self.reserve_b = new_a, new_b

    def apply_mint(self, owner: str, amount_a: int, amount_b: int, shares: int, locked: int = 0) -> None:
        """Add reserves and mint shares to `owner` (plus `locked` to the burn address)."""
        new_a = uint.add(self.reserve_a, amount_a)
        new_b = uint.add(self.reserve_b, amount_b)
        new_total = uint.add(uint.add(self.total_shares, shares), locked)

        self.reserve_a, self.reserve_b, self.total_shares = new_a, new_b, new_total
        if locked:
            self._position(LOCKED_LIQUIDITY_OWNER).shares += locked
        self._position(owner).shares += shares

    def apply_burn(self, owner: str, shares: int, amount_a: int, amount_b: int) -> None:
        position = self.positions.get(owner)
        if position is None or position.shares < shares:
            raise InsufficientShares(f"{owner} holds {self.shares_of(owner)} shares, needs {shares}")
        new_a = uint.sub(self.reserve_a, amount_a)
        new_b = uint.sub(self.reserve_b, amount_b)
        new_total = uint.sub(self.total_shares, shares)

        self.reserve_a, self.reserve_b, self.total_shares = new_a, new_b, new_total
        position.shares -= shares
        if position.shares == 0:
            del self.positions[owner]

    def _position(self, owner: str) -> LiquidityPosition:
        position = self.positions.get(owner)
        if position is None:
            position = LiquidityPosition(owner=owner, pool_id=self.id)
            self.positions[owner] = position
        return position
