"""
basedex Pair Registry

Arena of pools keyed by stable pool id:
  - Pair uniqueness per fee tier on the canonical (sorted) token pair
  - Fee validation against the configured bounds
  - Deterministic pool IDs (blake2b, no uuid4)
  - Lookup by id, by key, or by pair
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..constants import MAX_FEE_BPS, MIN_FEE_BPS
from ..exceptions import DuplicatePool, InvalidFee, InvalidPair, PoolNotFound
from .events import EventLog, PairCreated
from .pool import FeeTier, Pool, PoolSnapshot, PoolType

logger = logging.getLogger(__name__)

PoolKey = Tuple[str, str, FeeTier]


def sort_tokens(token_a: str, token_b: str) -> Tuple[str, str]:
    return (token_a, token_b) if token_a < token_b else (token_b, token_a)


class PairRegistry:
    """
    Creates and looks up pools.

    The registry lock serialises pool creation and index updates only;
    each pool carries its own lock for swaps and liquidity changes.
    """

    def __init__(
        self,
        events: Optional[EventLog] = None,
        min_fee_bps: int = MIN_FEE_BPS,
        max_fee_bps: int = MAX_FEE_BPS,
        clock=None,
    ) -> None:
        self.events = events if events is not None else EventLog()
        self.min_fee_bps = min_fee_bps
        self.max_fee_bps = max_fee_bps
        self._clock = clock
        self._pools: Dict[str, Pool] = {}
        self._keys: Dict[PoolKey, str] = {}
        self._pool_sequence: int = 0
        self._lock = threading.Lock()

    @property
    def pool_count(self) -> int:
        return len(self._pools)

    def create_pair(
        self,
        token_a: str,
        token_b: str,
        fee_bps: int,
        pool_type: PoolType = PoolType.CLASSIC,
        fee_tier: FeeTier = FeeTier.STANDARD,
        creator: str = "",
    ) -> str:
        """
        Create a new pool with zero reserves and shares.

        Returns:
            The new pool id

        Raises:
            InvalidPair: identical or empty tokens, unknown pool type or fee tier
            InvalidFee: fee_bps outside [min_fee_bps, max_fee_bps]
            DuplicatePool: a pool already exists for the pair and fee tier
        """
        if not token_a or not token_b:
            raise InvalidPair("Both token addresses are required")
        if token_a == token_b:
            raise InvalidPair(f"Cannot pair {token_a} with itself")
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
            raise InvalidFee(f"fee_bps must be an integer (got {fee_bps!r})")
        if not self.min_fee_bps <= fee_bps <= self.max_fee_bps:
            raise InvalidFee(
                f"fee_bps {fee_bps} outside allowed range {self.min_fee_bps}..{self.max_fee_bps}"
            )
        try:
            pool_type = PoolType(pool_type)
            fee_tier = FeeTier(fee_tier)
        except ValueError as e:
            raise InvalidPair(f"Unsupported pool type or fee tier: {e}") from e

        token_a, token_b = sort_tokens(token_a, token_b)
        key = (token_a, token_b, fee_tier)

        with self._lock:
            if key in self._keys:
                raise DuplicatePool(
                    f"Pool already exists for {token_a}:{token_b} with fee tier {fee_tier.name}"
                )
            self._pool_sequence += 1
            pool_id = self._deterministic_pool_id(token_a, token_b, fee_tier, self._pool_sequence)
            pool = Pool(
                id=pool_id,
                token_a=token_a,
                token_b=token_b,
                fee_bps=fee_bps,
                pool_type=pool_type,
                fee_tier=fee_tier,
                creator=creator,
            )
            if self._clock is not None:
                pool.created_at = self._clock()
            self._pools[pool_id] = pool
            self._keys[key] = pool_id

        logger.info(
            "Pool %s created: %s/%s fee=%dbps type=%s tier=%s",
            pool_id, token_a, token_b, fee_bps, pool_type.name, fee_tier.name,
        )
        self.events.emit(PairCreated(
            pool_id=pool_id,
            token_a=token_a,
            token_b=token_b,
            fee_bps=fee_bps,
            pool_type=int(pool_type),
            fee_tier=int(fee_tier),
            creator=creator,
            timestamp=pool.created_at,
        ))
        return pool_id

    # -- Lookup -------------------------------------------------------------

    def pool(self, pool_id: str) -> Pool:
        """Mutable pool record, for the swap and liquidity engines."""
        pool = self._pools.get(pool_id)
        if pool is None:
            raise PoolNotFound(f"Pool {pool_id} not found")
        return pool

    def get_pool(self, pool_id: str) -> PoolSnapshot:
        return self.pool(pool_id).snapshot()

    def find_pool(self, token_a: str, token_b: str, fee_tier: FeeTier = FeeTier.STANDARD) -> PoolSnapshot:
        token_a, token_b = sort_tokens(token_a, token_b)
        try:
            fee_tier = FeeTier(fee_tier)
        except ValueError as e:
            raise PoolNotFound(f"No pool for {token_a}:{token_b}: {e}") from e
        pool_id = self._keys.get((token_a, token_b, fee_tier))
        if pool_id is None:
            raise PoolNotFound(f"No pool for {token_a}:{token_b} in fee tier {fee_tier.name}")
        return self.get_pool(pool_id)

    def get_pools_for_pair(self, token_a: str, token_b: str) -> List[PoolSnapshot]:
        token_a, token_b = sort_tokens(token_a, token_b)
        with self._lock:
            ids = [pid for (a, b, _), pid in self._keys.items() if (a, b) == (token_a, token_b)]
        return [self._pools[pid].snapshot() for pid in ids]

    def get_all_pools(self) -> List[PoolSnapshot]:
        with self._lock:
            pools = list(self._pools.values())
        return [p.snapshot() for p in pools]

    def pool_ids(self) -> List[str]:
        with self._lock:
            return list(self._pools.keys())

    def __contains__(self, pool_id: str) -> bool:
        return pool_id in self._pools

    @staticmethod
    def _deterministic_pool_id(token_a: str, token_b: str, fee_tier: FeeTier, seq: int) -> str:
        raw = f"{token_a}:{token_b}:{int(fee_tier)}:{seq}".encode()
        return hashlib.blake2b(raw, digest_size=8).hexdigest()
