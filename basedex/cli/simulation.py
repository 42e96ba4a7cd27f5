"""
Seeded trading simulation against an in-memory exchange.

Used by the `simulate` and `report` commands to produce realistic state
without a host chain: a handful of tokens, one pool per adjacent token
pair, one liquidity provider per pool and random swaps by a small set of
traders.
"""

from __future__ import annotations

import random
import time
from typing import List, Optional, Tuple

from ..config import BaseDexConfig
from ..constants import MAX_UINT256
from ..exchange import DecentralizedExchange
from ..logger import get_logger
from ..tokens import InMemoryTokenLedger

logger = get_logger(__name__)

SEED_BALANCE = 10**30
DEADLINE_SLACK_SECONDS = 60


def build_simulation(
    pools: int = 3,
    trades: int = 100,
    seed: int = 0,
    config: Optional[BaseDexConfig] = None,
) -> Tuple[DecentralizedExchange, InMemoryTokenLedger]:
    """
    Create an exchange with `pools` funded pools and execute `trades` swaps.

    Returns:
        (exchange, ledger)
    """
    config = config or BaseDexConfig()
    rng = random.Random(seed)
    ledger = InMemoryTokenLedger(spender=config.exchange.vault_address)
    dex = DecentralizedExchange.from_config(config, gateway=ledger)

    tokens = [f"0xtoken{i:02d}" for i in range(pools + 1)]
    traders = [f"trader{i}" for i in range(8)]
    providers = [f"provider{i}" for i in range(pools)]
    for i, token in enumerate(tokens):
        dex.register_token(token, decimals=18, symbol=f"TK{i}")
        for user in traders + providers:
            ledger.credit(token, user, SEED_BALANCE)
            ledger.approve(token, user, ledger.spender, MAX_UINT256)

    pool_ids: List[str] = []
    for i in range(pools):
        pool_id = dex.create_pair(tokens[i], tokens[i + 1], creator=providers[i])
        amount_a = rng.randint(10**20, 10**22)
        amount_b = amount_a * rng.randint(80, 120) // 100
        dex.add_liquidity(pool_id, providers[i], amount_a, amount_b, 0, 0, _deadline())
        pool_ids.append(pool_id)

    for _ in range(trades):
        pool_id = rng.choice(pool_ids)
        info = dex.get_pool_info(pool_id)
        if rng.random() < 0.5:
            token_in, reserve_in = info.token_a, info.reserve_a
        else:
            token_in, reserve_in = info.token_b, info.reserve_b
        amount_in = max(1, reserve_in * rng.randint(1, 100) // 10_000)
        dex.swap(pool_id, rng.choice(traders), token_in, amount_in, 0, None, _deadline())

    logger.info("Simulation finished: %d pools, %d trades (seed %d)", pools, trades, seed)
    return dex, ledger


def _deadline() -> float:
    return time.time() + DEADLINE_SLACK_SECONDS
