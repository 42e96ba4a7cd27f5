"""
Token metadata and registry.

The exchange never owns balances; it only needs to know each token's
decimal precision so that volume, fees and TVL can be expressed in one
common unit.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..constants import COMMON_DECIMALS, DEFAULT_TOKEN_DECIMALS


@dataclass(frozen=True)
class Token:
    """External token handle and its decimal precision."""
    address: str
    decimals: int = DEFAULT_TOKEN_DECIMALS
    symbol: str = ""

    def __post_init__(self):
        if not self.address:
            raise ValueError("Token address required")
        if not 0 <= self.decimals <= 77:
            raise ValueError(f"Token decimals out of range: {self.decimals}")


class TokenRegistry:
    """
    Known tokens by address.

    Unregistered tokens are treated as having DEFAULT_TOKEN_DECIMALS.
    """

    def __init__(self, common_decimals: int = COMMON_DECIMALS) -> None:
        self.common_decimals = common_decimals
        self._tokens: Dict[str, Token] = {}
        self._lock = threading.Lock()

    def register(self, address: str, decimals: int = DEFAULT_TOKEN_DECIMALS, symbol: str = "") -> Token:
        token = Token(address=address, decimals=decimals, symbol=symbol)
        with self._lock:
            self._tokens[address] = token
        return token

    def get(self, address: str) -> Optional[Token]:
        return self._tokens.get(address)

    def decimals(self, address: str) -> int:
        token = self._tokens.get(address)
        return token.decimals if token is not None else DEFAULT_TOKEN_DECIMALS

    def normalize(self, address: str, amount: int) -> int:
        """Express a raw token amount in the common unit (floor on downscale)."""
        shift = self.common_decimals - self.decimals(address)
        if shift >= 0:
            return amount * 10**shift
        return amount // 10**(-shift)

    def all(self) -> List[Token]:
        return list(self._tokens.values())

    def __contains__(self, address: str) -> bool:
        return address in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)
