"""
Fungible-token collaborator.

The exchange moves tokens only through a TokenGateway: one
`transfer_from(token, owner, to, amount)` call per leg, raising TokenError
(or a subclass) on failure. `check_transfer` takes the same arguments and
raises the same errors without moving anything.

InMemoryTokenLedger is an ERC-20 style ledger (balances + allowances) that
implements the gateway for local runs, simulations and tests.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Protocol, Tuple

from ..constants import EVENT_LOG_MAX_EVENTS
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(Exception):
    """Base exception for token ledger operations."""


class InsufficientBalanceError(TokenError):
    """Raised when the owner's balance is too low."""


class InsufficientAllowanceError(TokenError):
    """Raised when the spender's allowance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  GATEWAY INTERFACE
# ══════════════════════════════════════════════════════════════════════

class TokenGateway(Protocol):
    """Capability the exchange calls to move tokens."""

    def check_transfer(self, token: str, owner: str, to: str, amount: int) -> None:
        """Raise the TokenError transfer_from would raise, moving nothing."""
        ...

    def transfer_from(self, token: str, owner: str, to: str, amount: int) -> None: ...


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  IN-MEMORY LEDGER
# ══════════════════════════════════════════════════════════════════════

class InMemoryTokenLedger:
    """
    Multi-token balance and allowance ledger.

    Mirrors ERC-20 semantics per token:
        - balance_of(token, address) → int
        - approve(token, owner, spender, amount)
        - transfer_from(token, owner, to, amount)

    The ledger is bound to one spender (the exchange vault). transfer_from
    spends the owner's allowance for that spender, except when the owner is
    the spender itself. Only the newest `max_events` transfer events are kept.
    """

    def __init__(self, spender: str, max_events: int = EVENT_LOG_MAX_EVENTS) -> None:
        if not spender:
            raise ValueError("Spender address required")
        self.spender = spender
        self._balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str, str], int] = {}
        self._events: Deque[TransferEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    # -- Queries --------------------------------------------------------------

    def balance_of(self, token: str, address: str) -> int:
        return self._balances.get((token, address), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((token, owner, spender), 0)

    @property
    def events(self) -> List[TransferEvent]:
        return list(self._events)

    # -- Mutations ------------------------------------------------------------

    def credit(self, token: str, address: str, amount: int) -> None:
        """Seed a balance for local runs; not an issuance policy."""
        if amount < 0:
            raise ValueError("Credit amount must not be negative")
        with self._lock:
            self._balances[(token, address)] = self.balance_of(token, address) + amount

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Allowance must not be negative")
        with self._lock:
            self._allowances[(token, owner, spender)] = amount

    def check_transfer(self, token: str, owner: str, to: str, amount: int) -> None:
        """
        Validate a transfer_from without moving anything.

        Raises:
            TokenError: the transfer would be rejected
        """
        with self._lock:
            self._check(token, owner, amount)

    def transfer_from(self, token: str, owner: str, to: str, amount: int) -> None:
        """
        Move `amount` of `token` from `owner` to `to` on behalf of the spender.

        Raises:
            InsufficientBalanceError: owner balance below amount
            InsufficientAllowanceError: spender allowance below amount
        """
        with self._lock:
            balance, allowed = self._check(token, owner, amount)
            if owner != self.spender:
                self._allowances[(token, owner, self.spender)] = allowed - amount
            self._balances[(token, owner)] = balance - amount
            self._balances[(token, to)] = self.balance_of(token, to) + amount
            self._events.append(TransferEvent(token, owner, to, amount))
        logger.debug("Transfer %s %s: %s -> %s", amount, token, owner, to)

    def _check(self, token: str, owner: str, amount: int) -> Tuple[int, int]:
        if amount < 0:
            raise TokenError("Transfer amount must not be negative")
        balance = self.balance_of(token, owner)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{owner} holds {balance} {token}, needs {amount}"
            )
        allowed = self.allowance(token, owner, self.spender)
        if owner != self.spender and allowed < amount:
            raise InsufficientAllowanceError(
                f"{self.spender} may spend {allowed} {token} of {owner}, needs {amount}"
            )
        return balance, allowed
