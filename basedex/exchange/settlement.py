"""
Token settlement for exchange operations.

Moves tokens between callers and the exchange vault through the token
gateway. An operation queues its legs, then `execute()` checks every leg
with the gateway before the first one moves. Gateway failures surface as
TransferFailed with the gateway's error chained. Without a gateway the
exchange runs in accounting-only mode and settlement is a no-op.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..exceptions import InvalidAccount, TransferFailed
from ..tokens.ledger import TokenError, TokenGateway

logger = logging.getLogger(__name__)

Leg = Tuple[str, str, str, int]  # (token, owner, to, amount)


class Settlement:
    """One operation's token legs; completed legs can be unwound on a later failure."""

    def __init__(self, gateway: Optional[TokenGateway], vault: str) -> None:
        self.gateway = gateway
        self.vault = vault
        self._legs: List[Leg] = []
        self._done: List[Leg] = []

    def pull(self, token: str, owner: str, amount: int) -> None:
        """Queue owner → vault."""
        if owner == self.vault:
            raise InvalidAccount(f"The vault {self.vault} cannot pay into itself")
        self._queue(token, owner, self.vault, amount)

    def push(self, token: str, to: str, amount: int) -> None:
        """Queue vault → to."""
        if to == self.vault:
            raise InvalidAccount(f"The vault {self.vault} cannot receive its own payout")
        self._queue(token, self.vault, to, amount)

    def _queue(self, token: str, owner: str, to: str, amount: int) -> None:
        if amount:
            self._legs.append((token, owner, to, amount))

    def execute(self) -> None:
        """
        Check every queued leg, then move them in order.

        Raises:
            TransferFailed: a leg was rejected; legs already moved are reversed
        """
        if self.gateway is None:
            self._legs.clear()
            return
        legs, self._legs = self._legs, []
        for token, owner, to, amount in legs:
            try:
                self.gateway.check_transfer(token, owner, to, amount)
            except TokenError as e:
                raise TransferFailed(
                    f"Transfer of {amount} {token} from {owner} to {to} rejected: {e}"
                ) from e
        for token, owner, to, amount in legs:
            try:
                self.gateway.transfer_from(token, owner, to, amount)
            except TokenError as e:
                self.unwind()
                raise TransferFailed(f"Transfer of {amount} {token} from {owner} to {to} failed: {e}") from e
            self._done.append((token, owner, to, amount))

    def unwind(self) -> None:
        """
        Reverse completed legs, newest first.

        Every leg is attempted; the first reversal the gateway rejects is
        raised afterwards as TransferFailed.
        """
        failure: Optional[TransferFailed] = None
        while self._done:
            token, owner, to, amount = self._done.pop()
            try:
                self.gateway.transfer_from(token, to, owner, amount)
            except TokenError as e:
                logger.error("Could not reverse transfer of %s %s from %s to %s: %s",
                             amount, token, owner, to, e)
                if failure is None:
                    failure = TransferFailed(
                        f"Reversal of {amount} {token} from {to} back to {owner} failed: {e}"
                    )
                    failure.__cause__ = e
                continue
            logger.debug("Unwound transfer of %s %s back to %s", amount, token, owner)
        if failure is not None:
            raise failure
