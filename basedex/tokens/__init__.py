"""
basedex Tokens

Token metadata for unit normalisation and the fungible-token collaborator
the exchange calls for transfers.
"""

from .token import Token, TokenRegistry
from .ledger import (
    InMemoryTokenLedger,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenError,
    TokenGateway,
    TransferEvent,
)

__all__ = [
    "Token",
    "TokenRegistry",
    "TokenGateway",
    "InMemoryTokenLedger",
    "TransferEvent",
    "TokenError",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
]
