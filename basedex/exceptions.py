"""
basedex Exceptions

Custom exception classes for the basedex exchange core.
"""


class BaseDexException(Exception):
    """Base exception for basedex."""
    pass


class ConfigurationError(BaseDexException):
    """Configuration error."""
    pass


class RuleSetError(BaseDexException):
    """Report rule set could not be loaded or evaluated."""
    pass


class ExchangeError(BaseDexException):
    """Base class for every error raised by an exchange operation.

    An operation that raises one of these has committed nothing: reserves,
    shares, positions, stats and the event log are as they were.
    """
    pass


class InvalidPair(ExchangeError):
    """Tokens are identical, empty, or not part of the pool."""
    pass


class InvalidFee(ExchangeError):
    """Fee in basis points is outside the allowed range."""
    pass


class InvalidAmount(ExchangeError):
    """Amount is negative, or zero where a positive amount is required."""
    pass


class DuplicatePool(ExchangeError):
    """A pool already exists for this pair and fee tier."""
    pass


class PoolNotFound(ExchangeError):
    """No pool with the given id or key."""
    pass


class InsufficientLiquidity(ExchangeError):
    """Pool reserves cannot satisfy the request."""
    pass


class InsufficientInitialLiquidity(ExchangeError):
    """First deposit is too small to cover the locked minimum liquidity."""
    pass


class InsufficientShares(ExchangeError):
    """Provider holds fewer liquidity shares than requested."""
    pass


class SlippageExceeded(ExchangeError):
    """Computed amount is below the caller's minimum."""
    pass


class Expired(ExchangeError):
    """Operation submitted after its deadline."""
    pass


class TransferFailed(ExchangeError):
    """Token collaborator rejected a transfer."""
    pass


class ArithmeticOverflow(ExchangeError):
    """Result would leave the unsigned 256-bit range."""
    pass


class InvalidAccount(ExchangeError):
    """Caller or recipient is the exchange vault itself."""
    pass
