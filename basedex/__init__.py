"""
basedex: constant-product AMM exchange core.

Core imports are lazily loaded so that importing a submodule does not pull
in the whole exchange. For direct access, import from submodules:

    from basedex.exchange import DecentralizedExchange
    from basedex.tokens import InMemoryTokenLedger
    from basedex.exceptions import SlippageExceeded
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'DecentralizedExchange':
        from .exchange import DecentralizedExchange
        return DecentralizedExchange
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'basedex' has no attribute {name!r}")

__all__ = ['DecentralizedExchange', 'load_config']
