"""
basedex Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE POOL MATH. CHANGING THEM ALTERS
# SHARE PRICES AND SWAP OUTPUTS FOR EVERY POOL; ONLY DO SO FOR A FRESH DEPLOYMENT
# OR FOR TESTING PURPOSES.

# ==================================================================================
# ARITHMETIC
# ==================================================================================
MAX_UINT256 = 2**256 - 1
BPS_DENOMINATOR = 10_000


# ==================================================================================
# POOL PARAMETERS
# ==================================================================================
# Shares minted to the locked position on a pool's first deposit.
# Keeps the share price from being manipulated while supply is near zero.
MINIMUM_LIQUIDITY = 10

# Burn address holding the locked minimum liquidity of every pool
LOCKED_LIQUIDITY_OWNER = '0x0000000000000000000000000000000000000000'

MIN_FEE_BPS = 1
MAX_FEE_BPS = 1_000
DEFAULT_FEE_BPS = 30  # 0.30%


# ==================================================================================
# TOKENS AND STATISTICS
# ==================================================================================
COMMON_DECIMALS = 18  # unit that volume, fees and TVL are normalised to
DEFAULT_TOKEN_DECIMALS = 18

VOLUME_WINDOW_SECONDS = 24 * 60 * 60
TRADE_RETENTION_SECONDS = 7 * 24 * 60 * 60  # trades older than this leave the log
RECENT_TRADES_DEFAULT = 50
EVENT_LOG_MAX_EVENTS = 100_000  # oldest events are dropped past this length


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    # Parses only boolean-literals. Leaves other values untouched.
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
