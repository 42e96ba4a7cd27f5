"""
basedex TOML Configuration Loader

Loads every section of config.toml with environment variable overrides.
Each section is a dataclass with from_dict + apply_env.

Environment variable mapping:
    [exchange] min_fee_bps        → BASEDEX_MIN_FEE_BPS
    [exchange] vault_address      → BASEDEX_VAULT_ADDRESS
    [stats] volume_window_seconds → BASEDEX_VOLUME_WINDOW_SECONDS
    [reports] output_dir          → BASEDEX_REPORTS_DIR
    [logging] level               → BASEDEX_LOG_LEVEL
    ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BPS_DENOMINATOR,
    COMMON_DECIMALS,
    DEFAULT_FEE_BPS,
    EVENT_LOG_MAX_EVENTS,
    MAX_FEE_BPS,
    MIN_FEE_BPS,
    MINIMUM_LIQUIDITY,
    TRADE_RETENTION_SECONDS,
    VOLUME_WINDOW_SECONDS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_VAULT_ADDRESS = "basedex:vault"


# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class ExchangeSectionConfig:
    """[exchange] section."""
    min_fee_bps: int = MIN_FEE_BPS
    max_fee_bps: int = MAX_FEE_BPS
    default_fee_bps: int = DEFAULT_FEE_BPS
    minimum_liquidity: int = MINIMUM_LIQUIDITY
    vault_address: str = DEFAULT_VAULT_ADDRESS
    max_events: int = EVENT_LOG_MAX_EVENTS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExchangeSectionConfig":
        return cls(
            min_fee_bps=int(data.get("min_fee_bps", MIN_FEE_BPS)),
            max_fee_bps=int(data.get("max_fee_bps", MAX_FEE_BPS)),
            default_fee_bps=int(data.get("default_fee_bps", DEFAULT_FEE_BPS)),
            minimum_liquidity=int(data.get("minimum_liquidity", MINIMUM_LIQUIDITY)),
            vault_address=data.get("vault_address", DEFAULT_VAULT_ADDRESS),
            max_events=int(data.get("max_events", EVENT_LOG_MAX_EVENTS)),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("BASEDEX_MIN_FEE_BPS"):
            self.min_fee_bps = int(v)
        if v := os.environ.get("BASEDEX_MAX_FEE_BPS"):
            self.max_fee_bps = int(v)
        if v := os.environ.get("BASEDEX_DEFAULT_FEE_BPS"):
            self.default_fee_bps = int(v)
        if v := os.environ.get("BASEDEX_MINIMUM_LIQUIDITY"):
            self.minimum_liquidity = int(v)
        if v := os.environ.get("BASEDEX_VAULT_ADDRESS"):
            self.vault_address = v
        if v := os.environ.get("BASEDEX_MAX_EVENTS"):
            self.max_events = int(v)

    def validate(self) -> None:
        if not 0 <= self.min_fee_bps <= self.max_fee_bps <= BPS_DENOMINATOR:
            raise ConfigurationError(
                f"Fee bounds must satisfy 0 <= min <= max <= {BPS_DENOMINATOR} "
                f"(got {self.min_fee_bps}..{self.max_fee_bps})"
            )
        if not self.min_fee_bps <= self.default_fee_bps <= self.max_fee_bps:
            raise ConfigurationError(
                f"default_fee_bps {self.default_fee_bps} outside "
                f"{self.min_fee_bps}..{self.max_fee_bps}"
            )
        if self.minimum_liquidity < 0:
            raise ConfigurationError("minimum_liquidity must not be negative")
        if not self.vault_address:
            raise ConfigurationError("vault_address is required")
        if self.max_events < 1:
            raise ConfigurationError("max_events must be at least 1")


@dataclass
class StatsSectionConfig:
    """[stats] section."""
    volume_window_seconds: int = VOLUME_WINDOW_SECONDS
    trade_retention_seconds: int = TRADE_RETENTION_SECONDS
    common_decimals: int = COMMON_DECIMALS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatsSectionConfig":
        return cls(
            volume_window_seconds=int(data.get("volume_window_seconds", VOLUME_WINDOW_SECONDS)),
            trade_retention_seconds=int(data.get("trade_retention_seconds", TRADE_RETENTION_SECONDS)),
            common_decimals=int(data.get("common_decimals", COMMON_DECIMALS)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BASEDEX_VOLUME_WINDOW_SECONDS"):
            self.volume_window_seconds = int(v)
        if v := os.environ.get("BASEDEX_TRADE_RETENTION_SECONDS"):
            self.trade_retention_seconds = int(v)

    def validate(self) -> None:
        if self.volume_window_seconds <= 0:
            raise ConfigurationError("volume_window_seconds must be positive")
        if self.trade_retention_seconds < self.volume_window_seconds:
            raise ConfigurationError(
                "trade_retention_seconds must cover at least one volume window"
            )
        if self.common_decimals < 0:
            raise ConfigurationError("common_decimals must not be negative")


@dataclass
class ReportsSectionConfig:
    """[reports] section."""
    output_dir: str = "./reports"
    rule_sets: Dict[str, str] = field(default_factory=dict)  # name → path of a custom TOML rule set

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportsSectionConfig":
        return cls(
            output_dir=data.get("output_dir", "./reports"),
            rule_sets=dict(data.get("rule_sets", {})),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BASEDEX_REPORTS_DIR"):
            self.output_dir = v


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=data.get("level", "INFO"),
            file_output=data.get("file_output", False),
            file=data.get("file"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("BASEDEX_LOG_LEVEL"):
            self.level = v

    def validate(self) -> None:
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ConfigurationError(f"Unknown log level: {self.level}")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class BaseDexConfig:
    """Top-level configuration: all TOML sections."""
    exchange: ExchangeSectionConfig = field(default_factory=ExchangeSectionConfig)
    stats: StatsSectionConfig = field(default_factory=StatsSectionConfig)
    reports: ReportsSectionConfig = field(default_factory=ReportsSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseDexConfig":
        return cls(
            exchange=ExchangeSectionConfig.from_dict(data.get("exchange", {})),
            stats=StatsSectionConfig.from_dict(data.get("stats", {})),
            reports=ReportsSectionConfig.from_dict(data.get("reports", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, path: Path) -> "BaseDexConfig":
        with open(path, "rb") as f:
            try:
                data = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
        return cls.from_dict(data)

    def apply_env(self) -> None:
        self.exchange.apply_env()
        self.stats.apply_env()
        self.reports.apply_env()
        self.logging.apply_env()

    def validate(self) -> None:
        self.exchange.validate()
        self.stats.validate()
        self.logging.validate()


def load_config(path: Optional[str] = None) -> BaseDexConfig:
    """
    Load configuration from a TOML file with env var overrides.

    Resolution order:
      1. Explicit *path* argument
      2. ``BASEDEX_CONFIG`` env var
      3. ``./config.toml``
      4. Built-in defaults (no file)

    Env vars always take precedence over TOML values.

    Raises:
        ConfigurationError: explicit path missing, bad TOML, or invalid values
    """
    config_path: Optional[Path] = None

    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
    elif v := os.environ.get("BASEDEX_CONFIG"):
        config_path = Path(v)
    elif Path("config.toml").exists():
        config_path = Path("config.toml")

    if config_path and config_path.exists():
        cfg = BaseDexConfig.from_file(config_path)
        logger.info("Loaded config from %s", config_path)
    else:
        cfg = BaseDexConfig()
        logger.debug("No config file found, using defaults")

    cfg.apply_env()
    cfg.validate()
    return cfg
