"""
basedex Configuration

Loads all sections of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    BaseDexConfig,
    ExchangeSectionConfig,
    StatsSectionConfig,
    ReportsSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "BaseDexConfig",
    "ExchangeSectionConfig",
    "StatsSectionConfig",
    "ReportsSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
