"""
basedex Reports

Metrics snapshot, threshold rule sets and JSON report output for the
liquidity and performance monitors.
"""

from .snapshot import collect_snapshot
from .rules import (
    BUNDLED_RULE_SETS,
    Finding,
    Findings,
    Rule,
    RuleSet,
    load_rule_set,
    resolve_metric,
)
from .writer import write_report

__all__ = [
    "collect_snapshot",
    "BUNDLED_RULE_SETS",
    "Finding",
    "Findings",
    "Rule",
    "RuleSet",
    "load_rule_set",
    "resolve_metric",
    "write_report",
]
