"""
basedex Report Rule Sets

Threshold rules evaluated against a metrics snapshot. A rule set is a TOML
file:

    name = "liquidity"

    [[rules]]
    name = "low-liquidity-ratio"
    metric = "liquidity.liquidity_ratio"
    op = "<"
    threshold = 80
    kind = "alert"
    per_pool = true
    message = "Low liquidity in pool {pool_id} (ratio {value}%)"

`metric` is a dotted path into the snapshot, or into each entry of
`pool_details` when `per_pool` is set. Recommendation rules are evaluated
after alert rules and may read `alert_count`.
"""

from __future__ import annotations

import operator
from dataclasses import asdict, dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..exceptions import RuleSetError
from ..logger import get_logger

logger = get_logger(__name__)

BUNDLED_RULE_SETS = ("liquidity", "performance")

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

KINDS = ("alert", "recommendation")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    name: str
    metric: str
    op: str
    threshold: float
    kind: str = "alert"
    message: str = ""
    per_pool: bool = False

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise RuleSetError(f"Rule {self.name}: unknown operator {self.op!r}")
        if self.kind not in KINDS:
            raise RuleSetError(f"Rule {self.name}: kind must be one of {KINDS} (got {self.kind!r})")
        if not self.metric:
            raise RuleSetError(f"Rule {self.name}: metric is required")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        try:
            return cls(
                name=data.get("name", data["metric"]),
                metric=data["metric"],
                op=data["op"],
                threshold=data["threshold"],
                kind=data.get("kind", "alert"),
                message=data.get("message", ""),
                per_pool=bool(data.get("per_pool", False)),
            )
        except KeyError as e:
            raise RuleSetError(f"Rule is missing required key {e}") from e

    def matches(self, value: Any) -> bool:
        return _OPERATORS[self.op](value, self.threshold)

    def render(self, value: Any, pool_id: Optional[str] = None) -> str:
        template = self.message or f"{self.metric} {self.op} {self.threshold}"
        return template.format(value=value, pool_id=pool_id or "", threshold=self.threshold)


@dataclass(frozen=True)
class Finding:
    rule: str
    kind: str
    message: str
    value: Any
    pool_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Findings:
    alerts: List[Finding] = field(default_factory=list)
    recommendations: List[Finding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alerts": [f.to_dict() for f in self.alerts],
            "recommendations": [f.to_dict() for f in self.recommendations],
        }


def resolve_metric(data: Dict[str, Any], path: str) -> Any:
    """Follow a dotted path through nested dicts."""
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            raise RuleSetError(f"Metric {path!r} not found in snapshot")
        value = value[part]
    return value


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------

@dataclass
class RuleSet:
    name: str
    rules: List[Rule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_name: str = "custom") -> "RuleSet":
        rules = data.get("rules", [])
        if not isinstance(rules, list):
            raise RuleSetError("'rules' must be an array of tables")
        return cls(
            name=data.get("name", default_name),
            rules=[Rule.from_dict(r) for r in rules],
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RuleSet":
        path = Path(path)
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except FileNotFoundError as e:
            raise RuleSetError(f"Rule set file not found: {path}") from e
        except tomli.TOMLDecodeError as e:
            raise RuleSetError(f"Invalid TOML in {path}: {e}") from e
        return cls.from_dict(data, default_name=path.stem)

    @classmethod
    def bundled(cls, name: str) -> "RuleSet":
        if name not in BUNDLED_RULE_SETS:
            raise RuleSetError(f"No bundled rule set named {name!r}")
        text = resources.files("basedex.reports").joinpath("rulesets").joinpath(f"{name}.toml").read_text()
        try:
            data = tomli.loads(text)
        except tomli.TOMLDecodeError as e:
            raise RuleSetError(f"Invalid bundled rule set {name}: {e}") from e
        return cls.from_dict(data, default_name=name)

    def evaluate(self, snapshot: Dict[str, Any]) -> Findings:
        findings = Findings()
        for rule in self.rules:
            if rule.kind == "alert":
                findings.alerts.extend(self._apply(rule, snapshot))
        context = {**snapshot, "alert_count": len(findings.alerts)}
        for rule in self.rules:
            if rule.kind == "recommendation":
                findings.recommendations.extend(self._apply(rule, context))
        logger.debug("Rule set %s: %d alerts, %d recommendations",
                     self.name, len(findings.alerts), len(findings.recommendations))
        return findings

    @staticmethod
    def _apply(rule: Rule, snapshot: Dict[str, Any]) -> List[Finding]:
        if not rule.per_pool:
            value = resolve_metric(snapshot, rule.metric)
            if rule.matches(value):
                return [Finding(rule.name, rule.kind, rule.render(value), value)]
            return []
        found = []
        for pool in snapshot.get("pool_details", []):
            value = resolve_metric(pool, rule.metric)
            if rule.matches(value):
                found.append(Finding(
                    rule.name, rule.kind, rule.render(value, pool["pool_id"]), value, pool["pool_id"],
                ))
        return found


def load_rule_set(name: str, custom: Optional[Dict[str, str]] = None) -> RuleSet:
    """
    Resolve a rule set by name: configured custom paths first, then the
    bundled sets, then `name` itself as a file path.
    """
    custom = custom or {}
    if name in custom:
        return RuleSet.from_file(custom[name])
    if name in BUNDLED_RULE_SETS:
        return RuleSet.bundled(name)
    if Path(name).exists():
        return RuleSet.from_file(name)
    raise RuleSetError(f"Unknown rule set: {name}")
