"""Dated JSON report files."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..logger import get_logger
from .rules import Findings

logger = get_logger(__name__)


def write_report(
    name: str,
    snapshot: Dict[str, Any],
    findings: Findings,
    output_dir: Union[str, Path],
    now: Optional[datetime] = None,
) -> Path:
    """
    Write `<name>-<UTC timestamp>.json` into `output_dir` (created if missing).

    Returns:
        Path of the written file
    """
    now = now or datetime.now(timezone.utc)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{name}-{now.strftime('%Y%m%dT%H%M%S%fZ')}.json"

    report = {
        "report": name,
        "generated_at": now.isoformat(),
        "snapshot": snapshot,
        **findings.to_dict(),
    }
    path.write_text(json.dumps(report, indent=2, default=str))
    logger.info("Report %s written to %s (%d alerts, %d recommendations)",
                name, path, len(findings.alerts), len(findings.recommendations))
    return path
