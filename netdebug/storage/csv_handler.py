"""
Per-run results ledger (results.csv).

Each OperationResult becomes one row per metric, or a single ``status`` row when
the result carries no metrics, so a run directory can be inspected with any
spreadsheet tool after the fact.
"""

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

if TYPE_CHECKING:
    from netdebug.modules.base import OperationResult

FIELDNAMES = [
    "timestamp",
    "operation",
    "target",
    "status",
    "metric",
    "value",
    "summary",
    "error",
]


def format_value(value: Any) -> str:
    """Flatten a metric value into a single CSV cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, set, tuple)):
        return ",".join(sorted(str(v) for v in value))
    return str(value)


class CSVHandler:
    """Append-only ledger of operation results for one run directory."""

    def __init__(self, csv_file: Path):
        self.csv_file = Path(csv_file)
        if not self.csv_file.exists():
            with open(self.csv_file, "w", newline="") as f:
                csv.DictWriter(f, fieldnames=FIELDNAMES).writeheader()
            logger.debug(f"Created results ledger: {self.csv_file}")

    def record(self, result: "OperationResult") -> int:
        """Append the rows for ``result``; returns how many were written."""
        base = {
            "timestamp": result.timestamp.isoformat(),
            "operation": result.operation,
            "target": result.target,
            "status": result.status,
            "summary": result.summary or "",
            "error": result.error or "",
        }
        metrics = result.metrics or {"status": result.status}
        rows = [
            {**base, "metric": name, "value": format_value(value)}
            for name, value in metrics.items()
        ]

        with open(self.csv_file, "a", newline="") as f:
            csv.DictWriter(f, fieldnames=FIELDNAMES).writerows(rows)

        logger.debug(f"Recorded {len(rows)} row(s) for {result.operation} on {result.target}")
        return len(rows)

    def read_results(self, operation: Optional[str] = None) -> List[Dict[str, str]]:
        """Read rows back, optionally only those of one operation."""
        if not self.csv_file.exists():
            return []
        with open(self.csv_file, "r", newline="") as f:
            rows = list(csv.DictReader(f))
        if operation is not None:
            rows = [row for row in rows if row["operation"] == operation]
        return rows
