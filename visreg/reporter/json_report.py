"""JSON run summary output."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

from visreg.models.comparison import RunSummary


def generate_json_report(summary: RunSummary, output_path: Path) -> None:
    """Write a machine-readable summary of the run, including skipped items."""
    report = summary.model_dump(mode="json")
    report["totals"] = {
        "compared": len(summary.comparisons),
        "changed": summary.changed,
        "unchanged": summary.unchanged,
        "failures": len(summary.failures),
        "failures_by_stage": dict(Counter(f.stage for f in summary.failures)),
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
