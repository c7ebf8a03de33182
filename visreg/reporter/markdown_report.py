"""Markdown report for the change-request status comment."""

from __future__ import annotations

from visreg.models.comparison import ComparisonResult

REPORT_MARKER = "<!-- docs-visual-regression -->"


def _diff_label(c: ComparisonResult) -> str:
    return f"{c.diff_pixels:,} px ({c.diff_percent:g}%)"


def generate_markdown_report(comparisons: list[ComparisonResult], marker: str = REPORT_MARKER) -> str:
    """Render comparison results, changed first, in the order they were captured.

    The marker must stay the first line; the status publisher finds the
    comment to update by it.
    """
    changed = [c for c in comparisons if c.changed]
    unchanged = [c for c in comparisons if not c.changed]

    lines = [marker, "## Visual Regression Report", ""]

    if not comparisons:
        lines.append("No screenshots were compared.")
    elif not changed:
        lines.append("No visual changes detected.")
    else:
        lines.append(f"**{len(changed)} screenshot(s) with visual changes:**")
        lines.append("")
        for c in changed:
            lines.append(f"### {c.name}")
            lines.append(f"{_diff_label(c)} changed")
            lines.append("")
            lines.append("| Before | After | Diff |")
            lines.append("|--------|-------|------|")
            diff_cell = f"![Diff]({c.diff_url})" if c.diff_url else "*no diff*"
            lines.append(f"| ![Before]({c.before_url}) | ![After]({c.after_url}) | {diff_cell} |")
            lines.append("")

    if unchanged:
        if not changed:
            lines.append("")
        lines.append("<details>")
        lines.append(f"<summary>{len(unchanged)} screenshot(s) unchanged</summary>")
        lines.append("")
        lines.extend(f"- {c.name}" for c in unchanged)
        lines.append("</details>")

    lines.append("")
    lines.append("---")
    lines.append("*Generated by Docs Visual Regression*")
    return "\n".join(lines)
