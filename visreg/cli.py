"""CLI entry point for the visual regression run."""

from __future__ import annotations

import logging
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from visreg.models.comparison import RunSummary
from visreg.models.config import RunConfig
from visreg.orchestrator import Orchestrator

console = Console()
logger = logging.getLogger("visreg")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def print_summary(summary: RunSummary) -> None:
    table = Table(title="Visual Regression Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", summary.run_id)
    table.add_row("Scope", summary.scope)
    table.add_row("Components", str(len(summary.components)))
    table.add_row("Duration", f"{summary.duration_seconds}s")
    table.add_row("Captured (before/after)", f"{summary.captured_before}/{summary.captured_after}")
    table.add_row("Changed", f"[red]{summary.changed}[/red]")
    table.add_row("Unchanged", f"[green]{summary.unchanged}[/green]")
    table.add_row("Skipped items", f"[yellow]{len(summary.failures)}[/yellow]")
    if summary.comment_action:
        table.add_row("PR comment", summary.comment_action)
    console.print(table)

    if summary.failures:
        failures = Table(title="Items left out of the comparison")
        failures.add_column("Stage", style="bold")
        failures.add_column("Item")
        failures.add_column("Reason")
        for f in summary.failures:
            failures.add_row(f.stage, f.item, f.reason)
        console.print(failures)

    if summary.report_path:
        console.print(f"  Report: [blue]{summary.report_path}[/blue]")


@click.command()
@click.option("--full", "full", is_flag=True, help="Capture the whole component catalog, ignoring changed files")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(full: bool, verbose: bool) -> None:
    """Visual regression for the documentation site: capture, diff and report on the PR."""
    setup_logging(verbose)

    try:
        config = RunConfig.from_env()
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        sys.exit(1)

    try:
        summary = Orchestrator(config, force_full=full).run()
    except Exception:
        logger.exception("Visual regression failed")
        sys.exit(1)

    print_summary(summary)


if __name__ == "__main__":
    main()
