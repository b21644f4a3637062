"""
Rendering functions for imageprune output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

import json
from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .domain import RetentionDecision
from .services import PruneReport

console = Console()

REASON_STYLES = {
    "too_new": "green",
    "too_old": "red",
    "label_protected": "green",
    "label_unprotected": "red",
    "label_missing": "yellow",
    "resolution_error": "yellow",
}


def render_decisions_table(
    decisions: Iterable[RetentionDecision],
    title: Optional[str] = None,
    output: Optional[Console] = None,
) -> None:
    """
    Render retention decisions as a pretty table.

    Args:
        decisions: Decisions to show, in order
        title: Optional table title
        output: Console to print to (defaults to stdout console)
    """
    output = output or console
    decisions = list(decisions)
    if not decisions:
        output.print("[yellow]No package versions found.[/yellow]")
        return

    table = Table(
        title=title or "Retention Decisions",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    table.add_column("Image", style="cyan")
    table.add_column("Updated", style="dim")
    table.add_column("Action")
    table.add_column("Reason")

    for decision in decisions:
        reason = decision.reason.value
        style = REASON_STYLES.get(reason, "white")
        action = "delete" if decision.should_delete else "keep"
        updated_at = decision.version.version.updated_at
        table.add_row(
            decision.version.display_image,
            updated_at.strftime("%Y-%m-%d") if updated_at else "-",
            f"[{'red' if decision.should_delete else 'green'}]{action}[/]",
            f"[{style}]{reason}[/]",
        )

    output.print(table)


def render_summary(report: PruneReport, output: Optional[Console] = None) -> None:
    """Print the run totals under the table."""
    output = output or console
    deletion = report.deletion
    verb = "Would delete" if deletion.dry_run else "Deleted"
    output.print(
        f"[bold]{verb} {deletion.processed}[/bold] of {len(report.decisions)} versions, "
        f"kept {report.kept}"
        + (f", [red]{deletion.failed} failed[/red]" if deletion.failed else "")
    )


def decisions_to_jsonl(decisions: Iterable[RetentionDecision]) -> Iterable[str]:
    """One JSON line per decision."""
    for decision in decisions:
        yield json.dumps(decision.to_dict(), ensure_ascii=False)
