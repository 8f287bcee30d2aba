"""
Terminal output for the CLI, built on rich.

Respects NO_COLOR and FORCE_COLOR.
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from clusteroperator.core.errors import OperatorError, format_error_message
from clusteroperator.service.results import Outcome, ReconcileReport

# Nord color palette (https://www.nordtheme.com/)
OPERATOR_THEME = Theme(
    {
        "info": "#88C0D0",  # Nord frost - light blue
        "success": "#A3BE8C",  # Nord aurora - green
        "warning": "#EBCB8B",  # Nord aurora - yellow
        "error": "#BF616A bold",  # Nord aurora - red
        "muted": "#D8DEE9",  # Nord snow storm - light grey
    }
)

console = Console(
    theme=OPERATOR_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

OUTCOME_STYLES = {
    Outcome.SUCCESS: "success",
    Outcome.FAILURE: "error",
    Outcome.INCONSISTENT: "warning",
}


def success(message: str) -> None:
    console.print(f"[success]✓ {message}[/success]")


def error(message: str) -> None:
    console.print(f"[error]✗ {message}[/error]")


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {message}[/warning]")


def info(message: str) -> None:
    console.print(f"[info]ℹ {message}[/info]")


def header(title: str) -> None:
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, OperatorError):
        return format_error_message(exc)
    return str(exc)


def print_report(report: ReconcileReport) -> None:
    """Print one row per stage, then the outcome."""
    header(f"{report.action.capitalize()} cluster {report.cluster_id}")

    table = Table(show_header=True)
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Errors")
    for stage in report.stages:
        style = "success" if stage.succeeded else "error"
        errors = "\n".join(_describe_error(e) for e in stage.errors)
        table.add_row(stage.label, f"[{style}]{stage.status}[/{style}]", errors)
    console.print(table)

    style = OUTCOME_STYLES[report.outcome]
    console.print(
        f"[{style}]Outcome: {report.outcome}[/{style}] "
        f"[muted]({report.duration_seconds:.1f}s)[/muted]"
    )
    if report.outcome == Outcome.INCONSISTENT:
        warning("Instances exist without verified prerequisites; manual remediation required")
        for instance_id in report.created_instances:
            console.print(f"  [muted]{instance_id}[/muted]")
