# src/tickbox/reporting/render.py

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from .query import Report

_RIGHT_ALIGNED = {"id", "story points"}


def report_table(report: Report) -> Table:
    table = Table(title=report.view.capitalize() if report.view else None, show_lines=False)
    for col in report.title:
        style = "cyan" if col == "id" else None
        table.add_column(col, justify="right" if col in _RIGHT_ALIGNED else "left", style=style)
    for row in report.rows:
        # step sub-rows carry no id
        table.add_row(*row, style=None if row[0] else "dim")
    return table


def counts_table(report: Report) -> Table | None:
    if report.counts is None:
        return None
    table = Table(show_header=True)
    table.add_column("status", style="green")
    table.add_column("count", justify="right")
    for status, n in report.counts.items():
        table.add_row(status.value, str(n))
    return table


def render_report(report: Report, console: Console | None = None) -> None:
    console = console or Console()
    if not report.rows:
        console.print(f"[yellow]No tasks in view {report.view or 'all'}.[/yellow]")
    else:
        console.print(report_table(report))
    summary = counts_table(report)
    if summary is not None:
        console.print(summary)
