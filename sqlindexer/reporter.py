from __future__ import annotations

from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.table import Table

# Failures listed individually before the table collapses the rest.
MAX_LISTED_FAILURES = 20


def _format_bytes(value: Optional[int]) -> str:
    if not value:
        return "N/A"
    return f"{value / (1024 * 1024):.2f}"


def print_summary(payload: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a run payload as rich tables.

    The first table is the run overview; when documents were rejected a second
    table lists them by document id.
    """
    console = console or Console()

    succeeded = payload.get("state") == "succeeded"
    state_style = "bold green" if succeeded else "bold red"
    title = f"Migration → {payload.get('index', '?')}"
    if payload.get("dry_run"):
        title = f"{title} [dim](dry run)[/dim]"

    table = Table(title=title, box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("State", f"[{state_style}]{payload.get('state', 'unknown').upper()}[/]")
    table.add_row("Rows read", f"{payload.get('rows_read', 0):,}")
    table.add_row("Documents processed", f"{payload.get('processed', 0):,}")
    table.add_row("Indexed", f"[green]{payload.get('succeeded', 0):,}[/green]")
    table.add_row("Rejected", f"[yellow]{payload.get('failed', 0):,}[/yellow]")
    table.add_row(
        "Workers / queue",
        f"{payload.get('workers', 0)} / {payload.get('queue_capacity', 0)} "
        f"(peak {payload.get('queue_high_water_mark', 0)})",
    )
    table.add_row("Duration (s)", f"{payload.get('duration_seconds', 0.0):.2f}")
    table.add_row("Throughput (docs/s)", f"{payload.get('throughput_docs_per_sec', 0.0):,.2f}")
    table.add_row("Peak Memory (MB)", _format_bytes(payload.get("peak_rss_bytes")))
    if payload.get("error_category"):
        table.add_row(
            "Fatal error",
            f"[red]{payload['error_category']}[/red]: {payload.get('error_message') or ''}",
        )
    console.print(table)

    failures = payload.get("failures") or []
    if not failures:
        return

    failure_table = Table(title="Rejected documents", box=box.SIMPLE)
    failure_table.add_column("Document ID", style="magenta", no_wrap=True)
    failure_table.add_column("Category", style="yellow")
    failure_table.add_column("Worker", justify="right")
    failure_table.add_column("Message")
    for failure in failures[:MAX_LISTED_FAILURES]:
        failure_table.add_row(
            str(failure.get("document_id")),
            str(failure.get("category")),
            str(failure.get("worker")),
            failure.get("message") or "",
        )
    if len(failures) > MAX_LISTED_FAILURES:
        failure_table.caption = f"... and {len(failures) - MAX_LISTED_FAILURES} more"
    console.print(failure_table)


__all__ = ["print_summary"]
