from __future__ import annotations

import json
import sys
from typing import Optional

import typer

from sqlindexer.config import get_settings
from sqlindexer.orchestrator import MigrationConfig, run_migration
from sqlindexer.reporter import print_summary
from sqlindexer.utils.logging import configure_logging

app = typer.Typer(help="Migrate rows from PostgreSQL into an Elasticsearch index.")


def _mask(secret: Optional[str]) -> str:
    if not secret:
        return "<unset>"
    return f"{secret[:4]}…" if len(secret) > 8 else "****"


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    source = (
        "SOURCE_DSN override"
        if settings.source_dsn
        else f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )
    typer.echo(
        f"DB={source} | "
        f"ES={settings.elasticsearch_url}/{settings.elasticsearch_index} "
        f"api_key={_mask(settings.elasticsearch_api_key)} | "
        f"workers={settings.migration_workers} queue={settings.migration_queue_capacity} "
        f"fetch_size={settings.source_fetch_size}"
    )


@app.command()
def run(
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Number of indexing workers (default from settings).",
    ),
    queue_capacity: Optional[int] = typer.Option(
        None,
        "--queue-capacity",
        "-q",
        min=1,
        help="Work queue bound (default: number of workers).",
    ),
    index: Optional[str] = typer.Option(
        None,
        "--index",
        "-i",
        help="Target index name (default from settings).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Read and serialize every row without writing to the index.",
    ),
    no_persist: bool = typer.Option(
        False,
        "--no-persist",
        help="Do not write results/latest.json.",
    ),
    json_logs: Optional[bool] = typer.Option(
        None,
        "--json-logs/--plain-logs",
        help="Emit logs as JSON (default from settings).",
    ),
) -> None:
    """
    Run one migration and print the summary. Exits 1 when the run fails.
    """
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_logs=settings.log_json if json_logs is None else json_logs,
    )

    payload = run_migration(
        MigrationConfig(
            workers=workers,
            queue_capacity=queue_capacity,
            index_name=index,
            dry_run=dry_run,
            persist=not no_persist,
        ),
        settings=settings,
    )
    print_summary(payload)
    typer.echo(json.dumps(payload, indent=2, default=str))

    if payload["state"] != "succeeded":
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
