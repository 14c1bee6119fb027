"""
Orchestrator for a migration run: build clients, run the pipeline, profile it,
and persist the result payload.

Usage (example from CLI):
    from sqlindexer.orchestrator import MigrationConfig, run_migration

    payload = run_migration(MigrationConfig(workers=8))
    print(payload["state"], payload["succeeded"], payload["failed"])

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from sqlindexer.config import Settings, get_settings
from sqlindexer.errors import MigrationError
from sqlindexer.infrastructure.index_client import (
    DocumentIndexer,
    DryRunIndexer,
    ElasticsearchIndexer,
    build_index_client,
    check_index_connection,
)
from sqlindexer.infrastructure.source import RowSource, source_connection_factory
from sqlindexer.pipeline.coordinator import PipelineCoordinator
from sqlindexer.pipeline.results import RunState, RunSummary
from sqlindexer.utils.logging import get_logger
from sqlindexer.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)


@dataclass
class MigrationConfig:
    """
    Per-run overrides. Unset values fall back to Settings.
    """

    workers: Optional[int] = None
    queue_capacity: Optional[int] = None
    query: Optional[str] = None
    index_name: Optional[str] = None
    fetch_size: Optional[int] = None
    dry_run: bool = False
    persist: bool = True
    results_dir: Path | str = "results"


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def _merge_result(summary: RunSummary, stats: ProfileStats) -> Dict[str, Any]:
    """Merge the run summary with profiler stats, rounding floats for readability."""
    merged = summary.as_dict()
    duration = stats.duration_seconds or summary.duration_seconds
    merged["duration_seconds"] = _round_float(duration)
    merged["throughput_docs_per_sec"] = (
        _round_float(summary.processed / duration) if duration else 0.0
    )
    merged["peak_rss_bytes"] = stats.peak_rss_bytes
    merged["cpu_percent"] = _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None
    merged["profile"] = {
        "label": stats.label,
        "start_ts": _round_float(stats.start_ts, 3),
        "end_ts": _round_float(stats.end_ts, 3),
        "duration_seconds": _round_float(stats.duration_seconds),
    }
    return merged


def _startup_failure(error: MigrationError, workers: int, capacity: int) -> RunSummary:
    return RunSummary(
        state=RunState.FAILED,
        workers=workers,
        queue_capacity=capacity,
        error_category=error.category,
        error_message=error.message,
    )


def run_migration(
    config: Optional[MigrationConfig] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Run one full migration and return the result payload.

    The index client and the source connection are created here and released
    before returning, whatever the outcome. A fatal error never raises; it is
    reported through the payload's `state`, `error_category` and
    `error_message` fields.

    Parameters
    ----------
    config : MigrationConfig | None
        Per-run overrides for workers, queue capacity, query and output.
    settings : Settings | None
        Defaults to the cached environment settings.

    Returns
    -------
    dict
        RunSummary fields merged with profiler stats and run metadata.
    """
    config = config or MigrationConfig()
    settings = settings or get_settings()

    workers = config.workers or settings.migration_workers
    capacity = config.queue_capacity or (
        workers if config.workers else settings.migration_queue_capacity
    )
    index_name = config.index_name or settings.elasticsearch_index
    query = config.query or settings.source_query

    log.info(
        f"[MIGRATION START] {settings.db_name} -> {index_name}",
        extra={"workers": workers, "queue_capacity": capacity, "dry_run": config.dry_run},
    )

    with profile_block("migration") as stats, ExitStack() as stack:
        indexer: DocumentIndexer
        summary: Optional[RunSummary] = None
        if config.dry_run:
            indexer = DryRunIndexer(index_name)
        else:
            client = build_index_client(settings)
            stack.callback(client.close)
            try:
                check_index_connection(client)
            except MigrationError as exc:
                log.error(f"[MIGRATION FAILED] {exc.message}")
                summary = _startup_failure(exc, workers, capacity)
            else:
                indexer = ElasticsearchIndexer(client, index_name)

        if summary is None:
            source = RowSource(
                source_connection_factory(settings),
                fetch_size=config.fetch_size or settings.source_fetch_size,
            )
            coordinator = PipelineCoordinator(
                source, indexer, workers=workers, queue_capacity=capacity
            )
            summary = coordinator.run(query)

    payload = _merge_result(summary, stats)
    payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    payload["index"] = index_name
    payload["dry_run"] = config.dry_run

    if config.persist:
        _persist_results(payload, Path(config.results_dir))

    log.info(
        f"[MIGRATION COMPLETE] {summary.state.value}",
        extra={
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "error_category": payload["error_category"],
        },
    )
    return payload


__all__ = [
    "MigrationConfig",
    "run_migration",
]
