"""
sqlindexer - migrate denormalized rows from PostgreSQL into Elasticsearch.

A single reader streams the source query through a server-side cursor into a
bounded work queue; a fixed pool of indexing workers drains the queue and
upserts one document per Record, keyed by the source primary key.

The package provides:

- A streaming row source with scoped connection handling
- A bounded, closable work queue that applies backpressure to the reader
- Indexing workers with fatal / per-document error classification
- A coordinator that aggregates outcomes into a run summary
- Profiling, result persistence, and a typer CLI around the pipeline
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sqlindexer.config import Settings, get_settings
from sqlindexer.domain.models import Child, Record
from sqlindexer.errors import (
    ConnectionFailure,
    DecodeError,
    ErrorCategory,
    IndexRejection,
    MigrationError,
    QueryError,
    SerializationError,
    TransportError,
)
from sqlindexer.orchestrator import MigrationConfig, run_migration
from sqlindexer.pipeline import PipelineCoordinator, RunState, RunSummary, WorkQueue
from sqlindexer.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Child",
    "Record",
    # Errors
    "ConnectionFailure",
    "DecodeError",
    "ErrorCategory",
    "IndexRejection",
    "MigrationError",
    "QueryError",
    "SerializationError",
    "TransportError",
    # Pipeline
    "MigrationConfig",
    "PipelineCoordinator",
    "RunState",
    "RunSummary",
    "WorkQueue",
    "run_migration",
    # Logging
    "configure_logging",
    "get_logger",
]
