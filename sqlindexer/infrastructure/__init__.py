"""
Infrastructure package for the migrator.

Centralizes I/O concerns: the PostgreSQL row source and the Elasticsearch
indexer. Keep this layer focused on I/O and resource management, decoupled
from pipeline/orchestrator logic.
"""

from sqlindexer.infrastructure.index_client import (
    DocumentIndexer,
    DryRunIndexer,
    ElasticsearchIndexer,
    build_index_client,
    check_index_connection,
)
from sqlindexer.infrastructure.source import (
    RowSource,
    build_dsn,
    connect_source,
    source_connection_factory,
)

__all__ = [
    "DocumentIndexer",
    "DryRunIndexer",
    "ElasticsearchIndexer",
    "RowSource",
    "build_dsn",
    "build_index_client",
    "check_index_connection",
    "connect_source",
    "source_connection_factory",
]
