"""
Pipeline package: the bounded work queue, the indexing workers, and the
coordinator that runs them against a row source.
"""

from sqlindexer.pipeline.coordinator import PipelineCoordinator
from sqlindexer.pipeline.results import (
    DocumentOutcome,
    OutcomeCollector,
    OutcomeStatus,
    RunState,
    RunSummary,
)
from sqlindexer.pipeline.work_queue import WorkQueue
from sqlindexer.pipeline.worker import IndexingWorker

__all__ = [
    "DocumentOutcome",
    "IndexingWorker",
    "OutcomeCollector",
    "OutcomeStatus",
    "PipelineCoordinator",
    "RunState",
    "RunSummary",
    "WorkQueue",
]
