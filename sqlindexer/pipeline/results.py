"""
Outcome and summary contracts for a migration run.

Workers report one `DocumentOutcome` per upsert attempt into a shared
`OutcomeCollector`; the coordinator folds the collector into a `RunSummary`
once every worker has exited.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlindexer.errors import ErrorCategory, MigrationError


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    INDEXED = "indexed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class DocumentOutcome:
    document_id: str
    status: OutcomeStatus
    worker: int
    result: Optional[str] = None
    category: Optional[ErrorCategory] = None
    message: Optional[str] = None

    @classmethod
    def from_error(cls, document_id: str, worker: int, error: MigrationError) -> "DocumentOutcome":
        return cls(
            document_id=document_id,
            status=OutcomeStatus.ABORTED if error.fatal else OutcomeStatus.FAILED,
            worker=worker,
            category=error.category,
            message=error.message,
        )


class OutcomeCollector:
    """
    Thread-safe accumulator of per-document outcomes.

    Successful outcomes are only counted; failures are kept so the summary can
    list them by document id.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.succeeded = 0
        self.failures: List[DocumentOutcome] = []
        self.aborted: List[DocumentOutcome] = []
        self.indexed_ids: set[str] = set()

    def add(self, outcome: DocumentOutcome) -> None:
        with self._lock:
            if outcome.status is OutcomeStatus.INDEXED:
                self.succeeded += 1
                self.indexed_ids.add(outcome.document_id)
            elif outcome.status is OutcomeStatus.FAILED:
                self.failures.append(outcome)
            else:
                self.aborted.append(outcome)

    @property
    def processed(self) -> int:
        with self._lock:
            return self.succeeded + len(self.failures) + len(self.aborted)


@dataclass
class RunSummary:
    """
    Final report of one run.

    `processed` counts upsert attempts, `succeeded` and `failed` split them by
    outcome. On a failed run `error_category`/`error_message` name the fatal
    error and `succeeded` tells how far the run got before halting.
    """

    state: RunState = RunState.IDLE
    rows_read: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    workers: int = 0
    queue_capacity: int = 0
    queue_high_water_mark: int = 0
    duration_seconds: float = 0.0
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None
    failures: List[DocumentOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is RunState.SUCCEEDED

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.value
        payload["error_category"] = self.error_category.value if self.error_category else None
        payload["failures"] = [
            {
                "document_id": f.document_id,
                "category": f.category.value if f.category else None,
                "message": f.message,
                "worker": f.worker,
            }
            for f in self.failures
        ]
        return payload


__all__ = [
    "DocumentOutcome",
    "OutcomeCollector",
    "OutcomeStatus",
    "RunState",
    "RunSummary",
]
