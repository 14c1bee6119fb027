"""
Indexing worker: drain the work queue and upsert each Record.
"""

from __future__ import annotations

import threading
from typing import Callable

from sqlindexer.domain.models import Record
from sqlindexer.errors import MigrationError
from sqlindexer.infrastructure.index_client import DocumentIndexer
from sqlindexer.pipeline.results import DocumentOutcome, OutcomeCollector, OutcomeStatus
from sqlindexer.pipeline.work_queue import WorkQueue
from sqlindexer.utils.logging import get_logger

log = get_logger(__name__)

FatalHandler = Callable[[MigrationError], None]


class IndexingWorker:
    """
    One of the N consumers of the work queue.

    Each dequeued Record gets exactly one upsert attempt. Non-fatal errors are
    recorded and the worker moves on; a fatal error is handed to `on_fatal`
    and the worker stops taking new work.
    """

    def __init__(
        self,
        worker_id: int,
        queue: WorkQueue[Record],
        indexer: DocumentIndexer,
        collector: OutcomeCollector,
        abort_event: threading.Event,
        on_fatal: FatalHandler,
    ) -> None:
        self.worker_id = worker_id
        self._queue = queue
        self._indexer = indexer
        self._collector = collector
        self._abort = abort_event
        self._on_fatal = on_fatal
        self.processed = 0

    def process(self, record: Record) -> DocumentOutcome:
        document_id = record.document_id
        try:
            result = self._indexer.upsert(record)
        except MigrationError as exc:
            outcome = DocumentOutcome.from_error(document_id, self.worker_id, exc)
            if exc.fatal:
                log.error(
                    f"Worker {self.worker_id}: fatal {exc.category.value} error "
                    f"for document ID {document_id}: {exc.message}",
                    extra={"worker": self.worker_id, "document_id": document_id},
                )
            else:
                log.warning(
                    f"Worker {self.worker_id}: {exc.category.value} error "
                    f"for document ID {document_id}: {exc.message}",
                    extra={"worker": self.worker_id, "document_id": document_id},
                )
            self._collector.add(outcome)
            if exc.fatal:
                self._on_fatal(exc)
            return outcome

        outcome = DocumentOutcome(
            document_id=document_id,
            status=OutcomeStatus.INDEXED,
            worker=self.worker_id,
            result=result,
        )
        log.info(
            f"Worker {self.worker_id}: Document ID {document_id} {result}",
            extra={"worker": self.worker_id, "document_id": document_id},
        )
        self._collector.add(outcome)
        return outcome

    def run(self) -> int:
        """Consume until end of stream or abort; return the number of attempts."""
        log.debug(f"[WORKER {self.worker_id}] started", extra={"worker": self.worker_id})
        while not self._abort.is_set():
            record = self._queue.pop()
            if record is None or self._abort.is_set():
                break
            self.processed += 1
            outcome = self.process(record)
            if outcome.status is OutcomeStatus.ABORTED:
                break
        log.debug(
            f"[WORKER {self.worker_id}] exiting",
            extra={"worker": self.worker_id, "processed": self.processed},
        )
        return self.processed


__all__ = ["IndexingWorker"]
