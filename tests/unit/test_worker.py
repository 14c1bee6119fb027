from __future__ import annotations

import threading

from sqlindexer.domain.models import record_from_row
from sqlindexer.errors import ErrorCategory, IndexRejection, MigrationError, TransportError
from sqlindexer.pipeline.results import OutcomeCollector, OutcomeStatus
from sqlindexer.pipeline.work_queue import WorkQueue
from sqlindexer.pipeline.worker import IndexingWorker
from tests.fakes import RecordingIndexer, author_row


def _worker(indexer: RecordingIndexer, queue: WorkQueue | None = None):
    fatal: list[MigrationError] = []
    abort = threading.Event()
    collector = OutcomeCollector()

    def on_fatal(error: MigrationError) -> None:
        fatal.append(error)
        abort.set()

    worker = IndexingWorker(
        worker_id=1,
        queue=queue or WorkQueue(capacity=10),
        indexer=indexer,
        collector=collector,
        abort_event=abort,
        on_fatal=on_fatal,
    )
    return worker, collector, fatal, abort


def test_successful_upsert_is_recorded():
    worker, collector, fatal, _ = _worker(RecordingIndexer())

    outcome = worker.process(record_from_row(author_row(1)))

    assert outcome.status is OutcomeStatus.INDEXED
    assert outcome.result == "created"
    assert collector.succeeded == 1
    assert collector.indexed_ids == {"1"}
    assert fatal == []


def test_rejection_is_recorded_and_worker_continues():
    indexer = RecordingIndexer(errors={"2": IndexRejection("mapping conflict", document_id="2")})
    queue: WorkQueue = WorkQueue(capacity=10)
    for author_id in (1, 2, 3):
        queue.push(record_from_row(author_row(author_id)))
    queue.close()
    worker, collector, fatal, _ = _worker(indexer, queue)

    assert worker.run() == 3

    assert indexer.calls == ["1", "2", "3"]
    assert collector.succeeded == 2
    assert [f.document_id for f in collector.failures] == ["2"]
    assert collector.failures[0].category is ErrorCategory.INDEX_REJECTION
    assert fatal == []


def test_fatal_error_stops_worker_and_notifies_coordinator():
    indexer = RecordingIndexer(errors={"2": TransportError("connection reset")})
    queue: WorkQueue = WorkQueue(capacity=10)
    for author_id in (1, 2, 3):
        queue.push(record_from_row(author_row(author_id)))
    queue.close()
    worker, collector, fatal, abort = _worker(indexer, queue)

    assert worker.run() == 2

    assert indexer.calls == ["1", "2"]
    assert len(fatal) == 1 and fatal[0].category is ErrorCategory.TRANSPORT
    assert abort.is_set()
    assert [o.document_id for o in collector.aborted] == ["2"]
    assert collector.failures == []


def test_worker_does_not_start_when_already_aborted():
    queue: WorkQueue = WorkQueue(capacity=10)
    queue.push(record_from_row(author_row(1)))
    indexer = RecordingIndexer()
    worker, _, _, abort = _worker(indexer, queue)
    abort.set()

    assert worker.run() == 0
    assert indexer.calls == []
