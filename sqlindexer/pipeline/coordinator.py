"""
Pipeline coordinator: one reader, N indexing workers, one bounded queue.

Usage:
    coordinator = PipelineCoordinator(source, indexer, workers=5)
    summary = coordinator.run(query)
    if not summary.success:
        print(summary.error_category, summary.error_message)

The reader runs on the calling thread and pushes Records into the queue; the
workers run in a ThreadPoolExecutor. Any fatal error, from the reader or from
a worker, aborts the run: the queue is aborted, in-flight upserts are allowed
to finish, and the summary is returned with state FAILED.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from sqlindexer.domain.models import Record
from sqlindexer.errors import MigrationError, WorkerCrash
from sqlindexer.infrastructure.index_client import DocumentIndexer
from sqlindexer.infrastructure.source import RowSource
from sqlindexer.pipeline.results import OutcomeCollector, RunState, RunSummary
from sqlindexer.pipeline.work_queue import WorkQueue
from sqlindexer.pipeline.worker import IndexingWorker
from sqlindexer.utils.logging import get_logger

log = get_logger(__name__)


class PipelineCoordinator:
    """
    Own the lifecycle of a single migration run.

    Parameters
    ----------
    source : RowSource
        Unopened row source; the coordinator opens and closes it.
    indexer : DocumentIndexer
        Shared by all workers; must be thread-safe.
    workers : int
        Number of indexing workers started for the run.
    queue_capacity : int | None
        Work queue bound. Defaults to `workers`.
    """

    def __init__(
        self,
        source: RowSource,
        indexer: DocumentIndexer,
        workers: int = 5,
        queue_capacity: Optional[int] = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.source = source
        self.indexer = indexer
        self.workers = workers
        self.queue_capacity = queue_capacity or workers
        self.queue: WorkQueue[Record] = WorkQueue(self.queue_capacity)
        self.collector = OutcomeCollector()
        self._abort = threading.Event()
        self._fatal_lock = threading.Lock()
        self._fatal: Optional[MigrationError] = None
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    def _set_state(self, state: RunState) -> None:
        log.debug(f"[RUN STATE] {self._state.value} -> {state.value}")
        self._state = state

    def abort(self, error: MigrationError) -> None:
        """
        Record the first fatal error and stop all further work.
        """
        with self._fatal_lock:
            if self._fatal is None:
                self._fatal = error
                log.error(
                    f"[RUN ABORT] {error.category.value}: {error.message}",
                    extra={"category": error.category.value},
                )
        self._abort.set()
        dropped = self.queue.abort()
        if dropped:
            log.info("Discarded queued records after abort", extra={"dropped": dropped})

    def _run_worker(self, worker: IndexingWorker) -> int:
        try:
            return worker.run()
        except Exception as exc:  # noqa: BLE001
            log.exception(f"[WORKER {worker.worker_id}] crashed")
            self.abort(WorkerCrash(f"worker {worker.worker_id} crashed: {exc!r}"))
            return worker.processed

    def _pump(self) -> int:
        """Push every Record from the source; stop early if the run was aborted."""
        pushed = 0
        for record in self.source:
            if not self.queue.push(record):
                break
            pushed += 1
        return pushed

    def run(self, query: str) -> RunSummary:
        if self._state is not RunState.IDLE:
            raise RuntimeError("a PipelineCoordinator can only run once")

        start = time.perf_counter()
        log.info(
            "[RUN START]",
            extra={
                "workers": self.workers,
                "queue_capacity": self.queue_capacity,
                "index": self.indexer.index_name,
            },
        )

        with self.source:
            try:
                self.source.open(query)
            except MigrationError as exc:
                # Nothing has been started yet; fail before any work begins.
                self.abort(exc)
                return self._finish(start)

            self._set_state(RunState.RUNNING)
            with ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="indexer"
            ) as pool:
                workers: List[IndexingWorker] = [
                    IndexingWorker(
                        worker_id=n,
                        queue=self.queue,
                        indexer=self.indexer,
                        collector=self.collector,
                        abort_event=self._abort,
                        on_fatal=self.abort,
                    )
                    for n in range(1, self.workers + 1)
                ]
                futures = [pool.submit(self._run_worker, w) for w in workers]
                try:
                    pushed = self._pump()
                    log.info("[SOURCE DRAINED]", extra={"pushed": pushed})
                except MigrationError as exc:
                    self.abort(exc)
                except BaseException:
                    self._abort.set()
                    self.queue.abort()
                    raise
                finally:
                    self.queue.close()
                    self._set_state(RunState.DRAINING)

                for future in futures:
                    future.result()

        return self._finish(start)

    def _finish(self, start: float) -> RunSummary:
        collector = self.collector
        fatal = self._fatal
        self._set_state(RunState.FAILED if fatal is not None else RunState.SUCCEEDED)
        summary = RunSummary(
            state=self._state,
            rows_read=self.source.rows_read,
            processed=collector.processed,
            succeeded=collector.succeeded,
            failed=len(collector.failures),
            workers=self.workers,
            queue_capacity=self.queue_capacity,
            queue_high_water_mark=self.queue.high_water_mark,
            duration_seconds=time.perf_counter() - start,
            error_category=fatal.category if fatal else None,
            error_message=fatal.message if fatal else None,
            failures=list(collector.failures),
        )
        log.info(
            f"[RUN COMPLETE] {summary.state.value}",
            extra={
                "processed": summary.processed,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "error_category": fatal.category.value if fatal else None,
            },
        )
        return summary


__all__ = ["PipelineCoordinator"]
