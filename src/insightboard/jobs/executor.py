"""Single-consumer FIFO executor that turns pending jobs into graphs."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass

from insightboard.extraction.base import Extractor, GenerationFailure
from insightboard.graph.assembler import build_dependency_graph
from insightboard.graph.codec import dump_graph
from insightboard.jobs.models import (
    InvalidJobTransition,
    JobNotFoundError,
    JobStatus,
    PersistenceFailure,
)
from insightboard.jobs.redaction import sanitize_error
from insightboard.jobs.repository import JobRepository

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(slots=True)
class ExecutorSummary:
    """Aggregate executor counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0


class SerialExecutor:
    """Processes enqueued jobs one at a time, in submission order.

    A daemon consumer thread is started lazily by :meth:`enqueue` and is the
    only caller of :meth:`process_job` while it runs. Failures of a single
    job are recorded on that job and never stop the loop.
    """

    def __init__(
        self,
        *,
        repository: JobRepository,
        extractor: Extractor,
        thread_name: str = "insightboard-executor",
    ) -> None:
        self.repository = repository
        self.extractor = extractor
        self.summary = ExecutorSummary()
        self._thread_name = thread_name
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stopping = False

    def enqueue(self, job_id: str) -> None:
        """Append a job to the queue and make sure the consumer is running."""

        with self._lock:
            self._queue.put(job_id)
            if self._stopping:
                # The live consumer exits at the queued stop marker; this job
                # sits behind it, so it keeps draining instead.
                self._stopping = False
                return
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._consume,
                daemon=True,
                name=self._thread_name,
            )
            self._thread.start()
            logger.info("Executor thread started")

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until every enqueued job is processed; ``False`` on timeout."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def stop(self, timeout: float | None = 15.0) -> None:
        """Let the consumer finish queued jobs, then shut it down.

        On timeout the stop stays pending: the consumer exits once it reaches
        the stop marker, unless a job is enqueued before then.
        """

        with self._lock:
            thread = self._thread
            if thread is None:
                return
            if not self._stopping:
                self._queue.put(_STOP)
                self._stopping = True
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Executor thread did not stop within %s seconds", timeout)
            return
        with self._lock:
            if self._thread is thread:
                self._thread = None
                self._stopping = False
        logger.info("Executor thread stopped")

    def process_job(self, job_id: str) -> bool:
        """Run one job to a terminal state. Returns ``True`` on success."""

        try:
            self.repository.mark_processing(job_id)
        except JobNotFoundError:
            logger.warning("Skipping unknown job %s", job_id)
            return False
        except InvalidJobTransition as error:
            logger.warning("Skipping job %s: %s", job_id, error)
            return False
        except Exception as error:  # noqa: BLE001
            self.summary.processed += 1
            self._record_failure(job_id, error, started=False)
            return False

        self.summary.processed += 1
        try:
            job = self.repository.find_job(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            result = self.extractor.extract(job.transcript)
            graph = build_dependency_graph(result.tasks, result.source_model)
            self.repository.mark_completed(
                job_id,
                graph_json=dump_graph(graph),
                source_model=result.source_model,
            )
        except Exception as error:  # noqa: BLE001
            self._record_failure(job_id, error, started=True)
            return False

        self.summary.succeeded += 1
        logger.info(
            "Job %s completed: %d tasks, cycle_detected=%s",
            job_id,
            len(graph.tasks),
            graph.metadata.cycle_detected,
        )
        return True

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    with self._lock:
                        if not self._stopping or not self._queue.empty():
                            # A job enqueued after stop() reclaimed this thread;
                            # only the last stop marker ends it.
                            continue
                        self._stopping = False
                        if self._thread is threading.current_thread():
                            self._thread = None
                    return
                self.process_job(str(item))
            except Exception:
                logger.exception("Executor error while processing %s", item)
            finally:
                self._queue.task_done()

    def _record_failure(self, job_id: str, error: Exception, *, started: bool) -> None:
        self.summary.failed += 1
        if isinstance(error, (GenerationFailure, PersistenceFailure)):
            logger.warning("Job %s failed: %s", job_id, error)
        else:
            logger.exception("Job %s failed unexpectedly", job_id)

        message = sanitize_error(str(error) or type(error).__name__)
        try:
            if not started:
                try:
                    self.repository.abort_pending(job_id, error=message)
                    return
                except InvalidJobTransition as transition:
                    # mark_processing committed before raising.
                    if transition.status_from != JobStatus.PROCESSING:
                        raise
            self.repository.mark_failed(job_id, error=message)
        except Exception:
            logger.exception("Could not record failure for job %s", job_id)
