"""
In-Process Queue Adapter.

Named FIFO lanes held in memory, drained by a worker on demand or by a
background scheduler thread. Used for development and tests; a production
deployment would put a broker behind QueuePort instead.

Key behaviors:
- enqueue returns immediately; nothing runs on the caller's thread
- FIFO within a lane, lanes are independent
- a failing job goes to the back of its own lane until max_attempts,
  then to the failed list with its last error
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from postflow.core.ports.queue import (
    BatchResult,
    JobResult,
    JobStatus,
    QueuedJob,
    UnknownQueueError,
)

logger = logging.getLogger(__name__)


class InProcessQueue:
    """
    Thread-safe set of named lanes.

    When lanes are given up front, enqueueing on any other name raises
    UnknownQueueError; otherwise lanes are created on first use. Only the
    last `history` completed jobs are kept.
    """

    def __init__(self, lanes: Iterable[str] | None = None, history: int = 100) -> None:
        self._lock = threading.Lock()
        self._strict = lanes is not None
        self._lanes: dict[str, deque[QueuedJob]] = {name: deque() for name in lanes or ()}
        self.failed: list[QueuedJob] = []
        self.completed: deque[QueuedJob] = deque(maxlen=history)

    def _lane(self, queue_name: str) -> deque[QueuedJob]:
        if queue_name not in self._lanes:
            if self._strict:
                raise UnknownQueueError(queue_name)
            self._lanes[queue_name] = deque()
        return self._lanes[queue_name]

    def enqueue(self, queue_name: str, job: QueuedJob, max_attempts: int = 3) -> UUID:
        with self._lock:
            job.queue = queue_name
            job.max_attempts = max_attempts
            job.status = JobStatus.QUEUED
            self._lane(queue_name).append(job)
        logger.debug("Job enqueued", extra={"queue": queue_name, "job": job.name})
        return job.id

    def pop(self, queue_name: str) -> QueuedJob | None:
        with self._lock:
            lane = self._lane(queue_name)
            return lane.popleft() if lane else None

    def requeue(self, job: QueuedJob) -> None:
        with self._lock:
            job.status = JobStatus.RETRY_WAIT
            self._lane(job.queue).append(job)

    def mark_failed(self, job: QueuedJob) -> None:
        with self._lock:
            job.status = JobStatus.FAILED
            job.completed_at = datetime.now(UTC)
            self.failed.append(job)

    def mark_succeeded(self, job: QueuedJob) -> None:
        with self._lock:
            job.status = JobStatus.SUCCEEDED
            job.completed_at = datetime.now(UTC)
            self.completed.append(job)

    def pending(self, queue_name: str) -> list[QueuedJob]:
        with self._lock:
            return list(self._lane(queue_name))

    def size(self, queue_name: str) -> int:
        with self._lock:
            return len(self._lane(queue_name))

    @property
    def lanes(self) -> list[str]:
        with self._lock:
            return list(self._lanes)


class QueueWorker:
    """Executes jobs from the in-process queue, one lane at a time."""

    def __init__(self, queue: InProcessQueue) -> None:
        self._queue = queue

    def execute(self, job: QueuedJob) -> JobResult:
        start_time = time.monotonic()
        job.attempts += 1
        job.last_attempt_at = datetime.now(UTC)

        try:
            job.handler(job.payload)
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            job.error_message = str(e)
            if job.attempts < job.max_attempts:
                self._queue.requeue(job)
                status = JobStatus.RETRY_WAIT
            else:
                self._queue.mark_failed(job)
                status = JobStatus.FAILED
            logger.warning(
                "Job %s failed (attempt %d/%d): %s",
                job.name,
                job.attempts,
                job.max_attempts,
                e,
            )
            return JobResult(
                status=status,
                job_id=job.id,
                message=f"{job.name} failed",
                error=str(e),
                execution_time_ms=elapsed_ms,
            )

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        self._queue.mark_succeeded(job)
        return JobResult(
            status=JobStatus.SUCCEEDED,
            job_id=job.id,
            message=f"{job.name} done",
            execution_time_ms=elapsed_ms,
        )

    def run_pending(self, queue_name: str, max_jobs: int = 1000) -> BatchResult:
        """
        Drain a lane in FIFO order, retries included.

        max_jobs bounds the number of executions in one call.
        """
        results: list[JobResult] = []
        counts = {JobStatus.SUCCEEDED: 0, JobStatus.RETRY_WAIT: 0, JobStatus.FAILED: 0}

        for _ in range(max_jobs):
            job = self._queue.pop(queue_name)
            if job is None:
                break
            result = self.execute(job)
            results.append(result)
            counts[result.status] += 1

        return BatchResult(
            total_processed=len(results),
            succeeded=counts[JobStatus.SUCCEEDED],
            retried=counts[JobStatus.RETRY_WAIT],
            failed=counts[JobStatus.FAILED],
            results=results,
        )

    def run_all(self, max_jobs: int = 1000) -> dict[str, BatchResult]:
        return {lane: self.run_pending(lane, max_jobs) for lane in self._queue.lanes}


class QueueScheduler:
    """
    Background polling of selected lanes.

    Each poll drains every lane; an error in one lane's drain is logged and
    the loop continues.
    """

    def __init__(
        self,
        worker: QueueWorker,
        lanes: list[str],
        poll_interval_seconds: float = 5.0,
    ) -> None:
        self._worker = worker
        self._lanes = list(lanes)
        self._poll_interval = poll_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        if self._running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()
        self._running = True
        logger.info("Queue scheduler started (poll interval: %.1fs)", self._poll_interval)

    def stop(self) -> None:
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._running = False
        logger.info("Queue scheduler stopped")

    def trigger_now(self) -> dict[str, BatchResult]:
        return {lane: self._worker.run_pending(lane) for lane in self._lanes}

    @property
    def is_running(self) -> bool:
        return self._running

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._poll_interval):
            for lane in self._lanes:
                try:
                    result = self._worker.run_pending(lane)
                    if result.total_processed > 0:
                        logger.info(
                            "Lane %s processed %d jobs: %d succeeded, %d retried, %d failed",
                            lane,
                            result.total_processed,
                            result.succeeded,
                            result.retried,
                            result.failed,
                        )
                except Exception:
                    logger.exception("Error draining lane %s", lane)
