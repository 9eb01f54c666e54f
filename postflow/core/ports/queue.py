"""
Queue / Worker Runtime Interface.

Listener jobs are enqueued on named lanes ("search-index", "notifications")
and executed later by a worker.

Key requirements:
- enqueue returns immediately (fire-and-forget from the request)
- at-least-once delivery per job
- FIFO within a lane, no ordering across lanes
- a failing job is retried up to max_attempts, then kept as failed
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID, uuid4


class JobStatus(Enum):
    """Job lifecycle status."""

    QUEUED = "queued"
    SUCCEEDED = "succeeded"
    RETRY_WAIT = "retry_wait"
    FAILED = "failed"


@dataclass
class QueuedJob:
    """A unit of work on a lane."""

    queue: str
    name: str
    handler: Callable[..., Any]
    payload: Any = None
    max_attempts: int = 3
    id: UUID = field(default_factory=uuid4)
    attempts: int = 0
    status: JobStatus = JobStatus.QUEUED
    error_message: str | None = None
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_attempt_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class JobResult:
    """Result of a job execution attempt."""

    status: JobStatus
    job_id: UUID
    message: str = ""
    error: str | None = None
    execution_time_ms: int = 0


@dataclass
class BatchResult:
    """Result of draining a lane."""

    total_processed: int
    succeeded: int
    retried: int
    failed: int
    results: list[JobResult]


class QueuePort(Protocol):
    def enqueue(self, queue_name: str, job: QueuedJob, max_attempts: int = 3) -> UUID:
        """Put a job at the back of a lane. Returns the job id."""
        ...


# Error types


class QueueError(Exception):
    """Base exception for queue-related errors."""


class UnknownQueueError(QueueError):
    """Lane name is not configured."""

    def __init__(self, queue_name: str) -> None:
        self.queue_name = queue_name
        super().__init__(f"Unknown queue: {queue_name}")
