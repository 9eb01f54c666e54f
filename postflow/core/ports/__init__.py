# postflow - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from postflow.core.ports.cache import CacheError, CachePort
from postflow.core.ports.db import (
    NotFoundError,
    PersistenceError,
    PostRepoPort,
    RelatedDataPort,
    RepoError,
    TagRepoPort,
    UniqueConstraintError,
)
from postflow.core.ports.notify import (
    ChannelResult,
    ChannelStatus,
    NotificationChannelPort,
    NotificationError,
)
from postflow.core.ports.queue import (
    BatchResult,
    JobResult,
    JobStatus,
    QueuedJob,
    QueueError,
    QueuePort,
    UnknownQueueError,
)
from postflow.core.ports.search import SearchIndexError, SearchIndexPort
from postflow.core.ports.storage import ImageStorePort, StorageError
from postflow.core.ports.time import ClockPort

__all__ = [
    # Cache
    "CacheError",
    "CachePort",
    # DB
    "NotFoundError",
    "PersistenceError",
    "PostRepoPort",
    "RelatedDataPort",
    "RepoError",
    "TagRepoPort",
    "UniqueConstraintError",
    # Notifications
    "ChannelResult",
    "ChannelStatus",
    "NotificationChannelPort",
    "NotificationError",
    # Queue
    "BatchResult",
    "JobResult",
    "JobStatus",
    "QueuedJob",
    "QueueError",
    "QueuePort",
    "UnknownQueueError",
    # Search
    "SearchIndexError",
    "SearchIndexPort",
    # Storage
    "ImageStorePort",
    "StorageError",
    # Time
    "ClockPort",
]
