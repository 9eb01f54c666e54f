"""
Post events, lifecycle signals and queued fan-out.

Two kinds of notification leave the post lifecycle:

- Domain events (PostPublished, PostStatusChanged) are dispatched to queued
  listeners. Each listener runs on its own lane with its own retry budget,
  so a backlog or failure in one never blocks another.
- Lifecycle signals (a closed enum) are published synchronously, in-process,
  to any subscribers. A failing subscriber is logged and isolated.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, Union

from postflow.core.ports.queue import QueuedJob, QueuePort
from postflow.domain.entities import Post, PostStatus
from postflow.domain.state import is_publishing, is_unpublishing

logger = logging.getLogger(__name__)

DISPATCH_HISTORY = 100


# --- Domain events ---


@dataclass(frozen=True)
class PostPublished:
    """A post entered the published status."""

    post: Post
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def event_data(self) -> dict[str, Any]:
        return {
            "post_id": self.post.id,
            "post_title": self.post.title,
            "post_slug": self.post.slug,
            "author_id": self.post.user_id,
            "category_id": self.post.category_id,
            "published_at": self.post.published_at,
            "event_time": self.occurred_at,
        }


@dataclass(frozen=True)
class PostStatusChanged:
    """A post's status field changed value."""

    post: Post
    old_status: PostStatus
    new_status: PostStatus
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_publishing(self) -> bool:
        return is_publishing(self.old_status, self.new_status)

    @property
    def is_unpublishing(self) -> bool:
        return is_unpublishing(self.old_status, self.new_status)

    def event_data(self) -> dict[str, Any]:
        return {
            "post_id": self.post.id,
            "post_title": self.post.title,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "is_publishing": self.is_publishing,
            "is_unpublishing": self.is_unpublishing,
            "changed_at": self.occurred_at,
        }


PostEvent = Union[PostPublished, PostStatusChanged]


class QueuedListener(Protocol):
    """A listener executed by the queue worker."""

    queue: str
    tries: int

    def handles(self, event: PostEvent) -> bool:
        ...

    def handle(self, event: PostEvent) -> None:
        ...


class EventDispatcher:
    """
    Fan out post events to queued listeners.

    dispatch() only enqueues; nothing runs on the caller's thread.
    The last `history` events are kept in `dispatched`.
    """

    def __init__(
        self,
        queue: QueuePort,
        listeners: list[QueuedListener] | None = None,
        history: int = DISPATCH_HISTORY,
    ) -> None:
        self._queue = queue
        self._listeners: list[QueuedListener] = list(listeners or [])
        self.dispatched: deque[PostEvent] = deque(maxlen=history)

    def subscribe(self, listener: QueuedListener) -> None:
        self._listeners.append(listener)

    def dispatch(self, event: PostEvent) -> int:
        """Enqueue one job per interested listener. Returns jobs enqueued."""
        self.dispatched.append(event)
        count = 0
        for listener in self._listeners:
            if not listener.handles(event):
                continue
            job = QueuedJob(
                queue=listener.queue,
                name=f"{type(listener).__name__}:{type(event).__name__}",
                handler=listener.handle,
                payload=event,
                max_attempts=listener.tries,
            )
            self._queue.enqueue(listener.queue, job, max_attempts=listener.tries)
            count += 1

        logger.info(
            "Dispatched %s for post %s to %d listener(s)",
            type(event).__name__,
            event.post.id,
            count,
        )
        return count


# --- Lifecycle signals ---


class LifecycleSignal(Enum):
    CREATED = "post.created"
    DELETING = "post.deleting"
    DELETED = "post.deleted"
    RESTORED = "post.restored"


SignalHandler = Callable[[LifecycleSignal, Post], None]


class SignalBus:
    """Synchronous typed publish/subscribe for lifecycle signals."""

    def __init__(self) -> None:
        self._handlers: dict[LifecycleSignal, list[SignalHandler]] = defaultdict(list)

    def subscribe(self, signal: LifecycleSignal, handler: SignalHandler) -> None:
        self._handlers[signal].append(handler)

    def publish(self, signal: LifecycleSignal, post: Post) -> None:
        for handler in self._handlers[signal]:
            try:
                handler(signal, post)
            except Exception:
                logger.exception(
                    "Lifecycle signal handler failed",
                    extra={"signal": signal.value, "post_id": post.id},
                )
