"""
Notification Channel Interface.

Email, push and admin webhook channels share one best-effort contract:
send a payload, report success or failure. Channels are independent; a
failure in one never blocks the others.

Implementations: postflow.adapters.dev_notify (log-only channels).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class ChannelStatus(Enum):
    SENT = "sent"
    SKIPPED = "skipped"  # Channel not configured, or dev adapter
    FAILED = "failed"


@dataclass(frozen=True)
class ChannelResult:
    channel: str
    status: ChannelStatus
    message: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != ChannelStatus.FAILED


class NotificationChannelPort(Protocol):
    @property
    def name(self) -> str:
        ...

    def send(self, payload: dict[str, Any]) -> ChannelResult:
        """Deliver a notification. May raise on transport failure."""
        ...


class NotificationError(Exception):
    """Every channel failed for a notification."""

    def __init__(self, post_id: int | None, errors: dict[str, str]) -> None:
        self.post_id = post_id
        self.errors = errors
        joined = ", ".join(f"{name}: {err}" for name, err in errors.items())
        super().__init__(f"All notification channels failed for post {post_id}: {joined}")
