"""
Dev Notification Channels.

Log-only email, push and webhook channels. Nothing leaves the process:
each delivery is logged, kept in a bounded in-memory history, and
reported as SKIPPED.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from postflow.core.ports.notify import ChannelResult, ChannelStatus

logger = logging.getLogger(__name__)

SENT_HISTORY = 100


@dataclass
class LoggedNotification:
    """Record of a logged notification for test assertions."""

    id: str
    channel: str
    target: str | None
    payload: dict[str, Any]
    logged_at: datetime


@dataclass
class _DevChannel:
    sent: deque[LoggedNotification] = field(default_factory=lambda: deque(maxlen=SENT_HISTORY))
    log_level: int = logging.INFO

    channel_name = "dev"
    requires_target = False

    @property
    def name(self) -> str:
        return self.channel_name

    def _target(self, payload: dict[str, Any]) -> str | None:
        return None

    def send(self, payload: dict[str, Any]) -> ChannelResult:
        target = self._target(payload)
        if target is None and self.requires_target:
            return ChannelResult(
                channel=self.name,
                status=ChannelStatus.SKIPPED,
                message="No target configured",
            )

        record = LoggedNotification(
            id=f"dev-{uuid4().hex[:12]}",
            channel=self.name,
            target=target,
            payload=dict(payload),
            logged_at=datetime.now(UTC),
        )
        self.sent.append(record)
        logger.log(
            self.log_level,
            "%s (dev): To=%s, Post=%s, Title=%s, URL=%s, ID=%s",
            self.name.upper(),
            target or "*",
            payload.get("post_id"),
            payload.get("title"),
            payload.get("url"),
            record.id,
        )
        return ChannelResult(
            channel=self.name,
            status=ChannelStatus.SKIPPED,
            message="Dev mode - notification logged, not sent",
        )

    # --- Test Helper Methods ---

    def last(self) -> LoggedNotification | None:
        return self.sent[-1] if self.sent else None

    def for_post(self, post_id: int) -> list[LoggedNotification]:
        return [n for n in self.sent if n.payload.get("post_id") == post_id]

    def clear(self) -> None:
        self.sent.clear()

    @property
    def count(self) -> int:
        return len(self.sent)


@dataclass
class DevEmailChannel(_DevChannel):
    """Admin email announcing a new post."""

    channel_name = "email"
    requires_target = True

    def _target(self, payload: dict[str, Any]) -> str | None:
        return payload.get("admin_email")


@dataclass
class DevPushChannel(_DevChannel):
    """Browser push broadcast to subscribers."""

    channel_name = "push"


@dataclass
class DevWebhookChannel(_DevChannel):
    """POST of the payload to the configured admin webhook."""

    channel_name = "webhook"
    requires_target = True

    def _target(self, payload: dict[str, Any]) -> str | None:
        return payload.get("webhook_url")


def create_dev_channels(push_enabled: bool = True) -> list[_DevChannel]:
    channels: list[_DevChannel] = [DevEmailChannel()]
    if push_enabled:
        channels.append(DevPushChannel())
    channels.append(DevWebhookChannel())
    return channels
