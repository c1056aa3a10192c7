"""Notification events for fm_notification.

Settlements never talk to the delivery layer directly: they enqueue a
NotificationEvent in the same database transaction as the money movement,
and the OutboxDispatcher delivers it later with its own retry policy.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class NotificationEvent:
    event_type: str                  # NotificationType value
    entity_id: str
    recipient_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "entity_id": self.entity_id,
            "recipient_id": self.recipient_id,
            "payload": self.payload,
        }


@dataclass
class OutboxMessage:
    id: int
    event: NotificationEvent
    status: str                      # OutboxStatus value
    attempts: int = 0
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    created_at: datetime | None = None
