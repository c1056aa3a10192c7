"""Notifier — how settlement services hand events to the outbox.

The insert runs in a SAVEPOINT of the caller's transaction: if it fails the
event is lost and logged, but the settlement it describes still commits.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.best_effort import run_best_effort
from src.fm_notification.domain.events import NotificationEvent
from src.fm_notification.domain.repository import OutboxRepositoryProtocol
from src.fm_notification.infrastructure.persistence import OutboxRepository


class Notifier:
    def __init__(self, outbox: OutboxRepositoryProtocol | None = None) -> None:
        self._outbox: OutboxRepositoryProtocol = outbox or OutboxRepository()

    async def notify(
        self,
        db: AsyncSession,
        event_type: str,
        entity_id: str,
        recipient_id: str,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        event = NotificationEvent(
            event_type=event_type,
            entity_id=entity_id,
            recipient_id=recipient_id,
            payload=payload or {},
        )
        return await run_best_effort(
            db,
            f"notify {event_type} to {recipient_id}",
            lambda: self._outbox.enqueue(db, event),
        )
