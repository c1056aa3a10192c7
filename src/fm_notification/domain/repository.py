"""Outbox and sink Protocols — dependency inversion for testability."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_notification.domain.events import NotificationEvent, OutboxMessage


class OutboxRepositoryProtocol(Protocol):
    async def enqueue(self, db: AsyncSession, event: NotificationEvent) -> int: ...

    async def claim_due(self, db: AsyncSession, limit: int) -> list[OutboxMessage]: ...

    async def mark_delivered(self, db: AsyncSession, message_id: int) -> None: ...

    async def mark_attempt_failed(
        self,
        db: AsyncSession,
        message_id: int,
        error: str,
        next_attempt_at: datetime,
        dead: bool,
    ) -> None: ...


class NotificationSinkProtocol(Protocol):
    async def deliver(self, event: NotificationEvent) -> None: ...
