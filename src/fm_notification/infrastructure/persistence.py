"""OutboxRepository — durable queue of notification events in PostgreSQL.

Due rows are claimed with FOR UPDATE SKIP LOCKED so several dispatcher
instances can drain the table without delivering the same row twice.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_notification.domain.events import NotificationEvent, OutboxMessage

_ENQUEUE_SQL = text("""
    INSERT INTO notification_outbox (event_type, entity_id, recipient_id, payload)
    VALUES (:event_type, :entity_id, :recipient_id, CAST(:payload AS JSONB))
    RETURNING id
""")

_CLAIM_DUE_SQL = text("""
    SELECT id, event_type, entity_id, recipient_id, payload, status,
           attempts, last_error, next_attempt_at, created_at
    FROM notification_outbox
    WHERE status = 'PENDING' AND next_attempt_at <= NOW()
    ORDER BY id
    LIMIT :limit
    FOR UPDATE SKIP LOCKED
""")

_MARK_DELIVERED_SQL = text("""
    UPDATE notification_outbox
    SET status = 'DELIVERED', attempts = attempts + 1, delivered_at = NOW()
    WHERE id = :id
""")

_MARK_FAILED_SQL = text("""
    UPDATE notification_outbox
    SET status = CASE WHEN :dead THEN 'DEAD' ELSE 'PENDING' END,
        attempts = attempts + 1,
        last_error = :error,
        next_attempt_at = :next_attempt_at
    WHERE id = :id
""")


def _row_to_message(row: Any) -> OutboxMessage:
    payload = row.payload
    if isinstance(payload, str):
        payload = json.loads(payload)
    return OutboxMessage(
        id=row.id,
        event=NotificationEvent(
            event_type=row.event_type,
            entity_id=row.entity_id,
            recipient_id=row.recipient_id,
            payload=payload or {},
        ),
        status=row.status,
        attempts=row.attempts,
        last_error=row.last_error,
        next_attempt_at=row.next_attempt_at,
        created_at=row.created_at,
    )


class OutboxRepository:
    async def enqueue(self, db: AsyncSession, event: NotificationEvent) -> int:
        result = await db.execute(
            _ENQUEUE_SQL,
            {
                "event_type": event.event_type,
                "entity_id": event.entity_id,
                "recipient_id": event.recipient_id,
                "payload": json.dumps(event.payload),
            },
        )
        return int(result.scalar_one())

    async def claim_due(self, db: AsyncSession, limit: int) -> list[OutboxMessage]:
        result = await db.execute(_CLAIM_DUE_SQL, {"limit": limit})
        return [_row_to_message(row) for row in result.fetchall()]

    async def mark_delivered(self, db: AsyncSession, message_id: int) -> None:
        await db.execute(_MARK_DELIVERED_SQL, {"id": message_id})

    async def mark_attempt_failed(
        self,
        db: AsyncSession,
        message_id: int,
        error: str,
        next_attempt_at: datetime,
        dead: bool,
    ) -> None:
        await db.execute(
            _MARK_FAILED_SQL,
            {
                "id": message_id,
                "error": error[:1000],
                "next_attempt_at": next_attempt_at,
                "dead": dead,
            },
        )
