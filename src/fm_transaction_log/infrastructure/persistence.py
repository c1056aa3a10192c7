"""TransactionLogRepository — append-only audit trail of money movements.

Rows are only updated to mirror a status change already committed on the owning
withdrawal or milestone. Transaction ownership stays with the caller.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_transaction_log.domain.models import TransactionLogEntry

_COLUMNS = """
    id, transaction_id, type, from_party, to_party, amount, fee, net_amount,
    currency, related_entity_id, related_entity_type, status, description,
    metadata, created_at, updated_at
"""

_INSERT_SQL = text("""
    INSERT INTO transaction_logs
        (transaction_id, type, from_party, to_party, amount, fee, net_amount,
         currency, related_entity_id, related_entity_type, status, description, metadata)
    VALUES
        (:transaction_id, :type, :from_party, :to_party, :amount, :fee, :net_amount,
         :currency, :related_entity_id, :related_entity_type, :status, :description,
         CAST(:metadata AS JSONB))
    RETURNING id
""")

# COALESCE keeps the original description when the patch carries none
_UPDATE_BY_ENTITY_SQL = text("""
    UPDATE transaction_logs
    SET status = :status,
        description = COALESCE(:description, description),
        updated_at = NOW()
    WHERE related_entity_id = :entity_id
      AND related_entity_type = :entity_type
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transaction_logs
    WHERE (from_party = :user_id OR to_party = :user_id)
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:tx_type AS TEXT) IS NULL OR type = :tx_type)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_entry(row: Any) -> TransactionLogEntry:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return TransactionLogEntry(
        id=row.id,
        transaction_id=row.transaction_id,
        type=row.type,
        from_party=row.from_party,
        to_party=row.to_party,
        amount=row.amount,
        fee=row.fee,
        net_amount=row.net_amount,
        currency=row.currency,
        related_entity_id=row.related_entity_id,
        related_entity_type=row.related_entity_type,
        status=row.status,
        description=row.description,
        metadata=metadata or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class TransactionLogRepository:
    async def append(self, db: AsyncSession, entry: TransactionLogEntry) -> int:
        result = await db.execute(
            _INSERT_SQL,
            {
                "transaction_id": entry.transaction_id,
                "type": entry.type,
                "from_party": entry.from_party,
                "to_party": entry.to_party,
                "amount": entry.amount,
                "fee": entry.fee,
                "net_amount": entry.net_amount,
                "currency": entry.currency,
                "related_entity_id": entry.related_entity_id,
                "related_entity_type": entry.related_entity_type,
                "status": entry.status,
                "description": entry.description,
                "metadata": json.dumps(entry.metadata),
            },
        )
        entry.id = int(result.scalar_one())
        return entry.id

    async def update_by_related_entity(
        self,
        db: AsyncSession,
        entity_id: str,
        entity_type: str,
        status: str,
        description: str | None = None,
    ) -> int:
        result = await db.execute(
            _UPDATE_BY_ENTITY_SQL,
            {
                "entity_id": entity_id,
                "entity_type": entity_type,
                "status": status,
                "description": description,
            },
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[TransactionLogEntry]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "tx_type": tx_type,
                "limit": limit,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]
