"""Register of ledger states that need a human to reconcile.

Written whenever an automatic path cannot restore consistency on its own
(drift detected at approval, a refund that could not be applied, a provider
transfer whose withdrawal status could not be advanced). Rows are never
deleted; support resolves them out of band.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_ledger.domain.models import ReconciliationIssue

_INSERT_ISSUE_SQL = text("""
    INSERT INTO reconciliation_issues
        (kind, entity_type, entity_id, user_id, amount, detail)
    VALUES
        (:kind, :entity_type, :entity_id, :user_id, :amount, :detail)
    RETURNING id
""")

_LIST_OPEN_SQL = text("""
    SELECT id, kind, entity_type, entity_id, user_id, amount, detail, status, created_at
    FROM reconciliation_issues
    WHERE status = 'OPEN'
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_issue(row: Any) -> ReconciliationIssue:
    return ReconciliationIssue(
        id=row.id,
        kind=row.kind,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        user_id=row.user_id,
        amount=row.amount,
        detail=row.detail,
        status=row.status,
        created_at=row.created_at,
    )


class ReconciliationRepository:
    async def record_issue(
        self,
        db: AsyncSession,
        kind: str,
        entity_type: str,
        entity_id: str,
        user_id: str | None,
        amount: int,
        detail: str,
    ) -> int:
        result = await db.execute(
            _INSERT_ISSUE_SQL,
            {
                "kind": kind,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "user_id": user_id,
                "amount": amount,
                "detail": detail[:1000],
            },
        )
        return int(result.scalar_one())

    async def list_open(self, db: AsyncSession, limit: int) -> list[ReconciliationIssue]:
        result = await db.execute(_LIST_OPEN_SQL, {"limit": limit})
        return [_row_to_issue(row) for row in result.fetchall()]
