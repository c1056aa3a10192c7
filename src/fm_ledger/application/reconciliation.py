"""Escalation path for ledger states no automatic step can repair.

The issue row is committed on its own so it survives whatever the caller
does with its transaction afterwards.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_ledger.domain.repository import ReconciliationRepositoryProtocol

logger = logging.getLogger(__name__)


async def flag_for_reconciliation(
    db: AsyncSession,
    repo: ReconciliationRepositoryProtocol,
    kind: str,
    entity_type: str,
    entity_id: str,
    user_id: str | None,
    amount: int,
    detail: str,
) -> int | None:
    """Record a reconciliation issue. Returns its id, or None if even that failed."""
    try:
        issue_id = await repo.record_issue(
            db, kind, entity_type, entity_id, user_id, amount, detail
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(
            "Could not record reconciliation issue %s for %s %s (amount=%d): %s",
            kind, entity_type, entity_id, amount, detail,
        )
        return None
    logger.warning(
        "Reconciliation issue %d opened: %s for %s %s", issue_id, kind, entity_type, entity_id
    )
    return issue_id
