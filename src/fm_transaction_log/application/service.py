"""TransactionLogService — read side of the audit trail."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_transaction_log.application.schemas import (
    TransactionItem,
    TransactionListResponse,
    cursor_decode,
    cursor_encode,
)
from src.fm_transaction_log.domain.repository import TransactionLogRepositoryProtocol
from src.fm_transaction_log.infrastructure.persistence import TransactionLogRepository


class TransactionLogService:
    def __init__(self, repo: TransactionLogRepositoryProtocol | None = None) -> None:
        self._repo: TransactionLogRepositoryProtocol = repo or TransactionLogRepository()

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        tx_type: str | None,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_for_user(db, user_id, cursor_id, limit + 1, tx_type)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page and page[-1].id else None
        return TransactionListResponse(
            items=[TransactionItem.from_entry(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
