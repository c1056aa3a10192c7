"""Transaction Log Protocol — dependency inversion for testability."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_transaction_log.domain.models import TransactionLogEntry


class TransactionLogRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, entry: TransactionLogEntry) -> int: ...

    async def update_by_related_entity(
        self,
        db: AsyncSession,
        entity_id: str,
        entity_type: str,
        status: str,
        description: str | None = None,
    ) -> int: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[TransactionLogEntry]: ...
