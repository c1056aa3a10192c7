"""WithdrawalRepository Protocol — interface contract for persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_withdrawal.domain.models import Withdrawal


class WithdrawalRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, withdrawal_id: str) -> Withdrawal | None: ...

    async def get_by_idempotency_key(
        self, db: AsyncSession, freelancer_id: str, idempotency_key: str
    ) -> Withdrawal | None: ...

    async def lock_freelancer(self, db: AsyncSession, freelancer_id: str) -> None: ...

    async def count_open(self, db: AsyncSession, freelancer_id: str) -> int: ...

    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal: ...

    async def mark_processing(
        self, db: AsyncSession, withdrawal_id: str, external_transfer_id: str
    ) -> Withdrawal | None: ...

    async def mark_completed(self, db: AsyncSession, withdrawal_id: str) -> Withdrawal | None: ...

    async def mark_failed(
        self,
        db: AsyncSession,
        withdrawal_id: str,
        error_message: str,
        cancelled: bool = False,
    ) -> Withdrawal | None: ...

    async def list_for_freelancer(
        self,
        db: AsyncSession,
        freelancer_id: str,
        cursor_id: str | None,
        limit: int,
        status: str | None,
    ) -> list[Withdrawal]: ...

    async def list_pending(self, db: AsyncSession, limit: int) -> list[Withdrawal]: ...
