"""Invariant scan Protocol."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_admin.domain.models import (
    BalanceViolation,
    ContractViolation,
    OpenWithdrawalViolation,
)


class InvariantRepositoryProtocol(Protocol):
    async def negative_balances(self, db: AsyncSession) -> list[BalanceViolation]: ...

    async def contract_violations(self, db: AsyncSession) -> list[ContractViolation]: ...

    async def open_withdrawal_violations(
        self, db: AsyncSession, max_open: int
    ) -> list[OpenWithdrawalViolation]: ...
