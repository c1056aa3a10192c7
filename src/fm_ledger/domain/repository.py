"""Ledger Store Protocols — dependency inversion for testability.

Balances are never exposed as a getter/setter pair: the only mutations are
guarded conditional updates that the storage engine applies in one round trip.
A `None` result means the guard did not hold.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.enums import BalanceField
from src.fm_ledger.domain.models import Contract, FreelancerBalance, ReconciliationIssue


class LedgerRepositoryProtocol(Protocol):
    async def get_balance(
        self, db: AsyncSession, user_id: str
    ) -> FreelancerBalance | None: ...

    async def conditional_adjust(
        self,
        db: AsyncSession,
        user_id: str,
        field: BalanceField,
        delta: int,
        min_current: int = 0,
    ) -> FreelancerBalance | None: ...

    async def conditional_transfer(
        self,
        db: AsyncSession,
        user_id: str,
        source: BalanceField,
        target: BalanceField,
        amount: int,
    ) -> FreelancerBalance | None: ...

    async def get_contract(self, db: AsyncSession, contract_id: str) -> Contract | None: ...

    async def record_milestone_release(
        self, db: AsyncSession, contract_id: str, amount: int
    ) -> Contract | None: ...

    async def complete_contract(self, db: AsyncSession, contract_id: str) -> Contract | None: ...

    async def mark_job_completed(self, db: AsyncSession, job_id: str) -> None: ...

    async def adjust_milestone_count(
        self, db: AsyncSession, contract_id: str, delta: int
    ) -> Contract | None: ...


class ReconciliationRepositoryProtocol(Protocol):
    async def record_issue(
        self,
        db: AsyncSession,
        kind: str,
        entity_type: str,
        entity_id: str,
        user_id: str | None,
        amount: int,
        detail: str,
    ) -> int: ...

    async def list_open(self, db: AsyncSession, limit: int) -> list[ReconciliationIssue]: ...
