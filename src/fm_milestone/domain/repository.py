"""MilestoneRepository Protocol — interface contract for persistence layer.

Every status change is a guarded UPDATE on the expected source statuses;
`None` means another request moved the milestone first.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_milestone.domain.models import Deliverable, Milestone


class MilestoneRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, milestone_id: str) -> Milestone | None: ...

    async def list_by_contract(self, db: AsyncSession, contract_id: str) -> list[Milestone]: ...

    async def list_overdue_for_party(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> list[Milestone]: ...

    async def order_taken(
        self,
        db: AsyncSession,
        contract_id: str,
        sort_order: int,
        exclude_id: str | None = None,
    ) -> bool: ...

    async def insert(self, db: AsyncSession, milestone: Milestone) -> Milestone: ...

    async def mark_in_progress(self, db: AsyncSession, milestone_id: str) -> Milestone | None: ...

    async def mark_submitted(
        self,
        db: AsyncSession,
        milestone_id: str,
        deliverables: list[Deliverable],
        note: str | None,
    ) -> Milestone | None: ...

    async def mark_approved(self, db: AsyncSession, milestone_id: str) -> Milestone | None: ...

    async def mark_rejected(
        self, db: AsyncSession, milestone_id: str, feedback: str
    ) -> Milestone | None: ...

    async def update_details(
        self,
        db: AsyncSession,
        milestone_id: str,
        title: str | None,
        description: str | None,
        amount: int | None,
        due_date: datetime | None,
    ) -> Milestone | None: ...

    async def set_order(
        self, db: AsyncSession, contract_id: str, milestone_id: str, sort_order: int
    ) -> bool: ...

    async def delete(self, db: AsyncSession, milestone_id: str) -> bool: ...
