"""MilestoneRepository — raw SQL persistence for contract milestones.

Status changes are single guarded UPDATEs whose WHERE clause lists the legal
source statuses taken from the domain state machine. Transaction ownership
stays with the caller.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.enums import MilestoneStatus
from src.fm_milestone.domain.models import EDITABLE_STATUSES, Deliverable, Milestone
from src.fm_milestone.domain.state_machine import sources_of


def _in_list(statuses: tuple[str, ...] | frozenset[str]) -> str:
    # Only ever fed with MilestoneStatus values, never with request data
    return ", ".join(f"'{s}'" for s in sorted(statuses))


_COLUMNS = """
    id, CAST(contract_id AS TEXT) AS contract_id, title, description, amount, currency,
    sort_order, status, deliverables, submission_note, client_feedback, due_date,
    submitted_at, approved_at, rejected_at, created_at, updated_at
"""

_EDITABLE = _in_list(EDITABLE_STATUSES)

_GET_BY_ID_SQL = text(f"""
    SELECT {_COLUMNS} FROM milestones WHERE id = :id
""")

_LIST_BY_CONTRACT_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM milestones
    WHERE contract_id = CAST(:contract_id AS UUID)
    ORDER BY sort_order, id
""")

# Milestones past their due date on any contract where the user is a party
_LIST_OVERDUE_FOR_PARTY_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM milestones
    WHERE due_date < :now
      AND status <> '{MilestoneStatus.APPROVED.value}'
      AND contract_id IN (
          SELECT id FROM contracts
          WHERE client_id = CAST(:user_id AS UUID) OR freelancer_id = CAST(:user_id AS UUID)
      )
    ORDER BY due_date, id
""")

_ORDER_TAKEN_SQL = text("""
    SELECT 1 FROM milestones
    WHERE contract_id = CAST(:contract_id AS UUID)
      AND sort_order = :sort_order
      AND (CAST(:exclude_id AS TEXT) IS NULL OR id <> :exclude_id)
    LIMIT 1
""")

_INSERT_SQL = text(f"""
    INSERT INTO milestones
        (id, contract_id, title, description, amount, currency, sort_order, status, due_date)
    VALUES
        (:id, CAST(:contract_id AS UUID), :title, :description, :amount, :currency,
         :sort_order, :status, :due_date)
    RETURNING {_COLUMNS}
""")

_MARK_IN_PROGRESS_SQL = text(f"""
    UPDATE milestones
    SET status = '{MilestoneStatus.IN_PROGRESS.value}', updated_at = NOW()
    WHERE id = :id AND status IN ({_in_list(sources_of(MilestoneStatus.IN_PROGRESS.value))})
    RETURNING {_COLUMNS}
""")

_MARK_SUBMITTED_SQL = text(f"""
    UPDATE milestones
    SET status = '{MilestoneStatus.SUBMITTED.value}',
        deliverables = CAST(:deliverables AS JSONB),
        submission_note = :note,
        submitted_at = NOW(),
        updated_at = NOW()
    WHERE id = :id AND status IN ({_in_list(sources_of(MilestoneStatus.SUBMITTED.value))})
    RETURNING {_COLUMNS}
""")

_MARK_APPROVED_SQL = text(f"""
    UPDATE milestones
    SET status = '{MilestoneStatus.APPROVED.value}', approved_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status IN ({_in_list(sources_of(MilestoneStatus.APPROVED.value))})
    RETURNING {_COLUMNS}
""")

_MARK_REJECTED_SQL = text(f"""
    UPDATE milestones
    SET status = '{MilestoneStatus.REJECTED.value}',
        client_feedback = :feedback,
        rejected_at = NOW(),
        updated_at = NOW()
    WHERE id = :id AND status IN ({_in_list(sources_of(MilestoneStatus.REJECTED.value))})
    RETURNING {_COLUMNS}
""")

# Amount may only change while the milestone is still PENDING
_UPDATE_DETAILS_SQL = text(f"""
    UPDATE milestones
    SET title = COALESCE(:title, title),
        description = COALESCE(:description, description),
        amount = COALESCE(:amount, amount),
        due_date = COALESCE(:due_date, due_date),
        updated_at = NOW()
    WHERE id = :id
      AND status IN ({_EDITABLE})
      AND (CAST(:amount AS BIGINT) IS NULL OR status = '{MilestoneStatus.PENDING.value}')
    RETURNING {_COLUMNS}
""")

_SET_ORDER_SQL = text(f"""
    UPDATE milestones
    SET sort_order = :sort_order, updated_at = NOW()
    WHERE id = :id
      AND contract_id = CAST(:contract_id AS UUID)
      AND status IN ({_EDITABLE})
    RETURNING id
""")

_DELETE_SQL = text(f"""
    DELETE FROM milestones
    WHERE id = :id AND status IN ({_EDITABLE})
    RETURNING id
""")


def _row_to_milestone(row: Any) -> Milestone:
    raw = row.deliverables
    if isinstance(raw, str):
        raw = json.loads(raw)
    return Milestone(
        id=row.id,
        contract_id=row.contract_id,
        title=row.title,
        description=row.description,
        amount=row.amount,
        currency=row.currency,
        sort_order=row.sort_order,
        status=row.status,
        deliverables=[Deliverable(**d) for d in (raw or [])],
        submission_note=row.submission_note,
        client_feedback=row.client_feedback,
        due_date=row.due_date,
        submitted_at=row.submitted_at,
        approved_at=row.approved_at,
        rejected_at=row.rejected_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class MilestoneRepository:
    async def get_by_id(self, db: AsyncSession, milestone_id: str) -> Milestone | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": milestone_id})
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def list_by_contract(self, db: AsyncSession, contract_id: str) -> list[Milestone]:
        result = await db.execute(_LIST_BY_CONTRACT_SQL, {"contract_id": contract_id})
        return [_row_to_milestone(row) for row in result.fetchall()]

    async def list_overdue_for_party(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> list[Milestone]:
        result = await db.execute(_LIST_OVERDUE_FOR_PARTY_SQL, {"user_id": user_id, "now": now})
        return [_row_to_milestone(row) for row in result.fetchall()]

    async def order_taken(
        self,
        db: AsyncSession,
        contract_id: str,
        sort_order: int,
        exclude_id: str | None = None,
    ) -> bool:
        result = await db.execute(
            _ORDER_TAKEN_SQL,
            {"contract_id": contract_id, "sort_order": sort_order, "exclude_id": exclude_id},
        )
        return result.fetchone() is not None

    async def insert(self, db: AsyncSession, milestone: Milestone) -> Milestone:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": milestone.id,
                "contract_id": milestone.contract_id,
                "title": milestone.title,
                "description": milestone.description,
                "amount": milestone.amount,
                "currency": milestone.currency,
                "sort_order": milestone.sort_order,
                "status": milestone.status,
                "due_date": milestone.due_date,
            },
        )
        return _row_to_milestone(result.fetchone())

    async def mark_in_progress(self, db: AsyncSession, milestone_id: str) -> Milestone | None:
        result = await db.execute(_MARK_IN_PROGRESS_SQL, {"id": milestone_id})
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def mark_submitted(
        self,
        db: AsyncSession,
        milestone_id: str,
        deliverables: list[Deliverable],
        note: str | None,
    ) -> Milestone | None:
        result = await db.execute(
            _MARK_SUBMITTED_SQL,
            {
                "id": milestone_id,
                "deliverables": json.dumps([d.to_dict() for d in deliverables]),
                "note": note,
            },
        )
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def mark_approved(self, db: AsyncSession, milestone_id: str) -> Milestone | None:
        result = await db.execute(_MARK_APPROVED_SQL, {"id": milestone_id})
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def mark_rejected(
        self, db: AsyncSession, milestone_id: str, feedback: str
    ) -> Milestone | None:
        result = await db.execute(_MARK_REJECTED_SQL, {"id": milestone_id, "feedback": feedback})
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def update_details(
        self,
        db: AsyncSession,
        milestone_id: str,
        title: str | None,
        description: str | None,
        amount: int | None,
        due_date: datetime | None,
    ) -> Milestone | None:
        result = await db.execute(
            _UPDATE_DETAILS_SQL,
            {
                "id": milestone_id,
                "title": title,
                "description": description,
                "amount": amount,
                "due_date": due_date,
            },
        )
        row = result.fetchone()
        return _row_to_milestone(row) if row else None

    async def set_order(
        self, db: AsyncSession, contract_id: str, milestone_id: str, sort_order: int
    ) -> bool:
        result = await db.execute(
            _SET_ORDER_SQL,
            {"id": milestone_id, "contract_id": contract_id, "sort_order": sort_order},
        )
        return result.fetchone() is not None

    async def delete(self, db: AsyncSession, milestone_id: str) -> bool:
        result = await db.execute(_DELETE_SQL, {"id": milestone_id})
        return result.fetchone() is not None
