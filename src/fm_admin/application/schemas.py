"""Pydantic schemas for the admin API."""

from datetime import datetime

from pydantic import BaseModel

from src.fm_common.cents import cents_to_display
from src.fm_ledger.domain.models import ReconciliationIssue


class BalanceViolationItem(BaseModel):
    user_id: str
    pending_balance_cents: int
    available_balance_cents: int


class ContractViolationItem(BaseModel):
    contract_id: str
    total_amount_cents: int
    released_amount_cents: int
    milestone_count: int
    completed_milestones: int


class OpenWithdrawalViolationItem(BaseModel):
    freelancer_id: str
    open_count: int


class InvariantReportResponse(BaseModel):
    ok: bool
    negative_balances: list[BalanceViolationItem]
    contract_violations: list[ContractViolationItem]
    open_withdrawal_violations: list[OpenWithdrawalViolationItem]


class ReconciliationIssueItem(BaseModel):
    id: int
    kind: str
    entity_type: str
    entity_id: str
    user_id: str | None
    amount_cents: int
    amount_display: str
    detail: str
    status: str
    created_at: datetime | None

    @classmethod
    def from_domain(cls, issue: ReconciliationIssue) -> "ReconciliationIssueItem":
        return cls(
            id=issue.id,
            kind=issue.kind,
            entity_type=issue.entity_type,
            entity_id=issue.entity_id,
            user_id=issue.user_id,
            amount_cents=issue.amount,
            amount_display=cents_to_display(issue.amount),
            detail=issue.detail,
            status=issue.status,
            created_at=issue.created_at,
        )
