"""Domain models for fm_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class FreelancerBalance:
    user_id: str
    pending_balance: int     # cents, released from escrow, not yet withdrawable
    available_balance: int   # cents, withdrawable
    version: int = 0

    @property
    def total_balance(self) -> int:
        return self.pending_balance + self.available_balance


@dataclass
class Contract:
    id: str
    client_id: str
    freelancer_id: str
    status: str
    currency: str
    total_amount: int        # cents
    total_paid: int          # cents paid into escrow by the client
    released_amount: int     # cents released to the freelancer so far
    milestone_count: int
    completed_milestones: int
    job_id: str | None = None
    completed_at: datetime | None = None

    @property
    def is_escrow_funded(self) -> bool:
        return self.total_paid > 0

    @property
    def remaining_escrow(self) -> int:
        return self.total_amount - self.released_amount

    @property
    def all_milestones_completed(self) -> bool:
        return self.milestone_count > 0 and self.completed_milestones >= self.milestone_count


@dataclass
class ReconciliationIssue:
    id: int
    kind: str                        # ReconciliationIssueKind value
    entity_type: str
    entity_id: str
    user_id: str | None
    amount: int
    detail: str
    status: str = "OPEN"
    created_at: datetime | None = None
