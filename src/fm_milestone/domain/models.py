"""Milestone domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.fm_common.enums import MilestoneStatus

# Statuses in which the client may still edit, reorder or delete a milestone
EDITABLE_STATUSES: frozenset[str] = frozenset({
    MilestoneStatus.PENDING.value,
    MilestoneStatus.IN_PROGRESS.value,
    MilestoneStatus.REJECTED.value,
})


@dataclass
class Deliverable:
    filename: str
    url: str
    size: int     # bytes
    type: str     # MIME type

    def to_dict(self) -> dict[str, Any]:
        return {"filename": self.filename, "url": self.url, "size": self.size, "type": self.type}


@dataclass
class Milestone:
    id: str
    contract_id: str
    title: str
    description: str
    amount: int                  # cents
    currency: str
    sort_order: int              # 1-based, unique per contract
    status: str = MilestoneStatus.PENDING.value
    deliverables: list[Deliverable] = field(default_factory=list)
    submission_note: str | None = None
    client_feedback: str | None = None
    due_date: datetime | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def is_amount_locked(self) -> bool:
        return self.status != MilestoneStatus.PENDING.value

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.due_date is not None
            and self.due_date < now
            and self.status != MilestoneStatus.APPROVED.value
        )
