"""Pydantic schemas for the milestone API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.fm_common.cents import cents_to_display
from src.fm_milestone.domain.models import Deliverable, Milestone

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DeliverableIn(BaseModel):
    filename: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    size: int = Field(..., ge=0, description="File size in bytes")
    type: str = Field(..., min_length=1, description="MIME type")

    def to_domain(self) -> Deliverable:
        return Deliverable(filename=self.filename, url=self.url, size=self.size, type=self.type)


class CreateMilestoneRequest(BaseModel):
    contract_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    amount_cents: int = Field(..., gt=0, description="Milestone amount in cents")
    order: int = Field(..., ge=1, description="Position within the contract, 1-based")
    due_date: datetime | None = None


class UpdateMilestoneRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    amount_cents: int | None = Field(None, gt=0)
    order: int | None = Field(None, ge=1)
    due_date: datetime | None = None


class SubmitMilestoneRequest(BaseModel):
    # Emptiness is reported by the service with its own error code
    deliverables: list[DeliverableIn] = Field(default_factory=list)
    note: str | None = None


class RejectMilestoneRequest(BaseModel):
    feedback: str = ""


class ReorderItem(BaseModel):
    milestone_id: str
    order: int = Field(..., ge=1)


class ReorderMilestonesRequest(BaseModel):
    items: list[ReorderItem] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class DeliverableOut(BaseModel):
    filename: str
    url: str
    size: int
    type: str


class MilestoneResponse(BaseModel):
    id: str
    contract_id: str
    title: str
    description: str
    amount_cents: int
    amount_display: str
    currency: str
    order: int
    status: str
    deliverables: list[DeliverableOut]
    submission_note: str | None = None
    client_feedback: str | None = None
    due_date: datetime | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, m: Milestone) -> "MilestoneResponse":
        return cls(
            id=m.id,
            contract_id=m.contract_id,
            title=m.title,
            description=m.description,
            amount_cents=m.amount,
            amount_display=cents_to_display(m.amount),
            currency=m.currency,
            order=m.sort_order,
            status=m.status,
            deliverables=[DeliverableOut(**d.to_dict()) for d in m.deliverables],
            submission_note=m.submission_note,
            client_feedback=m.client_feedback,
            due_date=m.due_date,
            submitted_at=m.submitted_at,
            approved_at=m.approved_at,
            rejected_at=m.rejected_at,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )


class MilestoneSummary(BaseModel):
    total_count: int
    by_status: dict[str, int]
    total_amount_cents: int
    total_amount_display: str
    approved_amount_cents: int
    approved_amount_display: str
    overdue_count: int = 0


class MilestoneListResponse(BaseModel):
    items: list[MilestoneResponse]
    summary: MilestoneSummary


class ApproveMilestoneResponse(BaseModel):
    milestone: MilestoneResponse
    released_cents: int
    released_display: str
    contract_released_cents: int
    contract_remaining_cents: int
    contract_completed: bool
