"""Pydantic schemas for the withdrawal API."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.fm_common.cents import cents_to_display
from src.fm_common.enums import WithdrawalMethod
from src.fm_withdrawal.domain.models import Withdrawal

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateWithdrawalRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to withdraw in cents")
    method: WithdrawalMethod
    destination: str = Field(
        ..., min_length=1, max_length=255,
        description="ba_... bank token, PayPal e-mail, or Stripe acct_... id",
    )
    idempotency_key: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=500)

    @field_validator("idempotency_key")
    @classmethod
    def no_whitespace(cls, v: str | None) -> str | None:
        if v is not None and (v != v.strip() or " " in v):
            raise ValueError("idempotency_key must not contain whitespace")
        return v


class ProcessWithdrawalRequest(BaseModel):
    external_transfer_id: str | None = Field(
        None, min_length=1, max_length=255,
        description="Reference of a transfer made outside the payout provider API",
    )
    processing_fee_cents: int | None = Field(
        None, ge=0, description="Must equal the fee fixed at request time"
    )


class FailWithdrawalRequest(BaseModel):
    error_message: str = Field(..., min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WithdrawalResponse(BaseModel):
    id: str
    freelancer_id: str
    amount_cents: int
    amount_display: str
    processing_fee_cents: int
    processing_fee_display: str
    final_amount_cents: int
    final_amount_display: str
    currency: str
    method: str
    destination: str
    status: str
    idempotency_key: str | None = None
    description: str | None = None
    external_transfer_id: str | None = None
    error_message: str | None = None
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def from_domain(cls, w: Withdrawal) -> "WithdrawalResponse":
        return cls(
            id=w.id,
            freelancer_id=w.freelancer_id,
            amount_cents=w.amount,
            amount_display=cents_to_display(w.amount),
            processing_fee_cents=w.processing_fee,
            processing_fee_display=cents_to_display(w.processing_fee),
            final_amount_cents=w.final_amount,
            final_amount_display=cents_to_display(w.final_amount),
            currency=w.currency,
            method=w.method,
            destination=w.destination,
            status=w.status,
            idempotency_key=w.idempotency_key,
            description=w.description,
            external_transfer_id=w.external_transfer_id,
            error_message=w.error_message,
            requested_at=w.requested_at,
            processed_at=w.processed_at,
            completed_at=w.completed_at,
            failed_at=w.failed_at,
            cancelled_at=w.cancelled_at,
        )


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalResponse]
    next_cursor: str | None
    has_more: bool
