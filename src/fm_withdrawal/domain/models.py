"""Withdrawal domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fm_common.enums import WithdrawalMethod, WithdrawalStatus

OPEN_STATUSES: frozenset[str] = frozenset({
    WithdrawalStatus.PENDING.value,
    WithdrawalStatus.PROCESSING.value,
})

# Methods paid out through the payout provider API; the rest settle on manual rails
PROVIDER_ROUTED_METHODS: frozenset[str] = frozenset({WithdrawalMethod.STRIPE.value})


@dataclass
class Withdrawal:
    id: str
    freelancer_id: str
    amount: int                  # cents reserved from available balance
    processing_fee: int          # cents, fixed at request time
    final_amount: int            # cents sent to the destination
    currency: str
    method: str                  # WithdrawalMethod value
    destination: str
    status: str = WithdrawalStatus.PENDING.value
    idempotency_key: str | None = None
    description: str | None = None
    external_transfer_id: str | None = None
    error_message: str | None = None
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    cancelled_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_provider_routed(self) -> bool:
        return self.method in PROVIDER_ROUTED_METHODS
