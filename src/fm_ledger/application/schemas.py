"""Pydantic schemas for the fm_ledger API."""

from pydantic import BaseModel

from src.fm_common.cents import cents_to_display


class BalanceResponse(BaseModel):
    user_id: str
    pending_balance_cents: int
    pending_balance_display: str
    available_balance_cents: int
    available_balance_display: str
    total_balance_cents: int
    total_balance_display: str

    @classmethod
    def from_cents(cls, user_id: str, pending: int, available: int) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            pending_balance_cents=pending,
            pending_balance_display=cents_to_display(pending),
            available_balance_cents=available,
            available_balance_display=cents_to_display(available),
            total_balance_cents=pending + available,
            total_balance_display=cents_to_display(pending + available),
        )
