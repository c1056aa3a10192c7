"""Processing fee schedule and payout destination rules per withdrawal method.

Fees are deterministic: the same (method, amount) always yields the same fee,
and the fee is fixed on the withdrawal at request time.
"""

import re
from dataclasses import dataclass

from src.fm_common.cents import calculate_fee
from src.fm_common.enums import WithdrawalMethod
from src.fm_common.errors import InvalidPayoutDestinationError


@dataclass(frozen=True)
class FeeSchedule:
    rate_bps: int      # basis points, 100 = 1%
    flat_cents: int


FEE_SCHEDULES: dict[WithdrawalMethod, FeeSchedule] = {
    WithdrawalMethod.BANK_TRANSFER: FeeSchedule(rate_bps=200, flat_cents=0),
    WithdrawalMethod.PAYPAL: FeeSchedule(rate_bps=290, flat_cents=30),
    WithdrawalMethod.STRIPE: FeeSchedule(rate_bps=290, flat_cents=30),
}

_DESTINATION_PATTERNS: dict[WithdrawalMethod, tuple[re.Pattern[str], str]] = {
    WithdrawalMethod.BANK_TRANSFER: (
        re.compile(r"^ba_[A-Za-z0-9]{6,64}$"),
        "bank transfers need a tokenized bank account (ba_...)",
    ),
    WithdrawalMethod.PAYPAL: (
        re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$"),
        "PayPal payouts need the e-mail address of the PayPal account",
    ),
    WithdrawalMethod.STRIPE: (
        re.compile(r"^acct_[A-Za-z0-9]{6,64}$"),
        "Stripe payouts need a connected account id (acct_...)",
    ),
}


def compute_processing_fee(method: WithdrawalMethod, amount: int) -> int:
    schedule = FEE_SCHEDULES[method]
    return calculate_fee(amount, schedule.rate_bps, schedule.flat_cents)


def validate_destination(method: WithdrawalMethod, destination: str) -> str:
    """Return the normalized destination or raise InvalidPayoutDestinationError."""
    value = destination.strip()
    pattern, hint = _DESTINATION_PATTERNS[method]
    if not pattern.match(value):
        raise InvalidPayoutDestinationError(hint)
    return value.lower() if method == WithdrawalMethod.PAYPAL else value
