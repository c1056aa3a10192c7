"""Integer arithmetic utilities for cents-based settlement.

All amounts, fees, and balances use int (cents). No float, no Decimal.
"""


def validate_amount(amount: int) -> None:
    """Validate that a money amount is a strictly positive number of cents."""
    if amount <= 0:
        raise ValueError(f"Amount must be a positive number of cents, got {amount}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def calculate_fee(amount: int, fee_rate_bps: int, flat_fee: int = 0) -> int:
    """Calculate a percentage fee with ceiling division, plus a flat component.

    fee = ceil(amount * fee_rate_bps / 10000) + flat_fee
    Using integer ceiling: (a + b - 1) // b
    """
    if amount == 0:
        return 0
    pct = 0 if fee_rate_bps == 0 else (amount * fee_rate_bps + 9999) // 10000
    return pct + flat_fee
