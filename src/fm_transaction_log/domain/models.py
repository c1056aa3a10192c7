"""Domain models for fm_transaction_log — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class TransactionLogEntry:
    """One money movement as seen by the audit trail.

    A projection of ledger history: balances are never derived from it.
    """

    transaction_id: str              # public reference, txn_<snowflake>
    type: str                        # TransactionType value
    amount: int                      # cents
    fee: int                         # cents
    net_amount: int                  # cents, amount - fee
    currency: str
    related_entity_id: str
    related_entity_type: str         # RelatedEntityType value
    status: str                      # TransactionStatus value
    from_party: str | None = None    # user id, None when money leaves the platform
    to_party: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None            # BIGSERIAL, set once persisted
    created_at: datetime | None = None
    updated_at: datetime | None = None
