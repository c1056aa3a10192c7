"""Pydantic schemas and cursor utilities for the transaction history API."""

import base64
import binascii
import json
from typing import Any

from pydantic import BaseModel

from src.fm_common.cents import cents_to_display


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        return None


class TransactionItem(BaseModel):
    id: int
    transaction_id: str
    type: str
    status: str
    from_party: str | None
    to_party: str | None
    amount_cents: int
    amount_display: str
    fee_cents: int
    fee_display: str
    net_amount_cents: int
    net_amount_display: str
    currency: str
    related_entity_id: str
    related_entity_type: str
    description: str | None
    metadata: dict[str, Any]
    created_at: str  # ISO8601 string

    @classmethod
    def from_entry(cls, e: Any) -> "TransactionItem":
        return cls(
            id=e.id,
            transaction_id=e.transaction_id,
            type=e.type,
            status=e.status,
            from_party=e.from_party,
            to_party=e.to_party,
            amount_cents=e.amount,
            amount_display=cents_to_display(e.amount),
            fee_cents=e.fee,
            fee_display=cents_to_display(e.fee),
            net_amount_cents=e.net_amount,
            net_amount_display=cents_to_display(e.net_amount),
            currency=e.currency,
            related_entity_id=e.related_entity_id,
            related_entity_type=e.related_entity_type,
            description=e.description,
            metadata=e.metadata,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool
