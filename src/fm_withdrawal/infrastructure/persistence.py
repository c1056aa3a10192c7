"""WithdrawalRepository — raw SQL persistence for freelancer withdrawals.

Status changes are guarded UPDATEs on the expected source status; `None`
means a concurrent request already moved the withdrawal. Transaction
ownership stays with the caller.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_withdrawal.domain.models import Withdrawal

_COLUMNS = """
    id, CAST(freelancer_id AS TEXT) AS freelancer_id, amount, processing_fee,
    final_amount, currency, method, destination, status, idempotency_key,
    description, external_transfer_id, error_message, requested_at,
    processed_at, completed_at, failed_at, cancelled_at, updated_at
"""

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM withdrawals WHERE id = :id")

_GET_BY_IDEMPOTENCY_KEY_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawals
    WHERE freelancer_id = CAST(:freelancer_id AS UUID)
      AND idempotency_key = :idempotency_key
""")

# Serializes the open-count check and the insert per freelancer until commit
_LOCK_FREELANCER_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:freelancer_id))")

_COUNT_OPEN_SQL = text("""
    SELECT COUNT(*)
    FROM withdrawals
    WHERE freelancer_id = CAST(:freelancer_id AS UUID)
      AND status IN ('PENDING', 'PROCESSING')
""")

_INSERT_SQL = text(f"""
    INSERT INTO withdrawals
        (id, freelancer_id, amount, processing_fee, final_amount, currency,
         method, destination, status, idempotency_key, description)
    VALUES
        (:id, CAST(:freelancer_id AS UUID), :amount, :processing_fee, :final_amount,
         :currency, :method, :destination, :status, :idempotency_key, :description)
    RETURNING {_COLUMNS}
""")

_MARK_PROCESSING_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'PROCESSING',
        external_transfer_id = :external_transfer_id,
        processed_at = NOW(),
        updated_at = NOW()
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_COLUMNS}
""")

_MARK_COMPLETED_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'COMPLETED', completed_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status = 'PROCESSING'
    RETURNING {_COLUMNS}
""")

_MARK_FAILED_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'FAILED',
        error_message = :error_message,
        failed_at = NOW(),
        updated_at = NOW()
    WHERE id = :id AND status IN ('PENDING', 'PROCESSING')
    RETURNING {_COLUMNS}
""")

_MARK_CANCELLED_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'FAILED',
        error_message = :error_message,
        failed_at = NOW(),
        cancelled_at = NOW(),
        updated_at = NOW()
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_COLUMNS}
""")

# Snowflake ids sort by creation time
_LIST_FOR_FREELANCER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawals
    WHERE freelancer_id = CAST(:freelancer_id AS UUID)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR CAST(id AS BIGINT) < CAST(:cursor_id AS BIGINT))
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
    ORDER BY CAST(id AS BIGINT) DESC
    LIMIT :limit
""")

_LIST_PENDING_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawals
    WHERE status = 'PENDING'
    ORDER BY requested_at
    LIMIT :limit
""")


def _row_to_withdrawal(row: Any) -> Withdrawal:
    return Withdrawal(
        id=row.id,
        freelancer_id=row.freelancer_id,
        amount=row.amount,
        processing_fee=row.processing_fee,
        final_amount=row.final_amount,
        currency=row.currency,
        method=row.method,
        destination=row.destination,
        status=row.status,
        idempotency_key=row.idempotency_key,
        description=row.description,
        external_transfer_id=row.external_transfer_id,
        error_message=row.error_message,
        requested_at=row.requested_at,
        processed_at=row.processed_at,
        completed_at=row.completed_at,
        failed_at=row.failed_at,
        cancelled_at=row.cancelled_at,
        updated_at=row.updated_at,
    )


class WithdrawalRepository:
    async def get_by_id(self, db: AsyncSession, withdrawal_id: str) -> Withdrawal | None:
        result = await db.execute(_GET_BY_ID_SQL, {"id": withdrawal_id})
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def get_by_idempotency_key(
        self, db: AsyncSession, freelancer_id: str, idempotency_key: str
    ) -> Withdrawal | None:
        result = await db.execute(
            _GET_BY_IDEMPOTENCY_KEY_SQL,
            {"freelancer_id": freelancer_id, "idempotency_key": idempotency_key},
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def lock_freelancer(self, db: AsyncSession, freelancer_id: str) -> None:
        await db.execute(_LOCK_FREELANCER_SQL, {"freelancer_id": freelancer_id})

    async def count_open(self, db: AsyncSession, freelancer_id: str) -> int:
        result = await db.execute(_COUNT_OPEN_SQL, {"freelancer_id": freelancer_id})
        return int(result.scalar_one())

    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": withdrawal.id,
                "freelancer_id": withdrawal.freelancer_id,
                "amount": withdrawal.amount,
                "processing_fee": withdrawal.processing_fee,
                "final_amount": withdrawal.final_amount,
                "currency": withdrawal.currency,
                "method": withdrawal.method,
                "destination": withdrawal.destination,
                "status": withdrawal.status,
                "idempotency_key": withdrawal.idempotency_key,
                "description": withdrawal.description,
            },
        )
        return _row_to_withdrawal(result.fetchone())

    async def mark_processing(
        self, db: AsyncSession, withdrawal_id: str, external_transfer_id: str
    ) -> Withdrawal | None:
        result = await db.execute(
            _MARK_PROCESSING_SQL,
            {"id": withdrawal_id, "external_transfer_id": external_transfer_id},
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def mark_completed(self, db: AsyncSession, withdrawal_id: str) -> Withdrawal | None:
        result = await db.execute(_MARK_COMPLETED_SQL, {"id": withdrawal_id})
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def mark_failed(
        self,
        db: AsyncSession,
        withdrawal_id: str,
        error_message: str,
        cancelled: bool = False,
    ) -> Withdrawal | None:
        sql = _MARK_CANCELLED_SQL if cancelled else _MARK_FAILED_SQL
        result = await db.execute(
            sql, {"id": withdrawal_id, "error_message": error_message[:1000]}
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def list_for_freelancer(
        self,
        db: AsyncSession,
        freelancer_id: str,
        cursor_id: str | None,
        limit: int,
        status: str | None,
    ) -> list[Withdrawal]:
        result = await db.execute(
            _LIST_FOR_FREELANCER_SQL,
            {
                "freelancer_id": freelancer_id,
                "cursor_id": cursor_id,
                "status": status,
                "limit": limit,
            },
        )
        return [_row_to_withdrawal(row) for row in result.fetchall()]

    async def list_pending(self, db: AsyncSession, limit: int) -> list[Withdrawal]:
        result = await db.execute(_LIST_PENDING_SQL, {"limit": limit})
        return [_row_to_withdrawal(row) for row in result.fetchall()]
