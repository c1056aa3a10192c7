"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... WHERE <guard> RETURNING.
A result of 0 rows means the guard did not hold (insufficient funds, lost race,
or unknown freelancer); the repository returns None and never retries.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back.
"""

from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.enums import BalanceField
from src.fm_ledger.domain.models import Contract, FreelancerBalance

_BALANCE_RETURNING = """
    RETURNING CAST(id AS TEXT) AS user_id, pending_balance, available_balance, balance_version
"""

_CONTRACT_COLUMNS = """
    CAST(id AS TEXT) AS id, CAST(client_id AS TEXT) AS client_id,
    CAST(freelancer_id AS TEXT) AS freelancer_id, CAST(job_id AS TEXT) AS job_id,
    status, currency, total_amount, total_paid, released_amount,
    milestone_count, completed_milestones, completed_at
"""

# ---------------------------------------------------------------------------
# SQL: freelancer balances
# ---------------------------------------------------------------------------

_GET_BALANCE_SQL = text("""
    SELECT CAST(id AS TEXT) AS user_id, pending_balance, available_balance, balance_version
    FROM users
    WHERE id = CAST(:user_id AS UUID) AND role = 'freelancer'
""")


def _build_adjust_sql(field: BalanceField) -> TextClause:
    col = field.value
    return text(f"""
        UPDATE users
        SET {col} = {col} + :delta,
            balance_version = balance_version + 1,
            updated_at = NOW()
        WHERE id = CAST(:user_id AS UUID)
          AND role = 'freelancer'
          AND {col} >= :min_current
        {_BALANCE_RETURNING}
    """)


def _build_transfer_sql(source: BalanceField, target: BalanceField) -> TextClause:
    src, tgt = source.value, target.value
    return text(f"""
        UPDATE users
        SET {src} = {src} - :amount,
            {tgt} = {tgt} + :amount,
            balance_version = balance_version + 1,
            updated_at = NOW()
        WHERE id = CAST(:user_id AS UUID)
          AND role = 'freelancer'
          AND {src} >= :amount
        {_BALANCE_RETURNING}
    """)


# Column names come from the closed BalanceField enum, never from callers
_ADJUST_SQL: dict[BalanceField, TextClause] = {f: _build_adjust_sql(f) for f in BalanceField}
_TRANSFER_SQL: dict[tuple[BalanceField, BalanceField], TextClause] = {
    (s, t): _build_transfer_sql(s, t) for s in BalanceField for t in BalanceField if s != t
}

# ---------------------------------------------------------------------------
# SQL: contracts / jobs
# ---------------------------------------------------------------------------

_GET_CONTRACT_SQL = text(f"""
    SELECT {_CONTRACT_COLUMNS}
    FROM contracts
    WHERE id = CAST(:contract_id AS UUID)
""")

_RECORD_RELEASE_SQL = text(f"""
    UPDATE contracts
    SET released_amount      = released_amount + :amount,
        completed_milestones = completed_milestones + 1,
        updated_at = NOW()
    WHERE id = CAST(:contract_id AS UUID)
      AND total_paid > 0
      AND total_amount - released_amount >= :amount
      AND completed_milestones < milestone_count
    RETURNING {_CONTRACT_COLUMNS}
""")

_COMPLETE_CONTRACT_SQL = text(f"""
    UPDATE contracts
    SET status = 'COMPLETED', completed_at = NOW(), updated_at = NOW()
    WHERE id = CAST(:contract_id AS UUID)
      AND status <> 'COMPLETED'
      AND milestone_count > 0
      AND completed_milestones >= milestone_count
    RETURNING {_CONTRACT_COLUMNS}
""")

_MARK_JOB_COMPLETED_SQL = text("""
    UPDATE jobs
    SET status = 'COMPLETED', completed_at = NOW(), updated_at = NOW()
    WHERE id = CAST(:job_id AS UUID) AND status <> 'COMPLETED'
""")

_ADJUST_MILESTONE_COUNT_SQL = text(f"""
    UPDATE contracts
    SET milestone_count = milestone_count + :delta, updated_at = NOW()
    WHERE id = CAST(:contract_id AS UUID)
      AND milestone_count + :delta >= completed_milestones
    RETURNING {_CONTRACT_COLUMNS}
""")


def _row_to_balance(row: Any) -> FreelancerBalance:
    return FreelancerBalance(
        user_id=row.user_id,
        pending_balance=row.pending_balance,
        available_balance=row.available_balance,
        version=row.balance_version,
    )


def _row_to_contract(row: Any) -> Contract:
    return Contract(
        id=row.id,
        client_id=row.client_id,
        freelancer_id=row.freelancer_id,
        job_id=row.job_id,
        status=row.status,
        currency=row.currency,
        total_amount=row.total_amount,
        total_paid=row.total_paid,
        released_amount=row.released_amount,
        milestone_count=row.milestone_count,
        completed_milestones=row.completed_milestones,
        completed_at=row.completed_at,
    )


class LedgerRepository:
    """Concrete repository — every mutation is one guarded SQL statement."""

    async def get_balance(
        self, db: AsyncSession, user_id: str
    ) -> FreelancerBalance | None:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def conditional_adjust(
        self,
        db: AsyncSession,
        user_id: str,
        field: BalanceField,
        delta: int,
        min_current: int = 0,
    ) -> FreelancerBalance | None:
        """Add `delta` to `field` only if its current value is >= `min_current`.

        For debits the guard is raised to at least `-delta`, so no call can
        drive a balance negative regardless of the guard the caller asked for.
        """
        if delta == 0:
            raise ValueError("delta must be non-zero")
        guard = max(min_current, -delta, 0)
        result = await db.execute(
            _ADJUST_SQL[field],
            {"user_id": user_id, "delta": delta, "min_current": guard},
        )
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def conditional_transfer(
        self,
        db: AsyncSession,
        user_id: str,
        source: BalanceField,
        target: BalanceField,
        amount: int,
    ) -> FreelancerBalance | None:
        """Move `amount` from `source` to `target` only if `source` >= `amount`."""
        if source == target:
            raise ValueError("source and target balance fields must differ")
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        result = await db.execute(
            _TRANSFER_SQL[(source, target)],
            {"user_id": user_id, "amount": amount},
        )
        row = result.fetchone()
        return _row_to_balance(row) if row else None

    async def get_contract(self, db: AsyncSession, contract_id: str) -> Contract | None:
        result = await db.execute(_GET_CONTRACT_SQL, {"contract_id": contract_id})
        row = result.fetchone()
        return _row_to_contract(row) if row else None

    async def record_milestone_release(
        self, db: AsyncSession, contract_id: str, amount: int
    ) -> Contract | None:
        result = await db.execute(
            _RECORD_RELEASE_SQL, {"contract_id": contract_id, "amount": amount}
        )
        row = result.fetchone()
        return _row_to_contract(row) if row else None

    async def complete_contract(self, db: AsyncSession, contract_id: str) -> Contract | None:
        result = await db.execute(_COMPLETE_CONTRACT_SQL, {"contract_id": contract_id})
        row = result.fetchone()
        return _row_to_contract(row) if row else None

    async def mark_job_completed(self, db: AsyncSession, job_id: str) -> None:
        await db.execute(_MARK_JOB_COMPLETED_SQL, {"job_id": job_id})

    async def adjust_milestone_count(
        self, db: AsyncSession, contract_id: str, delta: int
    ) -> Contract | None:
        result = await db.execute(
            _ADJUST_MILESTONE_COUNT_SQL, {"contract_id": contract_id, "delta": delta}
        )
        row = result.fetchone()
        return _row_to_contract(row) if row else None
