"""InvariantRepository — read-only scans for ledger invariant violations.

The CHECK constraints make most of these impossible; the scans exist to prove
it on a live database and to catch rows written before a constraint existed.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_admin.domain.models import (
    BalanceViolation,
    ContractViolation,
    OpenWithdrawalViolation,
)

_NEGATIVE_BALANCES_SQL = text("""
    SELECT CAST(id AS TEXT) AS user_id, pending_balance, available_balance
    FROM users
    WHERE role = 'freelancer' AND (pending_balance < 0 OR available_balance < 0)
    ORDER BY id
""")

_CONTRACT_VIOLATIONS_SQL = text("""
    SELECT CAST(id AS TEXT) AS contract_id, total_amount, released_amount,
           milestone_count, completed_milestones
    FROM contracts
    WHERE released_amount < 0
       OR released_amount > total_amount
       OR completed_milestones > milestone_count
    ORDER BY id
""")

_OPEN_WITHDRAWALS_SQL = text("""
    SELECT CAST(freelancer_id AS TEXT) AS freelancer_id, COUNT(*) AS open_count
    FROM withdrawals
    WHERE status IN ('PENDING', 'PROCESSING')
    GROUP BY freelancer_id
    HAVING COUNT(*) > :max_open
    ORDER BY freelancer_id
""")


class InvariantRepository:
    async def negative_balances(self, db: AsyncSession) -> list[BalanceViolation]:
        result = await db.execute(_NEGATIVE_BALANCES_SQL)
        return [
            BalanceViolation(
                user_id=row.user_id,
                pending_balance=row.pending_balance,
                available_balance=row.available_balance,
            )
            for row in result.fetchall()
        ]

    async def contract_violations(self, db: AsyncSession) -> list[ContractViolation]:
        result = await db.execute(_CONTRACT_VIOLATIONS_SQL)
        return [
            ContractViolation(
                contract_id=row.contract_id,
                total_amount=row.total_amount,
                released_amount=row.released_amount,
                milestone_count=row.milestone_count,
                completed_milestones=row.completed_milestones,
            )
            for row in result.fetchall()
        ]

    async def open_withdrawal_violations(
        self, db: AsyncSession, max_open: int
    ) -> list[OpenWithdrawalViolation]:
        result = await db.execute(_OPEN_WITHDRAWALS_SQL, {"max_open": max_open})
        return [
            OpenWithdrawalViolation(freelancer_id=row.freelancer_id, open_count=row.open_count)
            for row in result.fetchall()
        ]
