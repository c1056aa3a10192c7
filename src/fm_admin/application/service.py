"""AdminService — ledger invariant checks and the reconciliation queue."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_admin.application.schemas import (
    BalanceViolationItem,
    ContractViolationItem,
    InvariantReportResponse,
    OpenWithdrawalViolationItem,
    ReconciliationIssueItem,
)
from src.fm_admin.domain.models import InvariantReport
from src.fm_admin.domain.repository import InvariantRepositoryProtocol
from src.fm_admin.infrastructure.persistence import InvariantRepository
from src.fm_ledger.domain.repository import ReconciliationRepositoryProtocol
from src.fm_ledger.infrastructure.reconciliation import ReconciliationRepository

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        invariants: InvariantRepositoryProtocol | None = None,
        reconciliation: ReconciliationRepositoryProtocol | None = None,
        max_open_withdrawals: int | None = None,
    ) -> None:
        self._invariants: InvariantRepositoryProtocol = invariants or InvariantRepository()
        self._recon: ReconciliationRepositoryProtocol = (
            reconciliation or ReconciliationRepository()
        )
        self._max_open = max_open_withdrawals or settings.MAX_OPEN_WITHDRAWALS

    async def check_invariants(self, db: AsyncSession) -> InvariantReportResponse:
        report = InvariantReport(
            negative_balances=await self._invariants.negative_balances(db),
            contract_violations=await self._invariants.contract_violations(db),
            open_withdrawal_violations=await self._invariants.open_withdrawal_violations(
                db, self._max_open
            ),
        )
        if not report.ok:
            logger.error(
                "Ledger invariant violations: %d negative balances, %d contracts, "
                "%d freelancers over the open-withdrawal bound",
                len(report.negative_balances),
                len(report.contract_violations),
                len(report.open_withdrawal_violations),
            )
        return InvariantReportResponse(
            ok=report.ok,
            negative_balances=[
                BalanceViolationItem(
                    user_id=v.user_id,
                    pending_balance_cents=v.pending_balance,
                    available_balance_cents=v.available_balance,
                )
                for v in report.negative_balances
            ],
            contract_violations=[
                ContractViolationItem(
                    contract_id=v.contract_id,
                    total_amount_cents=v.total_amount,
                    released_amount_cents=v.released_amount,
                    milestone_count=v.milestone_count,
                    completed_milestones=v.completed_milestones,
                )
                for v in report.contract_violations
            ],
            open_withdrawal_violations=[
                OpenWithdrawalViolationItem(freelancer_id=v.freelancer_id, open_count=v.open_count)
                for v in report.open_withdrawal_violations
            ],
        )

    async def list_reconciliation_issues(
        self, db: AsyncSession, limit: int
    ) -> list[ReconciliationIssueItem]:
        issues = await self._recon.list_open(db, limit)
        return [ReconciliationIssueItem.from_domain(i) for i in issues]
