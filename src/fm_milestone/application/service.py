"""MilestoneSettlementService — milestone lifecycle and escrow release.

Approval is the only operation that moves money. All of its DB-local steps
run in one transaction, and the first write is the guarded SUBMITTED -> APPROVED
claim, so two concurrent approvals of the same milestone cannot both release.
Audit and notification writes run in savepoints and never fail the release.
"""

import logging
from collections import Counter

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.best_effort import run_best_effort
from src.fm_common.cents import cents_to_display
from src.fm_common.datetime_utils import utc_now
from src.fm_common.enums import (
    BalanceField,
    ContractStatus,
    MilestoneStatus,
    NotificationType,
    ReconciliationIssueKind,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
)
from src.fm_common.errors import (
    ConcurrentBalanceConflictError,
    ContractNotActiveError,
    ContractNotFoundError,
    DeliverablesRequiredError,
    DuplicateMilestoneOrderError,
    EscrowNotFundedError,
    FeedbackRequiredError,
    FreelancerNotFoundError,
    InsufficientContractBalanceError,
    InsufficientPendingBalanceError,
    MilestoneLockedError,
    MilestoneNotFoundError,
    PermissionDeniedError,
    SettlementConflictError,
)
from src.fm_common.id_generator import generate_id, generate_transaction_id
from src.fm_ledger.application.reconciliation import flag_for_reconciliation
from src.fm_ledger.domain.models import Contract
from src.fm_ledger.domain.repository import (
    LedgerRepositoryProtocol,
    ReconciliationRepositoryProtocol,
)
from src.fm_ledger.infrastructure.persistence import LedgerRepository
from src.fm_ledger.infrastructure.reconciliation import ReconciliationRepository
from src.fm_milestone.application.schemas import (
    ApproveMilestoneResponse,
    CreateMilestoneRequest,
    MilestoneListResponse,
    MilestoneResponse,
    MilestoneSummary,
    ReorderItem,
    SubmitMilestoneRequest,
    UpdateMilestoneRequest,
)
from src.fm_milestone.domain.models import Milestone
from src.fm_milestone.domain.repository import MilestoneRepositoryProtocol
from src.fm_milestone.domain.state_machine import ensure_transition
from src.fm_milestone.infrastructure.persistence import MilestoneRepository
from src.fm_notification.application.notifier import Notifier
from src.fm_transaction_log.domain.models import TransactionLogEntry
from src.fm_transaction_log.domain.repository import TransactionLogRepositoryProtocol
from src.fm_transaction_log.infrastructure.persistence import TransactionLogRepository

logger = logging.getLogger(__name__)

_ENTITY = "milestone"


def _require_client(contract: Contract, caller_id: str, action: str) -> None:
    if contract.client_id != caller_id:
        raise PermissionDeniedError(action)


def _require_freelancer(contract: Contract, caller_id: str, action: str) -> None:
    if contract.freelancer_id != caller_id:
        raise PermissionDeniedError(action)


def _require_party(contract: Contract, caller_id: str) -> None:
    if caller_id not in (contract.client_id, contract.freelancer_id):
        raise PermissionDeniedError("view milestones of this contract")


async def _commit_ordering(db: AsyncSession, order: int) -> None:
    """Commit; the deferred (contract_id, sort_order) constraint fires here."""
    try:
        await db.commit()
    except IntegrityError as e:
        raise DuplicateMilestoneOrderError(order) from e


class MilestoneSettlementService:
    def __init__(
        self,
        repo: MilestoneRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        tx_log: TransactionLogRepositoryProtocol | None = None,
        reconciliation: ReconciliationRepositoryProtocol | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._repo: MilestoneRepositoryProtocol = repo or MilestoneRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._tx_log: TransactionLogRepositoryProtocol = tx_log or TransactionLogRepository()
        self._recon: ReconciliationRepositoryProtocol = (
            reconciliation or ReconciliationRepository()
        )
        self._notifier = notifier or Notifier()

    async def _load(self, db: AsyncSession, milestone_id: str) -> tuple[Milestone, Contract]:
        milestone = await self._repo.get_by_id(db, milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)
        contract = await self._ledger.get_contract(db, milestone.contract_id)
        if contract is None:
            raise ContractNotFoundError(milestone.contract_id)
        return milestone, contract

    async def _get_contract(self, db: AsyncSession, contract_id: str) -> Contract:
        contract = await self._ledger.get_contract(db, contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, db: AsyncSession, caller_id: str, milestone_id: str) -> MilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_party(contract, caller_id)
        return MilestoneResponse.from_domain(milestone)

    async def list_for_contract(
        self,
        db: AsyncSession,
        caller_id: str,
        contract_id: str,
        status: str | None = None,
        overdue: bool | None = None,
    ) -> MilestoneListResponse:
        """List a contract's milestones, optionally narrowed by status or overdue flag.

        The summary always describes the whole contract; filters only narrow `items`.
        """
        contract = await self._get_contract(db, contract_id)
        _require_party(contract, caller_id)
        milestones = await self._repo.list_by_contract(db, contract_id)
        now = utc_now()
        items = [
            m for m in milestones
            if (status is None or m.status == status)
            and (overdue is None or m.is_overdue(now) == overdue)
        ]
        total = sum(m.amount for m in milestones)
        approved = sum(m.amount for m in milestones if m.status == MilestoneStatus.APPROVED.value)
        return MilestoneListResponse(
            items=[MilestoneResponse.from_domain(m) for m in items],
            summary=MilestoneSummary(
                total_count=len(milestones),
                by_status=dict(Counter(m.status for m in milestones)),
                total_amount_cents=total,
                total_amount_display=cents_to_display(total),
                approved_amount_cents=approved,
                approved_amount_display=cents_to_display(approved),
                overdue_count=sum(1 for m in milestones if m.is_overdue(now)),
            ),
        )

    async def list_overdue(self, db: AsyncSession, caller_id: str) -> list[MilestoneResponse]:
        """Unapproved milestones past their due date across the caller's contracts."""
        rows = await self._repo.list_overdue_for_party(db, caller_id, utc_now())
        return [MilestoneResponse.from_domain(m) for m in rows]

    # ------------------------------------------------------------------
    # Client-side editing
    # ------------------------------------------------------------------

    async def create(
        self, db: AsyncSession, caller_id: str, req: CreateMilestoneRequest
    ) -> MilestoneResponse:
        contract = await self._get_contract(db, req.contract_id)
        _require_client(contract, caller_id, "create milestones on this contract")
        if contract.status != ContractStatus.ACTIVE.value:
            raise ContractNotActiveError(contract.id, contract.status)
        if await self._repo.order_taken(db, contract.id, req.order):
            raise DuplicateMilestoneOrderError(req.order)

        milestone = Milestone(
            id=generate_id(),
            contract_id=contract.id,
            title=req.title.strip(),
            description=req.description,
            amount=req.amount_cents,
            currency=contract.currency,
            sort_order=req.order,
            due_date=req.due_date,
        )
        try:
            created = await self._repo.insert(db, milestone)
            if await self._ledger.adjust_milestone_count(db, contract.id, 1) is None:
                raise SettlementConflictError("contract", contract.id)
            await self._notifier.notify(
                db,
                NotificationType.MILESTONE_CREATED.value,
                created.id,
                contract.freelancer_id,
                {"contract_id": contract.id, "title": created.title, "amount": created.amount},
            )
            await _commit_ordering(db, req.order)
        except Exception:
            await db.rollback()
            raise
        return MilestoneResponse.from_domain(created)

    async def update(
        self,
        db: AsyncSession,
        caller_id: str,
        milestone_id: str,
        req: UpdateMilestoneRequest,
    ) -> MilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_client(contract, caller_id, "update this milestone")
        if not milestone.is_editable:
            raise MilestoneLockedError(milestone.id, milestone.status)
        amount_changes = req.amount_cents is not None and req.amount_cents != milestone.amount
        if amount_changes and milestone.is_amount_locked:
            raise MilestoneLockedError(milestone.id, milestone.status)
        order_changes = req.order is not None and req.order != milestone.sort_order
        if order_changes and await self._repo.order_taken(
            db, contract.id, req.order, exclude_id=milestone.id
        ):
            raise DuplicateMilestoneOrderError(req.order)

        updated = milestone
        try:
            if order_changes:
                if not await self._repo.set_order(db, contract.id, milestone.id, req.order):
                    raise SettlementConflictError(_ENTITY, milestone.id)
            details = (req.title, req.description, req.due_date)
            if amount_changes or any(v is not None for v in details) or order_changes:
                result = await self._repo.update_details(
                    db,
                    milestone.id,
                    title=req.title.strip() if req.title else None,
                    description=req.description,
                    amount=req.amount_cents if amount_changes else None,
                    due_date=req.due_date,
                )
                if result is None:
                    raise SettlementConflictError(_ENTITY, milestone.id)
                updated = result
            await _commit_ordering(db, req.order or milestone.sort_order)
        except Exception:
            await db.rollback()
            raise
        return MilestoneResponse.from_domain(updated)

    async def delete(self, db: AsyncSession, caller_id: str, milestone_id: str) -> None:
        milestone, contract = await self._load(db, milestone_id)
        _require_client(contract, caller_id, "delete this milestone")
        if not milestone.is_editable:
            raise MilestoneLockedError(milestone.id, milestone.status)
        try:
            if not await self._repo.delete(db, milestone.id):
                raise SettlementConflictError(_ENTITY, milestone.id)
            if await self._ledger.adjust_milestone_count(db, contract.id, -1) is None:
                raise SettlementConflictError("contract", contract.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Milestone %s deleted from contract %s", milestone.id, contract.id)

    async def reorder(
        self,
        db: AsyncSession,
        caller_id: str,
        contract_id: str,
        items: list[ReorderItem],
    ) -> MilestoneListResponse:
        contract = await self._get_contract(db, contract_id)
        _require_client(contract, caller_id, "reorder milestones of this contract")

        seen_orders: set[int] = set()
        seen_ids: set[str] = set()
        for item in items:
            if item.order in seen_orders or item.milestone_id in seen_ids:
                raise DuplicateMilestoneOrderError(item.order)
            seen_orders.add(item.order)
            seen_ids.add(item.milestone_id)

        existing = {m.id: m for m in await self._repo.list_by_contract(db, contract_id)}
        for item in items:
            m = existing.get(item.milestone_id)
            if m is None:
                raise MilestoneNotFoundError(item.milestone_id)
            if not m.is_editable:
                raise MilestoneLockedError(m.id, m.status)
        untouched = {m.sort_order for m in existing.values() if m.id not in seen_ids}
        for item in items:
            if item.order in untouched:
                raise DuplicateMilestoneOrderError(item.order)

        try:
            for item in items:
                if not await self._repo.set_order(db, contract_id, item.milestone_id, item.order):
                    raise SettlementConflictError(_ENTITY, item.milestone_id)
            await _commit_ordering(db, items[0].order)
        except Exception:
            await db.rollback()
            raise
        return await self.list_for_contract(db, caller_id, contract_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, db: AsyncSession, caller_id: str, milestone_id: str) -> MilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_freelancer(contract, caller_id, "start this milestone")
        ensure_transition(
            milestone.id, milestone.status, MilestoneStatus.IN_PROGRESS.value, "start"
        )
        try:
            updated = await self._repo.mark_in_progress(db, milestone.id)
            if updated is None:
                raise SettlementConflictError(_ENTITY, milestone.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MilestoneResponse.from_domain(updated)

    async def submit(
        self,
        db: AsyncSession,
        caller_id: str,
        milestone_id: str,
        req: SubmitMilestoneRequest,
    ) -> MilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_freelancer(contract, caller_id, "submit this milestone")
        ensure_transition(
            milestone.id, milestone.status, MilestoneStatus.SUBMITTED.value, "submit"
        )
        if not req.deliverables:
            raise DeliverablesRequiredError()
        try:
            updated = await self._repo.mark_submitted(
                db, milestone.id, [d.to_domain() for d in req.deliverables], req.note
            )
            if updated is None:
                raise SettlementConflictError(_ENTITY, milestone.id)
            await self._notifier.notify(
                db,
                NotificationType.MILESTONE_SUBMITTED.value,
                updated.id,
                contract.client_id,
                {"contract_id": contract.id, "title": updated.title},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MilestoneResponse.from_domain(updated)

    async def reject(
        self,
        db: AsyncSession,
        caller_id: str,
        milestone_id: str,
        feedback: str,
    ) -> MilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_client(contract, caller_id, "reject this milestone")
        ensure_transition(
            milestone.id, milestone.status, MilestoneStatus.REJECTED.value, "reject"
        )
        if not feedback or not feedback.strip():
            raise FeedbackRequiredError()
        try:
            updated = await self._repo.mark_rejected(db, milestone.id, feedback.strip())
            if updated is None:
                raise SettlementConflictError(_ENTITY, milestone.id)
            await self._notifier.notify(
                db,
                NotificationType.MILESTONE_REJECTED.value,
                updated.id,
                contract.freelancer_id,
                {"contract_id": contract.id, "feedback": updated.client_feedback},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MilestoneResponse.from_domain(updated)

    async def approve(
        self, db: AsyncSession, caller_id: str, milestone_id: str
    ) -> ApproveMilestoneResponse:
        milestone, contract = await self._load(db, milestone_id)
        _require_client(contract, caller_id, "approve this milestone")
        ensure_transition(
            milestone.id, milestone.status, MilestoneStatus.APPROVED.value, "approve"
        )
        amount = milestone.amount

        # Pre-checks: nothing has been written yet, so failing here mutates nothing
        if not contract.is_escrow_funded:
            raise EscrowNotFundedError(contract.id)
        if contract.remaining_escrow < amount:
            raise InsufficientContractBalanceError(amount, contract.remaining_escrow)
        balance = await self._ledger.get_balance(db, contract.freelancer_id)
        if balance is None:
            raise FreelancerNotFoundError(contract.freelancer_id)
        if balance.pending_balance < amount:
            logger.error(
                "Ledger drift: freelancer %s has pending %d < milestone %s amount %d "
                "(contract %s)",
                contract.freelancer_id, balance.pending_balance, milestone.id, amount,
                contract.id,
            )
            await flag_for_reconciliation(
                db,
                self._recon,
                ReconciliationIssueKind.PENDING_BALANCE_DRIFT.value,
                RelatedEntityType.MILESTONE.value,
                milestone.id,
                contract.freelancer_id,
                amount,
                f"pending balance {balance.pending_balance} below milestone amount {amount}",
            )
            raise InsufficientPendingBalanceError(amount, balance.pending_balance)

        contract_completed = False
        try:
            approved = await self._repo.mark_approved(db, milestone.id)
            if approved is None:
                raise SettlementConflictError(_ENTITY, milestone.id)

            moved = await self._ledger.conditional_transfer(
                db,
                contract.freelancer_id,
                BalanceField.PENDING,
                BalanceField.AVAILABLE,
                amount,
            )
            if moved is None:
                logger.warning(
                    "Pending balance of %s changed during approval of %s",
                    contract.freelancer_id, milestone.id,
                )
                raise ConcurrentBalanceConflictError(contract.freelancer_id)

            released = await self._ledger.record_milestone_release(db, contract.id, amount)
            if released is None:
                raise SettlementConflictError("contract", contract.id)

            entry = TransactionLogEntry(
                transaction_id=generate_transaction_id(),
                type=TransactionType.PAYMENT.value,
                from_party=contract.client_id,
                to_party=contract.freelancer_id,
                amount=amount,
                fee=0,
                net_amount=amount,
                currency=contract.currency,
                related_entity_id=milestone.id,
                related_entity_type=RelatedEntityType.MILESTONE.value,
                status=TransactionStatus.COMPLETED.value,
                description=f"Milestone payment released: {milestone.title}",
                metadata={"contract_id": contract.id, "milestone_order": milestone.sort_order},
            )
            await run_best_effort(
                db, f"transaction log for milestone {milestone.id}",
                lambda: self._tx_log.append(db, entry),
            )
            payload = {"contract_id": contract.id, "amount": amount, "title": milestone.title}
            await self._notifier.notify(
                db, NotificationType.MILESTONE_APPROVED.value, milestone.id,
                contract.freelancer_id, payload,
            )
            for recipient in (contract.freelancer_id, contract.client_id):
                await self._notifier.notify(
                    db, NotificationType.PAYMENT_RELEASED.value, milestone.id,
                    recipient, payload,
                )

            if released.all_milestones_completed:
                completed = await self._ledger.complete_contract(db, contract.id)
                if completed is not None:
                    contract_completed = True
                    if completed.job_id:
                        await self._ledger.mark_job_completed(db, completed.job_id)
                    for recipient in (contract.client_id, contract.freelancer_id):
                        await self._notifier.notify(
                            db, NotificationType.CONTRACT_COMPLETED.value, contract.id,
                            recipient, {"contract_id": contract.id},
                        )

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Milestone %s approved: released %s to freelancer %s (contract %s%s)",
            milestone.id, cents_to_display(amount), contract.freelancer_id, contract.id,
            ", completed" if contract_completed else "",
        )
        return ApproveMilestoneResponse(
            milestone=MilestoneResponse.from_domain(approved),
            released_cents=amount,
            released_display=cents_to_display(amount),
            contract_released_cents=released.released_amount,
            contract_remaining_cents=released.remaining_escrow,
            contract_completed=contract_completed,
        )
