"""WithdrawalSettlementService — reservation, payout and compensating refund.

Money only moves twice in a withdrawal's life: the guarded reservation at
request time (available -= amount) and the refund when it fails (available
+= amount). `complete` is bookkeeping only.

The reservation is committed before the withdrawal row is written. If that
write fails the reservation is reversed by a compensating credit; if even the
credit fails the case is escalated to manual reconciliation. Provider calls
never run inside an open database transaction.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fm_common.best_effort import run_best_effort
from src.fm_common.cents import cents_to_display
from src.fm_common.enums import (
    BalanceField,
    NotificationType,
    ReconciliationIssueKind,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)
from src.fm_common.errors import (
    AppError,
    BelowMinimumPayoutError,
    ConcurrentBalanceConflictError,
    FreelancerNotFoundError,
    InsufficientAvailableBalanceError,
    InvalidStateTransitionError,
    PayoutFailedError,
    PermissionDeniedError,
    ProcessingFeeImmutableError,
    ProviderError,
    SettlementConflictError,
    TooManyOpenWithdrawalsError,
    TransferReferenceRequiredError,
    WithdrawalNotFoundError,
)
from src.fm_common.id_generator import generate_id, generate_transaction_id
from src.fm_ledger.application.reconciliation import flag_for_reconciliation
from src.fm_ledger.domain.repository import (
    LedgerRepositoryProtocol,
    ReconciliationRepositoryProtocol,
)
from src.fm_ledger.infrastructure.persistence import LedgerRepository
from src.fm_ledger.infrastructure.reconciliation import ReconciliationRepository
from src.fm_notification.application.notifier import Notifier
from src.fm_payout.domain.provider import PayoutProviderProtocol
from src.fm_payout.infrastructure.http_provider import get_payout_provider
from src.fm_transaction_log.domain.models import TransactionLogEntry
from src.fm_transaction_log.domain.repository import TransactionLogRepositoryProtocol
from src.fm_transaction_log.infrastructure.persistence import TransactionLogRepository
from src.fm_withdrawal.application.schemas import (
    CreateWithdrawalRequest,
    WithdrawalListResponse,
    WithdrawalResponse,
)
from src.fm_withdrawal.domain.fees import compute_processing_fee, validate_destination
from src.fm_withdrawal.domain.models import Withdrawal
from src.fm_withdrawal.domain.repository import WithdrawalRepositoryProtocol
from src.fm_withdrawal.infrastructure.persistence import WithdrawalRepository

logger = logging.getLogger(__name__)

_ENTITY = "withdrawal"
CANCELLED_REASON = "cancelled by freelancer"

# Statuses a withdrawal reaches once a transfer has been recorded against it
_ADVANCED_STATUSES = frozenset({
    WithdrawalStatus.PROCESSING.value,
    WithdrawalStatus.COMPLETED.value,
})


class WithdrawalSettlementService:
    def __init__(
        self,
        repo: WithdrawalRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        tx_log: TransactionLogRepositoryProtocol | None = None,
        reconciliation: ReconciliationRepositoryProtocol | None = None,
        notifier: Notifier | None = None,
        provider: PayoutProviderProtocol | None = None,
        min_payout_cents: int | None = None,
        max_open_withdrawals: int | None = None,
        auto_process: bool | None = None,
        provider_timeout: float | None = None,
        currency: str | None = None,
    ) -> None:
        self._repo: WithdrawalRepositoryProtocol = repo or WithdrawalRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._tx_log: TransactionLogRepositoryProtocol = tx_log or TransactionLogRepository()
        self._recon: ReconciliationRepositoryProtocol = (
            reconciliation or ReconciliationRepository()
        )
        self._notifier = notifier or Notifier()
        self._provider = provider
        self._min_payout = (
            settings.MIN_PAYOUT_CENTS if min_payout_cents is None else min_payout_cents
        )
        self._max_open = (
            settings.MAX_OPEN_WITHDRAWALS if max_open_withdrawals is None else max_open_withdrawals
        )
        self._auto_process = (
            settings.WITHDRAWAL_AUTO_PROCESS if auto_process is None else auto_process
        )
        self._timeout = (
            settings.PAYOUT_TIMEOUT_SECONDS if provider_timeout is None else provider_timeout
        )
        self._currency = currency or settings.DEFAULT_CURRENCY

    @property
    def provider(self) -> PayoutProviderProtocol:
        return self._provider or get_payout_provider()

    async def _get(self, db: AsyncSession, withdrawal_id: str) -> Withdrawal:
        withdrawal = await self._repo.get_by_id(db, withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_id)
        return withdrawal

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, freelancer_id: str, withdrawal_id: str
    ) -> WithdrawalResponse:
        withdrawal = await self._get(db, withdrawal_id)
        if withdrawal.freelancer_id != freelancer_id:
            raise PermissionDeniedError("view this withdrawal")
        return WithdrawalResponse.from_domain(withdrawal)

    async def list_for_freelancer(
        self,
        db: AsyncSession,
        freelancer_id: str,
        cursor: str | None,
        limit: int,
        status: str | None,
    ) -> WithdrawalListResponse:
        cursor_id = cursor if cursor and cursor.isdigit() else None
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_for_freelancer(db, freelancer_id, cursor_id, limit + 1, status)
        has_more = len(rows) > limit
        page = rows[:limit]
        return WithdrawalListResponse(
            items=[WithdrawalResponse.from_domain(w) for w in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    async def list_pending(self, db: AsyncSession, limit: int) -> list[WithdrawalResponse]:
        rows = await self._repo.list_pending(db, limit)
        return [WithdrawalResponse.from_domain(w) for w in rows]

    # ------------------------------------------------------------------
    # request
    # ------------------------------------------------------------------

    async def request(
        self, db: AsyncSession, freelancer_id: str, req: CreateWithdrawalRequest
    ) -> WithdrawalResponse:
        amount = req.amount_cents
        if req.idempotency_key:
            existing = await self._repo.get_by_idempotency_key(
                db, freelancer_id, req.idempotency_key
            )
            if existing is not None:
                logger.info(
                    "Idempotent replay of withdrawal %s (key=%s)", existing.id, req.idempotency_key
                )
                return WithdrawalResponse.from_domain(existing)

        balance = await self._ledger.get_balance(db, freelancer_id)
        if balance is None:
            raise FreelancerNotFoundError(freelancer_id)
        if await self._repo.count_open(db, freelancer_id) >= self._max_open:
            raise TooManyOpenWithdrawalsError(self._max_open)
        if balance.available_balance < amount:
            raise InsufficientAvailableBalanceError(amount, balance.available_balance)

        destination = validate_destination(req.method, req.destination)
        fee = compute_processing_fee(req.method, amount)
        final_amount = amount - fee
        if final_amount < self._min_payout:
            raise BelowMinimumPayoutError(final_amount, self._min_payout)

        # Reserve: the only debit of available balance for withdrawals
        try:
            reserved = await self._ledger.conditional_adjust(
                db, freelancer_id, BalanceField.AVAILABLE, -amount, min_current=amount
            )
            if reserved is None:
                logger.warning(
                    "Reservation of %d for %s lost the race on available balance",
                    amount, freelancer_id,
                )
                raise ConcurrentBalanceConflictError(freelancer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        withdrawal = Withdrawal(
            id=generate_id(),
            freelancer_id=freelancer_id,
            amount=amount,
            processing_fee=fee,
            final_amount=final_amount,
            currency=self._currency,
            method=req.method.value,
            destination=destination,
            idempotency_key=req.idempotency_key,
            description=req.description,
        )
        try:
            await self._repo.lock_freelancer(db, freelancer_id)
            if await self._repo.count_open(db, freelancer_id) >= self._max_open:
                raise TooManyOpenWithdrawalsError(self._max_open)
            created = await self._repo.insert(db, withdrawal)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            await self._reverse_reservation(db, withdrawal, str(exc) or type(exc).__name__)
            if isinstance(exc, IntegrityError) and req.idempotency_key:
                winner = await self._repo.get_by_idempotency_key(
                    db, freelancer_id, req.idempotency_key
                )
                if winner is not None:
                    logger.info(
                        "Concurrent replay of key %s resolved to withdrawal %s",
                        req.idempotency_key, winner.id,
                    )
                    return WithdrawalResponse.from_domain(winner)
            raise

        entry = TransactionLogEntry(
            transaction_id=generate_transaction_id(),
            type=TransactionType.WITHDRAWAL.value,
            from_party=freelancer_id,
            to_party=None,
            amount=amount,
            fee=fee,
            net_amount=final_amount,
            currency=created.currency,
            related_entity_id=created.id,
            related_entity_type=RelatedEntityType.WITHDRAWAL.value,
            status=TransactionStatus.PENDING.value,
            description=f"Withdrawal via {created.method}",
            metadata={"method": created.method, "destination": created.destination},
        )
        await self._record_side_effects(
            db,
            created,
            lambda: self._tx_log.append(db, entry),
            NotificationType.WITHDRAWAL_REQUESTED,
        )
        logger.info(
            "Withdrawal %s requested by %s: %s (fee %s) via %s",
            created.id, freelancer_id, cents_to_display(amount), cents_to_display(fee),
            created.method,
        )

        if self._auto_process and created.is_provider_routed:
            return await self.process(db, created.id)
        return WithdrawalResponse.from_domain(created)

    async def _reverse_reservation(
        self, db: AsyncSession, withdrawal: Withdrawal, reason: str
    ) -> None:
        """Compensating credit for a reservation whose withdrawal was never stored."""
        refunded = None
        try:
            refunded = await self._ledger.conditional_adjust(
                db, withdrawal.freelancer_id, BalanceField.AVAILABLE, withdrawal.amount
            )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Compensating credit for %s raised", withdrawal.freelancer_id)
        if refunded is not None:
            logger.warning(
                "Reservation of %d for %s reversed: %s",
                withdrawal.amount, withdrawal.freelancer_id, reason,
            )
            return
        logger.critical(
            "Compensating refund of %d for freelancer %s FAILED after withdrawal %s "
            "could not be stored (%s); manual reconciliation required",
            withdrawal.amount, withdrawal.freelancer_id, withdrawal.id, reason,
        )
        await flag_for_reconciliation(
            db,
            self._recon,
            ReconciliationIssueKind.REFUND_FAILED.value,
            RelatedEntityType.WITHDRAWAL.value,
            withdrawal.id,
            withdrawal.freelancer_id,
            withdrawal.amount,
            f"reservation not reversed after persist failure: {reason}",
        )

    async def _record_side_effects(
        self,
        db: AsyncSession,
        withdrawal: Withdrawal,
        log_op: Callable[[], Awaitable[object]],
        event: NotificationType,
    ) -> None:
        """Audit entry and notification for an already committed change."""
        await run_best_effort(db, f"transaction log for withdrawal {withdrawal.id}", log_op)
        await self._notifier.notify(
            db,
            event.value,
            withdrawal.id,
            withdrawal.freelancer_id,
            {"amount": withdrawal.amount, "status": withdrawal.status},
        )
        try:
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Side effects for withdrawal %s were lost", withdrawal.id)

    # ------------------------------------------------------------------
    # process / complete / fail / cancel
    # ------------------------------------------------------------------

    async def process(
        self,
        db: AsyncSession,
        withdrawal_id: str,
        external_transfer_id: str | None = None,
        processing_fee_cents: int | None = None,
    ) -> WithdrawalResponse:
        withdrawal = await self._get(db, withdrawal_id)
        if processing_fee_cents is not None and processing_fee_cents != withdrawal.processing_fee:
            raise ProcessingFeeImmutableError(withdrawal.id)
        if withdrawal.status != WithdrawalStatus.PENDING.value:
            raise InvalidStateTransitionError(_ENTITY, withdrawal.id, withdrawal.status, "process")

        transfer_id = external_transfer_id or withdrawal.external_transfer_id
        created_here = False
        if transfer_id is None and not withdrawal.is_provider_routed:
            raise TransferReferenceRequiredError(withdrawal.id, withdrawal.method)
        if transfer_id is None:
            try:
                transfer_id = await asyncio.wait_for(
                    self.provider.create_transfer(
                        withdrawal.final_amount,
                        withdrawal.destination,
                        withdrawal.currency,
                        {"withdrawal_id": withdrawal.id, "freelancer_id": withdrawal.freelancer_id},
                        idempotency_key=withdrawal.id,
                    ),
                    timeout=self._timeout,
                )
            except (ProviderError, asyncio.TimeoutError) as exc:
                reason = (
                    exc.message if isinstance(exc, AppError)
                    else f"payout provider timed out after {self._timeout:g}s"
                )
                logger.warning("Payout for withdrawal %s failed: %s", withdrawal.id, reason)
                await self._fail(db, withdrawal, reason)
                raise PayoutFailedError(withdrawal.id, reason) from exc
            created_here = True

        try:
            processing = await self._repo.mark_processing(db, withdrawal.id, transfer_id)
            if processing is None:
                raise SettlementConflictError(_ENTITY, withdrawal.id)
            await db.commit()
        except SettlementConflictError as exc:
            await db.rollback()
            current = await self._repo.get_by_id(db, withdrawal.id)
            if (
                current is not None
                and current.status in _ADVANCED_STATUSES
                and current.external_transfer_id == transfer_id
            ):
                # An overlapping process call already recorded this same transfer
                logger.info(
                    "Withdrawal %s already %s with transfer %s; treating call as replay",
                    current.id, current.status, transfer_id,
                )
                return WithdrawalResponse.from_domain(current)
            if created_here:
                await self._flag_orphaned_transfer(db, withdrawal, transfer_id, exc)
            raise
        except Exception as exc:
            await db.rollback()
            if created_here:
                await self._flag_orphaned_transfer(db, withdrawal, transfer_id, exc)
            raise

        await self._record_side_effects(
            db,
            processing,
            lambda: self._tx_log.update_by_related_entity(
                db,
                processing.id,
                RelatedEntityType.WITHDRAWAL.value,
                TransactionStatus.PENDING.value,
                f"Withdrawal via {processing.method}, transfer {transfer_id}",
            ),
            NotificationType.WITHDRAWAL_PROCESSING,
        )
        logger.info("Withdrawal %s processing (transfer %s)", processing.id, transfer_id)
        return WithdrawalResponse.from_domain(processing)

    async def _flag_orphaned_transfer(
        self, db: AsyncSession, withdrawal: Withdrawal, transfer_id: str, exc: Exception
    ) -> None:
        logger.critical(
            "Transfer %s was created for withdrawal %s but its status could not be advanced: %s",
            transfer_id, withdrawal.id, exc,
        )
        await flag_for_reconciliation(
            db,
            self._recon,
            ReconciliationIssueKind.ORPHANED_TRANSFER.value,
            RelatedEntityType.WITHDRAWAL.value,
            withdrawal.id,
            withdrawal.freelancer_id,
            withdrawal.final_amount,
            f"provider transfer {transfer_id} created, withdrawal not PROCESSING",
        )

    async def complete(self, db: AsyncSession, withdrawal_id: str) -> WithdrawalResponse:
        withdrawal = await self._get(db, withdrawal_id)
        if withdrawal.status != WithdrawalStatus.PROCESSING.value:
            raise InvalidStateTransitionError(
                _ENTITY, withdrawal.id, withdrawal.status, "complete"
            )
        try:
            completed = await self._repo.mark_completed(db, withdrawal.id)
            if completed is None:
                raise SettlementConflictError(_ENTITY, withdrawal.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._record_side_effects(
            db,
            completed,
            lambda: self._tx_log.update_by_related_entity(
                db,
                completed.id,
                RelatedEntityType.WITHDRAWAL.value,
                TransactionStatus.COMPLETED.value,
            ),
            NotificationType.WITHDRAWAL_COMPLETED,
        )
        logger.info("Withdrawal %s completed", completed.id)
        return WithdrawalResponse.from_domain(completed)

    async def fail(
        self, db: AsyncSession, withdrawal_id: str, error_message: str
    ) -> WithdrawalResponse:
        withdrawal = await self._get(db, withdrawal_id)
        if not withdrawal.is_open:
            raise InvalidStateTransitionError(_ENTITY, withdrawal.id, withdrawal.status, "fail")
        failed = await self._fail(db, withdrawal, error_message)
        return WithdrawalResponse.from_domain(failed)

    async def cancel(
        self, db: AsyncSession, freelancer_id: str, withdrawal_id: str
    ) -> WithdrawalResponse:
        withdrawal = await self._get(db, withdrawal_id)
        if withdrawal.freelancer_id != freelancer_id:
            raise PermissionDeniedError("cancel this withdrawal")
        if withdrawal.status != WithdrawalStatus.PENDING.value:
            raise InvalidStateTransitionError(_ENTITY, withdrawal.id, withdrawal.status, "cancel")
        failed = await self._fail(db, withdrawal, CANCELLED_REASON, cancelled=True)
        return WithdrawalResponse.from_domain(failed)

    async def _fail(
        self,
        db: AsyncSession,
        withdrawal: Withdrawal,
        reason: str,
        cancelled: bool = False,
    ) -> Withdrawal:
        """Mark FAILED and credit the full amount back, in one transaction."""
        try:
            failed = await self._repo.mark_failed(db, withdrawal.id, reason, cancelled)
            if failed is None:
                raise SettlementConflictError(_ENTITY, withdrawal.id)
            refunded = await self._ledger.conditional_adjust(
                db, withdrawal.freelancer_id, BalanceField.AVAILABLE, withdrawal.amount
            )
            if refunded is None:
                raise FreelancerNotFoundError(withdrawal.freelancer_id)
            await db.commit()
        except SettlementConflictError:
            await db.rollback()
            raise
        except Exception as exc:
            await db.rollback()
            logger.critical(
                "Refund of %d for withdrawal %s could not be applied: %s",
                withdrawal.amount, withdrawal.id, exc,
            )
            await flag_for_reconciliation(
                db,
                self._recon,
                ReconciliationIssueKind.REFUND_FAILED.value,
                RelatedEntityType.WITHDRAWAL.value,
                withdrawal.id,
                withdrawal.freelancer_id,
                withdrawal.amount,
                f"refund after failure '{reason}' not applied: {exc}",
            )
            raise

        tx_status = TransactionStatus.CANCELLED if cancelled else TransactionStatus.FAILED
        await self._record_side_effects(
            db,
            failed,
            lambda: self._tx_log.update_by_related_entity(
                db,
                failed.id,
                RelatedEntityType.WITHDRAWAL.value,
                tx_status.value,
                f"Withdrawal {'cancelled' if cancelled else 'failed'}: {reason}. "
                f"{cents_to_display(failed.amount)} refunded to available balance",
            ),
            NotificationType.WITHDRAWAL_FAILED,
        )
        logger.info(
            "Withdrawal %s failed (%s), %s refunded to %s",
            failed.id, reason, cents_to_display(failed.amount), failed.freelancer_id,
        )
        return failed
