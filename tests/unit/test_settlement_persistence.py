"""Unit tests for the milestone, withdrawal, transaction-log and outbox repositories."""

import json
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from src.fm_milestone.domain.models import Deliverable, Milestone
from src.fm_milestone.infrastructure.persistence import MilestoneRepository
from src.fm_notification.domain.events import NotificationEvent
from src.fm_notification.infrastructure.persistence import OutboxRepository
from src.fm_transaction_log.domain.models import TransactionLogEntry
from src.fm_transaction_log.infrastructure.persistence import TransactionLogRepository
from src.fm_withdrawal.infrastructure.persistence import WithdrawalRepository


def _milestone_row(**kwargs: Any) -> MagicMock:
    row = MagicMock()
    row.id = kwargs.get("id", "1001")
    row.contract_id = kwargs.get("contract_id", "contract-1")
    row.title = kwargs.get("title", "Landing page")
    row.description = kwargs.get("description", "")
    row.amount = kwargs.get("amount", 5000)
    row.currency = kwargs.get("currency", "USD")
    row.sort_order = kwargs.get("sort_order", 1)
    row.status = kwargs.get("status", "PENDING")
    row.deliverables = kwargs.get("deliverables", [])
    row.submission_note = kwargs.get("submission_note")
    row.client_feedback = kwargs.get("client_feedback")
    row.due_date = kwargs.get("due_date")
    row.submitted_at = kwargs.get("submitted_at")
    row.approved_at = kwargs.get("approved_at")
    row.rejected_at = kwargs.get("rejected_at")
    row.created_at = kwargs.get("created_at", datetime.now(UTC))
    row.updated_at = kwargs.get("updated_at", datetime.now(UTC))
    return row


def _withdrawal_row(**kwargs: Any) -> MagicMock:
    row = MagicMock()
    row.id = kwargs.get("id", "9001")
    row.freelancer_id = kwargs.get("freelancer_id", "user-1")
    row.amount = kwargs.get("amount", 10000)
    row.processing_fee = kwargs.get("processing_fee", 200)
    row.final_amount = kwargs.get("final_amount", 9800)
    row.currency = kwargs.get("currency", "USD")
    row.method = kwargs.get("method", "BANK_TRANSFER")
    row.destination = kwargs.get("destination", "ba_abcdef123")
    row.status = kwargs.get("status", "PENDING")
    row.idempotency_key = kwargs.get("idempotency_key")
    row.description = kwargs.get("description")
    row.external_transfer_id = kwargs.get("external_transfer_id")
    row.error_message = kwargs.get("error_message")
    row.requested_at = kwargs.get("requested_at", datetime.now(UTC))
    row.processed_at = kwargs.get("processed_at")
    row.completed_at = kwargs.get("completed_at")
    row.failed_at = kwargs.get("failed_at")
    row.cancelled_at = kwargs.get("cancelled_at")
    row.updated_at = kwargs.get("updated_at", datetime.now(UTC))
    return row


def _db(fetchone: Any = None, fetchall: list[Any] | None = None, scalar: Any = None) -> AsyncMock:
    db = AsyncMock()
    result_mock = MagicMock()
    result_mock.fetchone.return_value = fetchone
    result_mock.fetchall.return_value = fetchall or []
    result_mock.scalar_one.return_value = scalar
    result_mock.rowcount = 1
    db.execute.return_value = result_mock
    return db


def _sql(db: AsyncMock) -> str:
    return str(db.execute.call_args.args[0])


def _params(db: AsyncMock) -> dict[str, Any]:
    return db.execute.call_args.args[1]


class TestMilestoneRepository:
    async def test_get_by_id_decodes_json_deliverables(self) -> None:
        raw = json.dumps([{"filename": "a.pdf", "url": "u", "size": 3, "type": "application/pdf"}])
        db = _db(fetchone=_milestone_row(deliverables=raw, status="SUBMITTED"))
        m = await MilestoneRepository().get_by_id(db, "1001")
        assert m is not None
        assert m.deliverables == [Deliverable("a.pdf", "u", 3, "application/pdf")]

    async def test_get_by_id_not_found(self) -> None:
        assert await MilestoneRepository().get_by_id(_db(), "missing") is None

    async def test_approve_guard_lists_only_submitted(self) -> None:
        db = _db(fetchone=None)
        assert await MilestoneRepository().mark_approved(db, "1001") is None
        assert "status IN ('SUBMITTED')" in _sql(db)

    async def test_submit_guard_lists_pending_and_in_progress(self) -> None:
        db = _db(fetchone=_milestone_row(status="SUBMITTED"))
        await MilestoneRepository().mark_submitted(
            db, "1001", [Deliverable("a.pdf", "u", 3, "application/pdf")], "v1"
        )
        assert "status IN ('IN_PROGRESS', 'PENDING')" in _sql(db)
        assert json.loads(_params(db)["deliverables"])[0]["filename"] == "a.pdf"

    async def test_insert_returns_stored_row(self) -> None:
        db = _db(fetchone=_milestone_row(id="1002"))
        m = Milestone(
            id="1002", contract_id="contract-1", title="Landing page", description="",
            amount=5000, currency="USD", sort_order=1,
        )
        stored = await MilestoneRepository().insert(db, m)
        assert stored.id == "1002"
        assert _params(db)["status"] == "PENDING"

    async def test_delete_reports_guard(self) -> None:
        assert await MilestoneRepository().delete(_db(fetchone=None), "1001") is False
        assert await MilestoneRepository().delete(_db(fetchone=("1001",)), "1001") is True

    async def test_order_taken(self) -> None:
        assert await MilestoneRepository().order_taken(_db(fetchone=(1,)), "c-1", 2) is True
        assert await MilestoneRepository().order_taken(_db(fetchone=None), "c-1", 2) is False

    async def test_list_overdue_scopes_to_callers_contracts(self) -> None:
        now = datetime.now(UTC)
        db = _db(fetchall=[_milestone_row(id="1003", status="IN_PROGRESS", due_date=now)])
        rows = await MilestoneRepository().list_overdue_for_party(db, "user-1", now)
        assert [m.id for m in rows] == ["1003"]
        sql = _sql(db)
        assert "due_date < :now" in sql
        assert "status <> 'APPROVED'" in sql
        assert "client_id = CAST(:user_id AS UUID) OR freelancer_id = CAST(:user_id AS UUID)" in sql
        assert _params(db) == {"user_id": "user-1", "now": now}


class TestWithdrawalRepository:
    async def test_get_by_id_maps_row(self) -> None:
        db = _db(fetchone=_withdrawal_row(status="PROCESSING", external_transfer_id="tr_1"))
        w = await WithdrawalRepository().get_by_id(db, "9001")
        assert w is not None
        assert w.status == "PROCESSING"
        assert w.external_transfer_id == "tr_1"
        assert w.is_open

    async def test_count_open(self) -> None:
        assert await WithdrawalRepository().count_open(_db(scalar=2), "user-1") == 2

    async def test_lock_uses_advisory_lock(self) -> None:
        db = _db()
        await WithdrawalRepository().lock_freelancer(db, "user-1")
        assert "pg_advisory_xact_lock" in _sql(db)

    async def test_cancel_only_from_pending(self) -> None:
        db = _db(fetchone=None)
        result = await WithdrawalRepository().mark_failed(db, "9001", "cancelled", cancelled=True)
        assert result is None
        assert "status = 'PENDING'" in _sql(db)
        assert "cancelled_at" in _sql(db)

    async def test_fail_from_any_open_status(self) -> None:
        db = _db(fetchone=_withdrawal_row(status="FAILED"))
        await WithdrawalRepository().mark_failed(db, "9001", "e" * 3000)
        assert "status IN ('PENDING', 'PROCESSING')" in _sql(db)
        assert len(_params(db)["error_message"]) == 1000

    async def test_list_for_freelancer_passes_cursor(self) -> None:
        db = _db(fetchall=[_withdrawal_row(id="9002"), _withdrawal_row(id="9001")])
        rows = await WithdrawalRepository().list_for_freelancer(db, "user-1", "9003", 21, None)
        assert [w.id for w in rows] == ["9002", "9001"]
        assert _params(db)["cursor_id"] == "9003"
        assert _params(db)["limit"] == 21


class TestTransactionLogRepository:
    async def test_append_serializes_metadata(self) -> None:
        db = _db(scalar=42)
        entry = TransactionLogEntry(
            transaction_id="txn_1", type="PAYMENT", amount=5000, fee=0, net_amount=5000,
            currency="USD", related_entity_id="1001", related_entity_type="MILESTONE",
            status="COMPLETED", metadata={"contract_id": "c-1"},
        )
        assert await TransactionLogRepository().append(db, entry) == 42
        assert entry.id == 42
        assert json.loads(_params(db)["metadata"]) == {"contract_id": "c-1"}

    async def test_update_by_related_entity(self) -> None:
        db = _db()
        updated = await TransactionLogRepository().update_by_related_entity(
            db, "9001", "WITHDRAWAL", "FAILED", "refunded"
        )
        assert updated == 1
        assert _params(db) == {
            "entity_id": "9001", "entity_type": "WITHDRAWAL",
            "status": "FAILED", "description": "refunded",
        }

    async def test_list_for_user_matches_either_party(self) -> None:
        db = _db()
        await TransactionLogRepository().list_for_user(db, "user-1", None, 21, "PAYMENT")
        assert "from_party = :user_id OR to_party = :user_id" in _sql(db)


class TestOutboxRepository:
    async def test_enqueue(self) -> None:
        db = _db(scalar=7)
        event = NotificationEvent("PAYMENT_RELEASED", "1001", "user-1", {"amount": 5000})
        assert await OutboxRepository().enqueue(db, event) == 7
        assert json.loads(_params(db)["payload"]) == {"amount": 5000}

    async def test_claim_due_skips_locked_rows(self) -> None:
        row = MagicMock()
        row.id = 3
        row.event_type = "WITHDRAWAL_FAILED"
        row.entity_id = "9001"
        row.recipient_id = "user-1"
        row.payload = '{"amount": 100}'
        row.status = "PENDING"
        row.attempts = 1
        row.last_error = "timeout"
        row.next_attempt_at = datetime.now(UTC)
        row.created_at = datetime.now(UTC)
        db = _db(fetchall=[row])

        (msg,) = await OutboxRepository().claim_due(db, 50)

        assert "FOR UPDATE SKIP LOCKED" in _sql(db)
        assert msg.id == 3
        assert msg.event.payload == {"amount": 100}
        assert msg.attempts == 1
