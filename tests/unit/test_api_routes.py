"""HTTP-level tests for the settlement routers with auth and database overridden."""

import uuid
from collections.abc import Iterator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from src.fm_admin.api import router as admin_api
from src.fm_common.database import get_db_session
from src.fm_common.errors import InsufficientPendingBalanceError, PayoutFailedError
from src.fm_gateway.auth.dependencies import get_current_user
from src.fm_gateway.user.db_models import UserModel
from src.fm_ledger.api import router as ledger_api
from src.fm_ledger.application.schemas import BalanceResponse
from src.fm_milestone.api import router as milestone_api
from src.fm_milestone.application.schemas import MilestoneListResponse, MilestoneSummary
from src.fm_withdrawal.api import router as withdrawal_api
from src.fm_withdrawal.application.schemas import WithdrawalResponse
from src.main import app


def _user(role: str) -> UserModel:
    return UserModel(
        id=uuid.UUID("22222222-2222-2222-2222-222222222222"),
        email=f"{role}@example.com",
        role=role,
        is_active=True,
    )


@pytest.fixture
def as_role() -> Iterator[object]:
    async def _no_db() -> AsyncMock:
        return AsyncMock()

    app.dependency_overrides[get_db_session] = _no_db

    def _login(role: str) -> None:
        app.dependency_overrides[get_current_user] = lambda: _user(role)

    yield _login
    app.dependency_overrides.clear()


def _withdrawal_response() -> WithdrawalResponse:
    return WithdrawalResponse(
        id="9001", freelancer_id="22222222-2222-2222-2222-222222222222",
        amount_cents=10000, amount_display="$100.00",
        processing_fee_cents=200, processing_fee_display="$2.00",
        final_amount_cents=9800, final_amount_display="$98.00",
        currency="USD", method="BANK_TRANSFER", destination="ba_abcdef123", status="PENDING",
    )


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestAuth:
    async def test_missing_token_is_401(self, client: AsyncClient, as_role: object) -> None:
        resp = await client.get("/api/v1/balance")
        assert resp.status_code == 401

    async def test_wrong_role_is_403_envelope(self, client: AsyncClient, as_role: object) -> None:
        as_role("client")  # type: ignore[operator]
        resp = await client.get("/api/v1/balance")
        assert resp.status_code == 403
        body = resp.json()
        assert body["code"] == 1006
        assert body["data"] is None
        assert body["request_id"].startswith("req_")


class TestBalanceRoute:
    async def test_balance_for_freelancer(self, client: AsyncClient, as_role: object) -> None:
        as_role("freelancer")  # type: ignore[operator]
        balance = BalanceResponse.from_cents("u-1", pending=5000, available=10000)
        with patch.object(
            ledger_api._service, "get_balance", AsyncMock(return_value=balance)
        ):
            resp = await client.get("/api/v1/balance")
        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["total_balance_cents"] == 15000


class TestMilestoneRoutes:
    async def test_drift_maps_to_409(self, client: AsyncClient, as_role: object) -> None:
        as_role("client")  # type: ignore[operator]
        with patch.object(
            milestone_api._service,
            "approve",
            AsyncMock(side_effect=InsufficientPendingBalanceError(5000, 3000)),
        ):
            resp = await client.post("/api/v1/milestones/1001/approve")
        assert resp.status_code == 409
        assert resp.json()["code"] == 2003

    async def test_freelancer_cannot_approve(self, client: AsyncClient, as_role: object) -> None:
        as_role("freelancer")  # type: ignore[operator]
        resp = await client.post("/api/v1/milestones/1001/approve")
        assert resp.status_code == 403

    async def test_overdue_route_is_not_a_milestone_id(
        self, client: AsyncClient, as_role: object
    ) -> None:
        as_role("freelancer")  # type: ignore[operator]
        mock_overdue = AsyncMock(return_value=[])
        with patch.object(milestone_api._service, "list_overdue", mock_overdue):
            resp = await client.get("/api/v1/milestones/overdue")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"items": [], "total": 0}
        assert mock_overdue.await_args.args[1] == "22222222-2222-2222-2222-222222222222"

    async def test_contract_list_passes_filters(
        self, client: AsyncClient, as_role: object
    ) -> None:
        as_role("client")  # type: ignore[operator]
        listing = MilestoneListResponse(
            items=[],
            summary=MilestoneSummary(
                total_count=0, by_status={}, total_amount_cents=0, total_amount_display="$0.00",
                approved_amount_cents=0, approved_amount_display="$0.00", overdue_count=0,
            ),
        )
        mock_list = AsyncMock(return_value=listing)
        with patch.object(milestone_api._service, "list_for_contract", mock_list):
            resp = await client.get(
                "/api/v1/contracts/c-1/milestones", params={"status": "PENDING", "overdue": "true"}
            )
        assert resp.status_code == 200
        assert resp.json()["data"]["summary"]["overdue_count"] == 0
        assert mock_list.await_args.args[2:] == ("c-1", "PENDING", True)

    async def test_contract_list_rejects_unknown_status(
        self, client: AsyncClient, as_role: object
    ) -> None:
        as_role("client")  # type: ignore[operator]
        resp = await client.get("/api/v1/contracts/c-1/milestones", params={"status": "PAID"})
        assert resp.status_code == 422

    async def test_create_validates_amount(self, client: AsyncClient, as_role: object) -> None:
        as_role("client")  # type: ignore[operator]
        resp = await client.post(
            "/api/v1/milestones",
            json={"contract_id": "c-1", "title": "Logo", "amount_cents": 0, "order": 1},
        )
        assert resp.status_code == 422


class TestWithdrawalRoutes:
    async def test_request_returns_201(self, client: AsyncClient, as_role: object) -> None:
        as_role("freelancer")  # type: ignore[operator]
        mock_request = AsyncMock(return_value=_withdrawal_response())
        with patch.object(withdrawal_api._service, "request", mock_request):
            resp = await client.post(
                "/api/v1/withdrawals",
                json={
                    "amount_cents": 10000,
                    "method": "BANK_TRANSFER",
                    "destination": "ba_abcdef123",
                    "idempotency_key": "k-1",
                },
            )
        assert resp.status_code == 201
        assert resp.json()["data"]["processing_fee_cents"] == 200
        req = mock_request.call_args.args[2]
        assert req.idempotency_key == "k-1"

    async def test_unknown_method_rejected(self, client: AsyncClient, as_role: object) -> None:
        as_role("freelancer")  # type: ignore[operator]
        resp = await client.post(
            "/api/v1/withdrawals",
            json={"amount_cents": 10000, "method": "CRYPTO", "destination": "x"},
        )
        assert resp.status_code == 422

    async def test_whitespace_idempotency_key_rejected(
        self, client: AsyncClient, as_role: object
    ) -> None:
        as_role("freelancer")  # type: ignore[operator]
        resp = await client.post(
            "/api/v1/withdrawals",
            json={
                "amount_cents": 10000, "method": "PAYPAL",
                "destination": "a@b.co", "idempotency_key": "two words",
            },
        )
        assert resp.status_code == 422


class TestAdminRoutes:
    async def test_process_failure_reports_refund(
        self, client: AsyncClient, as_role: object
    ) -> None:
        as_role("admin")  # type: ignore[operator]
        with patch.object(
            admin_api._withdrawals,
            "process",
            AsyncMock(side_effect=PayoutFailedError("9001", "HTTP 502 from provider")),
        ):
            resp = await client.post("/api/v1/admin/withdrawals/9001/process", json={})
        assert resp.status_code == 502
        assert "refunded" in resp.json()["message"]

    async def test_admin_only(self, client: AsyncClient, as_role: object) -> None:
        as_role("freelancer")  # type: ignore[operator]
        resp = await client.get("/api/v1/admin/invariants")
        assert resp.status_code == 403

    async def test_pending_list(self, client: AsyncClient, as_role: object) -> None:
        as_role("admin")  # type: ignore[operator]
        with patch.object(
            admin_api._withdrawals,
            "list_pending",
            AsyncMock(return_value=[_withdrawal_response()]),
        ):
            resp = await client.get("/api/v1/admin/withdrawals/pending?limit=10")
        assert resp.status_code == 200
        assert resp.json()["data"]["total"] == 1
