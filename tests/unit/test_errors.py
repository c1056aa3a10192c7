"""Tests for fm_common.errors and fm_common.response."""

import pytest

from src.fm_common.errors import (
    AppError,
    ConcurrentBalanceConflictError,
    ConcurrentConflictError,
    EscrowNotFundedError,
    InsufficientAvailableBalanceError,
    InsufficientContractBalanceError,
    InsufficientFundsError,
    InsufficientPendingBalanceError,
    IntegrityViolationError,
    InvalidStateTransitionError,
    PayoutFailedError,
    PayoutProviderError,
    PermissionDeniedError,
    ProviderError,
    SettlementConflictError,
    TooManyOpenWithdrawalsError,
    ValidationError,
)
from src.fm_common.response import ApiResponse, error_response, list_data, success_response
from src.fm_ledger.application.schemas import BalanceResponse


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_custom_http_status(self) -> None:
        err = AppError(code=4001, message="Not found", http_status=404)
        assert err.http_status == 404

    def test_is_exception(self) -> None:
        err = AppError(code=1001, message="test")
        assert isinstance(err, Exception)


class TestErrorFamilies:
    @pytest.mark.parametrize(
        ("err", "family"),
        [
            (PermissionDeniedError("approve"), ValidationError),
            (InvalidStateTransitionError("milestone", "1", "PENDING", "approve"), ValidationError),
            (TooManyOpenWithdrawalsError(3), ValidationError),
            (EscrowNotFundedError("c-1"), InsufficientFundsError),
            (InsufficientContractBalanceError(5000, 100), InsufficientFundsError),
            (InsufficientAvailableBalanceError(50, 40), InsufficientFundsError),
            (ConcurrentBalanceConflictError("u-1"), ConcurrentConflictError),
            (SettlementConflictError("milestone", "1"), ConcurrentConflictError),
            (PayoutProviderError("timeout"), ProviderError),
            (PayoutFailedError("w-1", "timeout"), ProviderError),
            (InsufficientPendingBalanceError(5000, 3000), IntegrityViolationError),
        ],
    )
    def test_family(self, err: AppError, family: type[AppError]) -> None:
        assert isinstance(err, family)
        assert isinstance(err, AppError)


class TestSpecificErrors:
    def test_insufficient_available_balance_shows_amounts(self) -> None:
        err = InsufficientAvailableBalanceError(required=5000, available=4000)
        assert err.code == 2001
        assert err.http_status == 422
        assert "$50.00" in err.message
        assert "$40.00" in err.message

    def test_pending_drift_points_to_support(self) -> None:
        err = InsufficientPendingBalanceError(required=5000, pending=3000)
        assert err.code == 2003
        assert err.http_status == 409
        assert "contact support" in err.message

    def test_escrow_not_funded(self) -> None:
        err = EscrowNotFundedError("contract-1")
        assert err.code == 3009
        assert err.http_status == 422

    def test_payout_failed_mentions_refund(self) -> None:
        err = PayoutFailedError("9001", "HTTP 502 from provider")
        assert err.code == 5002
        assert "refunded" in err.message

    def test_concurrent_conflict_is_409(self) -> None:
        assert ConcurrentBalanceConflictError("u-1").http_status == 409


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(2001, "Insufficient available balance")
        assert resp.code == 2001
        assert resp.data is None

    def test_request_id_override(self) -> None:
        resp = success_response(None, request_id="req_fixed")
        assert resp.request_id == "req_fixed"

    def test_serialization(self) -> None:
        d = success_response({"amount": 6500}).model_dump()
        assert set(d) == set(ApiResponse.model_fields)

    def test_error_carries_request_id(self) -> None:
        resp = error_response(4001, "Withdrawal not found", request_id="req_abc")
        assert resp.request_id == "req_abc"

    def test_list_data(self) -> None:
        items = [
            BalanceResponse.from_cents("u-1", pending=0, available=100),
            BalanceResponse.from_cents("u-2", pending=50, available=0),
        ]
        data = list_data(items)
        assert data["total"] == 2
        assert data["items"][1]["pending_balance_display"] == "$0.50"
