"""fm_admin REST API — withdrawal processing and ledger health, admin only."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_admin.application.service import AdminService
from src.fm_common.database import get_db_session
from src.fm_common.enums import UserRole
from src.fm_common.response import ApiResponse, list_data, success_response
from src.fm_gateway.auth.dependencies import require_role
from src.fm_gateway.middleware.request_log import get_request_id
from src.fm_gateway.user.db_models import UserModel
from src.fm_withdrawal.application.schemas import (
    FailWithdrawalRequest,
    ProcessWithdrawalRequest,
)
from src.fm_withdrawal.application.service import WithdrawalSettlementService

router = APIRouter(prefix="/admin", tags=["admin"])

_admin_service = AdminService()
_withdrawals = WithdrawalSettlementService()

_admin = require_role(UserRole.ADMIN)


@router.get("/withdrawals/pending")
async def list_pending_withdrawals(
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    items = await _withdrawals.list_pending(db, limit)
    return success_response(list_data(items), request_id=get_request_id(request))


@router.post("/withdrawals/{withdrawal_id}/process")
async def process_withdrawal(
    withdrawal_id: str,
    body: ProcessWithdrawalRequest,
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _withdrawals.process(
        db,
        withdrawal_id,
        external_transfer_id=body.external_transfer_id,
        processing_fee_cents=body.processing_fee_cents,
    )
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/withdrawals/{withdrawal_id}/complete")
async def complete_withdrawal(
    withdrawal_id: str,
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _withdrawals.complete(db, withdrawal_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/withdrawals/{withdrawal_id}/fail")
async def fail_withdrawal(
    withdrawal_id: str,
    body: FailWithdrawalRequest,
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _withdrawals.fail(db, withdrawal_id, body.error_message)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.get("/invariants")
async def check_invariants(
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _admin_service.check_invariants(db)
    return success_response(data.model_dump(), request_id=get_request_id(request))


@router.get("/reconciliation-issues")
async def list_reconciliation_issues(
    current_user: Annotated[UserModel, Depends(_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse:
    items = await _admin_service.list_reconciliation_issues(db, limit)
    return success_response(list_data(items), request_id=get_request_id(request))
