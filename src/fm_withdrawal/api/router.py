"""fm_withdrawal REST API — freelancer-facing withdrawal endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import UserRole, WithdrawalStatus
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import require_role
from src.fm_gateway.middleware.request_log import get_request_id
from src.fm_gateway.user.db_models import UserModel
from src.fm_withdrawal.application.schemas import CreateWithdrawalRequest
from src.fm_withdrawal.application.service import WithdrawalSettlementService

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])

_service = WithdrawalSettlementService()

_freelancer = require_role(UserRole.FREELANCER)


@router.post("", status_code=201)
async def request_withdrawal(
    body: CreateWithdrawalRequest,
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.request(db, str(current_user.id), body)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.get("")
async def list_withdrawals(
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (withdrawal ID)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    status: WithdrawalStatus | None = Query(None, description="Filter by status"),
) -> ApiResponse:
    data = await _service.list_for_freelancer(
        db, str(current_user.id), cursor, limit, status.value if status else None
    )
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.get("/{withdrawal_id}")
async def get_withdrawal(
    withdrawal_id: str,
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get(db, str(current_user.id), withdrawal_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/{withdrawal_id}/cancel")
async def cancel_withdrawal(
    withdrawal_id: str,
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel(db, str(current_user.id), withdrawal_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))
