"""fm_transaction_log REST API — caller's money movement history."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import TransactionType
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import get_current_user
from src.fm_gateway.middleware.request_log import get_request_id
from src.fm_gateway.user.db_models import UserModel
from src.fm_transaction_log.application.service import TransactionLogService

router = APIRouter(prefix="/transactions", tags=["transactions"])

_service = TransactionLogService()


@router.get("")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: TransactionType | None = Query(None, description="Filter by transaction type"),
) -> ApiResponse:
    data = await _service.list_for_user(
        db, str(current_user.id), cursor, limit, type.value if type else None
    )
    return success_response(data.model_dump(), request_id=get_request_id(request))
