"""fm_ledger REST API — balance read for the authenticated freelancer."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import UserRole
from src.fm_common.response import ApiResponse, success_response
from src.fm_gateway.auth.dependencies import require_role
from src.fm_gateway.middleware.request_log import get_request_id
from src.fm_gateway.user.db_models import UserModel
from src.fm_ledger.application.service import LedgerApplicationService

router = APIRouter(tags=["ledger"])

_service = LedgerApplicationService()


@router.get("/balance")
async def get_balance(
    current_user: Annotated[UserModel, Depends(require_role(UserRole.FREELANCER))],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, str(current_user.id))
    return success_response(data.model_dump(), request_id=get_request_id(request))
