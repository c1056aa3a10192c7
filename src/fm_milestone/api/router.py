"""fm_milestone REST API — milestone lifecycle and escrow release."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.database import get_db_session
from src.fm_common.enums import MilestoneStatus, UserRole
from src.fm_common.response import ApiResponse, list_data, success_response
from src.fm_gateway.auth.dependencies import get_current_user, require_role
from src.fm_gateway.middleware.request_log import get_request_id
from src.fm_gateway.user.db_models import UserModel
from src.fm_milestone.application.schemas import (
    CreateMilestoneRequest,
    RejectMilestoneRequest,
    ReorderMilestonesRequest,
    SubmitMilestoneRequest,
    UpdateMilestoneRequest,
)
from src.fm_milestone.application.service import MilestoneSettlementService

router = APIRouter(tags=["milestones"])

_service = MilestoneSettlementService()

_client = require_role(UserRole.CLIENT)
_freelancer = require_role(UserRole.FREELANCER)


@router.post("/milestones", status_code=201)
async def create_milestone(
    body: CreateMilestoneRequest,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create(db, str(current_user.id), body)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.get("/milestones/overdue")
async def list_overdue_milestones(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_overdue(db, str(current_user.id))
    return success_response(list_data(items), request_id=get_request_id(request))


@router.get("/milestones/{milestone_id}")
async def get_milestone(
    milestone_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get(db, str(current_user.id), milestone_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.patch("/milestones/{milestone_id}")
async def update_milestone(
    milestone_id: str,
    body: UpdateMilestoneRequest,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update(db, str(current_user.id), milestone_id, body)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    milestone_id: str,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.delete(db, str(current_user.id), milestone_id)
    return success_response({"id": milestone_id, "deleted": True}, request_id=get_request_id(request))


@router.post("/milestones/{milestone_id}/start")
async def start_milestone(
    milestone_id: str,
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.start(db, str(current_user.id), milestone_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/milestones/{milestone_id}/submit")
async def submit_milestone(
    milestone_id: str,
    body: SubmitMilestoneRequest,
    current_user: Annotated[UserModel, Depends(_freelancer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.submit(db, str(current_user.id), milestone_id, body)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/milestones/{milestone_id}/approve")
async def approve_milestone(
    milestone_id: str,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.approve(db, str(current_user.id), milestone_id)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.post("/milestones/{milestone_id}/reject")
async def reject_milestone(
    milestone_id: str,
    body: RejectMilestoneRequest,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.reject(db, str(current_user.id), milestone_id, body.feedback)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.get("/contracts/{contract_id}/milestones")
async def list_contract_milestones(
    contract_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: MilestoneStatus | None = Query(None, description="Filter by status"),
    overdue: bool | None = Query(None, description="Only overdue (true) or not overdue (false)"),
) -> ApiResponse:
    data = await _service.list_for_contract(
        db, str(current_user.id), contract_id, status.value if status else None, overdue
    )
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))


@router.put("/contracts/{contract_id}/milestones/order")
async def reorder_contract_milestones(
    contract_id: str,
    body: ReorderMilestonesRequest,
    current_user: Annotated[UserModel, Depends(_client)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.reorder(db, str(current_user.id), contract_id, body.items)
    return success_response(data.model_dump(mode="json"), request_id=get_request_id(request))
