from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.exceptions import ServiceError
from hr_approval.db.session import get_db

from .schemas import ApprovalProcessResponse, StepApprove, StepHistoryResponse, StepReject
from . import service

router = APIRouter(prefix="/api/v1/approval-processes", tags=["approval-processes"])


@router.get("/{process_id}", response_model=ApprovalProcessResponse)
async def get_process(
    process_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalProcessResponse:
    try:
        return await service.get_process(db, process_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{process_id}/remaining-steps", response_model=List[StepHistoryResponse])
async def get_remaining_steps(
    process_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StepHistoryResponse]:
    try:
        return await service.get_remaining_steps(db, process_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{process_id}/approve", response_model=ApprovalProcessResponse)
async def approve_step(
    process_id: int,
    payload: StepApprove,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalProcessResponse:
    try:
        return await service.approve_step(
            db, process_id, current_user.user_id, payload.comment, payload.signature_image_url
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{process_id}/final-approve", response_model=ApprovalProcessResponse)
async def final_approve_step(
    process_id: int,
    payload: StepApprove,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalProcessResponse:
    try:
        return await service.final_approve_step(
            db, process_id, current_user.user_id, payload.comment, payload.signature_image_url
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{process_id}/reject", response_model=ApprovalProcessResponse)
async def reject_step(
    process_id: int,
    payload: StepReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalProcessResponse:
    try:
        return await service.reject_step(db, process_id, current_user.user_id, payload.reason)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
