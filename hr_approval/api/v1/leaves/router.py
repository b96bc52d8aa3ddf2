from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.exceptions import ServiceError
from hr_approval.db.session import get_db

from .schemas import (
    LeaveApplicationDetail,
    LeaveApplicationResponse,
    LeaveApprove,
    LeaveFormUpdate,
    LeaveReject,
    SignatureUpdate,
    SubstituteAssign,
    VacationBalanceResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/leave-applications", tags=["leave-applications"])


@router.post("", response_model=LeaveApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_application(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    """Start a new DRAFT leave application for the current user."""
    try:
        return await service.create_leave_application(db, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/my", response_model=List[LeaveApplicationResponse])
async def my_leave_applications(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveApplicationResponse]:
    return await service.list_my_leave_applications(db, current_user.user_id)


@router.get("/pending", response_model=List[LeaveApplicationResponse])
async def pending_leave_applications(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[LeaveApplicationResponse]:
    """Applications waiting on the current user, including HR group steps they may take."""
    return await service.list_pending_for_approver(db, current_user.user_id)


@router.get("/vacation-balance", response_model=VacationBalanceResponse)
async def vacation_balance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> VacationBalanceResponse:
    try:
        return await service.get_vacation_balance(db, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{leave_id}", response_model=LeaveApplicationDetail)
async def get_leave_application(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationDetail:
    try:
        return await service.get_leave_application(db, leave_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{leave_id}", response_model=LeaveApplicationResponse)
async def update_leave_form(
    leave_id: int,
    payload: LeaveFormUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    """Edit a DRAFT or REJECTED application. Periods replace the stored ones."""
    try:
        return await service.update_leave_form(db, leave_id, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{leave_id}/substitute", response_model=LeaveApplicationResponse)
async def set_substitute(
    leave_id: int,
    payload: SubstituteAssign,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    try:
        return await service.set_substitute(db, leave_id, current_user.user_id, payload.substitute_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{leave_id}/signature", response_model=LeaveApplicationResponse)
async def update_signature(
    leave_id: int,
    payload: SignatureUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    try:
        return await service.update_signature(db, leave_id, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{leave_id}/submit", response_model=LeaveApplicationResponse)
async def submit_leave_application(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    try:
        return await service.submit_leave_application(db, leave_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{leave_id}/approve", response_model=LeaveApplicationResponse)
async def approve_leave_application(
    leave_id: int,
    payload: LeaveApprove,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    try:
        return await service.approve_leave_application(
            db,
            leave_id,
            current_user.user_id,
            signature_image_url=payload.signature_image_url,
            signature_date=payload.signature_date,
            comment=payload.comment,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{leave_id}/reject", response_model=LeaveApplicationResponse)
async def reject_leave_application(
    leave_id: int,
    payload: LeaveReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    try:
        return await service.reject_leave_application(db, leave_id, current_user.user_id, payload.reason)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{leave_id}/final-approve", response_model=LeaveApplicationResponse)
async def final_approve_leave_application(
    leave_id: int,
    payload: LeaveApprove,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> LeaveApplicationResponse:
    """Final approval (전결): approve the current step and skip every remaining one."""
    try:
        return await service.final_approve_leave_application(
            db,
            leave_id,
            current_user.user_id,
            signature_image_url=payload.signature_image_url,
            signature_date=payload.signature_date,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_application(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_leave_application(db, leave_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{leave_id}/print")
async def print_leave_application(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    """Rendered document for a fully approved application."""
    try:
        content = await service.render_leave_application(db, leave_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(content=content, media_type="application/octet-stream")
