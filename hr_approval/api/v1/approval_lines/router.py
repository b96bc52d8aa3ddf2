from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.enums import DocumentType
from hr_approval.core.exceptions import ServiceError
from hr_approval.db.session import get_db

from .schemas import ApprovalLineCreate, ApprovalLineResponse, ApprovalLineUpdate
from . import service

router = APIRouter(prefix="/api/v1/approval-lines", tags=["approval-lines"])


@router.post("", response_model=ApprovalLineResponse, status_code=status.HTTP_201_CREATED)
async def create_approval_line(
    payload: ApprovalLineCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalLineResponse:
    try:
        return await service.create_approval_line(db, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ApprovalLineResponse])
async def list_approval_lines(
    document_type: Optional[DocumentType] = None,
    active_only: bool = True,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ApprovalLineResponse]:
    """Lines available for a document type (all types when omitted)."""
    return await service.list_approval_lines(db, document_type=document_type, active_only=active_only)


@router.get("/{line_id}", response_model=ApprovalLineResponse)
async def get_approval_line(
    line_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalLineResponse:
    try:
        return await service.get_approval_line(db, line_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{line_id}", response_model=ApprovalLineResponse)
async def update_approval_line(
    line_id: int,
    payload: ApprovalLineUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApprovalLineResponse:
    try:
        return await service.update_approval_line(db, line_id, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_approval_line(
    line_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_approval_line(db, line_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
