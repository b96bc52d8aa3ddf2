from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.exceptions import ServiceError
from hr_approval.db.session import get_db

from .schemas import WorkScheduleCreate, WorkScheduleResponse, WorkScheduleSubmit
from . import service

router = APIRouter(prefix="/api/v1/work-schedules", tags=["work-schedules"])


@router.post("", response_model=WorkScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_work_schedule(
    payload: WorkScheduleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WorkScheduleResponse:
    try:
        return await service.create_work_schedule(db, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[WorkScheduleResponse])
async def list_work_schedules(
    dept_code: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[WorkScheduleResponse]:
    """Schedules of a department (the caller's own when omitted)."""
    try:
        return await service.list_department_schedules(db, current_user.user_id, dept_code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{schedule_id}", response_model=WorkScheduleResponse)
async def get_work_schedule(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WorkScheduleResponse:
    try:
        return await service.get_work_schedule(db, schedule_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{schedule_id}/submit", response_model=WorkScheduleResponse)
async def submit_work_schedule(
    schedule_id: int,
    payload: WorkScheduleSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> WorkScheduleResponse:
    try:
        return await service.submit_work_schedule(db, schedule_id, current_user.user_id, payload.approval_line_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
