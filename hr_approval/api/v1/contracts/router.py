from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.rbac import check_permission
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.enums import PermissionType
from hr_approval.core.exceptions import ServiceError
from hr_approval.db.session import get_db

from .schemas import ContractCreate, ContractResponse, ContractSubmit
from . import service

router = APIRouter(prefix="/api/v1/contracts", tags=["contracts"])


@router.post(
    "",
    response_model=ContractResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission(PermissionType.HR_CONTRACT))],
)
async def create_contract(
    payload: ContractCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ContractResponse:
    """Create a DRAFT employment contract. Requires the HR_CONTRACT permission."""
    try:
        return await service.create_contract(db, current_user.user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ContractResponse:
    try:
        return await service.get_contract(db, contract_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{contract_id}/submit", response_model=ContractResponse)
async def submit_contract(
    contract_id: int,
    payload: ContractSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ContractResponse:
    try:
        return await service.submit_contract(
            db, contract_id, current_user.user_id, payload.approval_line_id, payload.substitute_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        await service.delete_contract(db, contract_id, current_user.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
