"""Approval line templates: create, list, update and soft-delete.

Editing a line never touches processes already started from it; those run
on the step snapshot taken at start.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.effects import PostCommitEffects
from hr_approval.core.enums import ApproverType, DocumentType, UserRole
from hr_approval.core.exceptions import AccessDeniedError, NotFoundError, ValidationFailedError
from hr_approval.core.models import ApprovalLine, ApprovalStep
from hr_approval.core.unit_of_work import run_action

from .schemas import ApprovalLineCreate, ApprovalLineResponse, ApprovalLineUpdate, ApprovalStepIn

logger = logging.getLogger(__name__)


async def _validate_steps(directory: OrganizationDirectory, steps: List[ApprovalStepIn]) -> None:
    orders = [s.step_order for s in steps]
    if len(set(orders)) != len(orders):
        raise ValidationFailedError("Step orders must be unique")
    for s in steps:
        if s.approver_type == ApproverType.SPECIFIC_USER:
            if not s.approver_id:
                raise ValidationFailedError(f"Step {s.step_order}: approver_id is required")
            approver = await directory.find_user(s.approver_id)
            if not approver or not approver.is_active:
                raise ValidationFailedError(f"Step {s.step_order}: approver {s.approver_id} is not an active user")
        elif s.approver_type in (ApproverType.JOB_LEVEL, ApproverType.DEPT_JOB_LEVEL):
            if s.job_level is None:
                raise ValidationFailedError(f"Step {s.step_order}: job_level is required")
        elif s.approver_type == ApproverType.PERMISSION_GROUP:
            if s.permission_type is None:
                raise ValidationFailedError(f"Step {s.step_order}: permission_type is required")


def _build_steps(steps: List[ApprovalStepIn]) -> List[ApprovalStep]:
    return [
        ApprovalStep(
            step_order=s.step_order,
            step_name=s.step_name.strip(),
            approver_type=s.approver_type.value,
            approver_id=s.approver_id,
            job_level=s.job_level,
            dept_code=s.dept_code,
            permission_type=s.permission_type.value if s.permission_type else None,
            is_optional=s.is_optional,
            is_final_approval_available=s.is_final_approval_available,
        )
        for s in sorted(steps, key=lambda x: x.step_order)
    ]


async def get_active_line(db: AsyncSession, line_id: int) -> ApprovalLine:
    result = await db.execute(
        select(ApprovalLine).where(ApprovalLine.id == line_id).execution_options(populate_existing=True)
    )
    line = result.scalar_one_or_none()
    if not line or line.is_deleted:
        raise NotFoundError("Approval line not found")
    return line


async def create_approval_line(db: AsyncSession, creator_id: str, payload: ApprovalLineCreate) -> ApprovalLineResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> ApprovalLineResponse:
        await directory.get_user(creator_id)
        await _validate_steps(directory, payload.steps)
        line = ApprovalLine(
            name=payload.name.strip(),
            description=payload.description,
            document_type=payload.document_type.value,
            created_by=creator_id,
            is_active=True,
            is_deleted=False,
            steps=_build_steps(payload.steps),
        )
        db.add(line)
        await db.flush()
        logger.info("Approval line created", extra={"approval_line_id": line.id, "document_type": line.document_type})
        return ApprovalLineResponse.model_validate(line)

    return await run_action(db, _action, name="approval_line.create")


async def list_approval_lines(
    db: AsyncSession,
    document_type: Optional[DocumentType] = None,
    active_only: bool = True,
) -> List[ApprovalLineResponse]:
    stmt = select(ApprovalLine).where(ApprovalLine.is_deleted.is_(False))
    if document_type is not None:
        stmt = stmt.where(ApprovalLine.document_type == document_type.value)
    if active_only:
        stmt = stmt.where(ApprovalLine.is_active.is_(True))
    result = await db.execute(stmt.order_by(ApprovalLine.name, ApprovalLine.id))
    return [ApprovalLineResponse.model_validate(line) for line in result.scalars().all()]


async def get_approval_line(db: AsyncSession, line_id: int) -> ApprovalLineResponse:
    return ApprovalLineResponse.model_validate(await get_active_line(db, line_id))


async def update_approval_line(
    db: AsyncSession,
    line_id: int,
    actor_id: str,
    payload: ApprovalLineUpdate,
) -> ApprovalLineResponse:
    """Creator-only. New steps replace the old ones for future processes."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> ApprovalLineResponse:
        line = await get_active_line(db, line_id)
        if line.created_by != actor_id:
            raise AccessDeniedError("Only the creator can modify this approval line")
        if payload.name is not None:
            line.name = payload.name.strip()
        if payload.description is not None:
            line.description = payload.description
        if payload.is_active is not None:
            line.is_active = payload.is_active
        if payload.steps is not None:
            await _validate_steps(directory, payload.steps)
            line.steps.clear()
            await db.flush()
            line.steps.extend(_build_steps(payload.steps))
        line.updated_at = datetime.utcnow()
        await db.flush()
        return ApprovalLineResponse.model_validate(line)

    return await run_action(db, _action, name="approval_line.update")


async def delete_approval_line(db: AsyncSession, line_id: int, actor_id: str) -> None:
    """Soft delete by the creator or an ADMIN."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> None:
        line = await get_active_line(db, line_id)
        actor = await directory.get_user(actor_id)
        if line.created_by != actor.user_id and actor.role != UserRole.ADMIN.value:
            raise AccessDeniedError("Only the creator or an administrator can delete this approval line")
        line.is_deleted = True
        line.is_active = False
        line.updated_at = datetime.utcnow()
        await db.flush()

    await run_action(db, _action, name="approval_line.delete")
