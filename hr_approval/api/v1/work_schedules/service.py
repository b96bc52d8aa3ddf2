"""Monthly department work schedules routed through the generic approval process."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.api.v1.approval_processes.service import ensure_can_view_document, load_document, start_process
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.effects import PostCommitEffects
from hr_approval.core.enums import DocumentStatus, DocumentType, JobLevel, UserRole
from hr_approval.core.exceptions import AccessDeniedError, InvalidStateError, ValidationFailedError
from hr_approval.core.models import WorkSchedule
from hr_approval.core.unit_of_work import run_action

from .schemas import WorkScheduleCreate, WorkScheduleResponse

EDITABLE_STATUSES = frozenset({DocumentStatus.DRAFT.value, DocumentStatus.REJECTED.value})


async def create_work_schedule(db: AsyncSession, creator_id: str, payload: WorkScheduleCreate) -> WorkScheduleResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> WorkScheduleResponse:
        creator = await directory.get_user(creator_id)
        dept_code = payload.dept_code or creator.dept_code
        if not dept_code:
            raise ValidationFailedError("Department is required for a work schedule")
        schedule = WorkSchedule(
            dept_code=dept_code,
            schedule_month=payload.schedule_month,
            created_by=creator.user_id,
            form_data=payload.form_data,
            status=DocumentStatus.DRAFT.value,
            signatures={},
            printable=False,
        )
        db.add(schedule)
        await db.flush()
        return WorkScheduleResponse.model_validate(schedule)

    return await run_action(db, _action, name="work_schedule.create")


async def list_department_schedules(
    db: AsyncSession, viewer_id: str, dept_code: Optional[str] = None
) -> List[WorkScheduleResponse]:
    """Schedules of a department, the viewer's own when none is given. Other departments need the ADMIN role."""
    viewer = await OrganizationDirectory(db).get_user(viewer_id)
    dept_code = dept_code or viewer.dept_code
    if not dept_code:
        raise ValidationFailedError("Department is required to list work schedules")
    if dept_code != viewer.dept_code and viewer.role != UserRole.ADMIN.value and viewer.job_level < JobLevel.SUPER_ADMIN:
        raise AccessDeniedError("You are not allowed to view schedules of another department")
    result = await db.execute(
        select(WorkSchedule)
        .where(WorkSchedule.dept_code == dept_code, WorkSchedule.status != DocumentStatus.DELETED.value)
        .order_by(WorkSchedule.schedule_month.desc(), WorkSchedule.id.desc())
    )
    return [WorkScheduleResponse.model_validate(s) for s in result.scalars().all()]


async def get_work_schedule(db: AsyncSession, schedule_id: int, viewer_id: str) -> WorkScheduleResponse:
    schedule = await load_document(db, DocumentType.WORK_SCHEDULE, schedule_id)
    await ensure_can_view_document(db, schedule, viewer_id)
    return WorkScheduleResponse.model_validate(schedule)


async def submit_work_schedule(
    db: AsyncSession,
    schedule_id: int,
    actor_id: str,
    approval_line_id: int,
) -> WorkScheduleResponse:
    async def _action(effects: PostCommitEffects) -> WorkScheduleResponse:
        schedule = await load_document(db, DocumentType.WORK_SCHEDULE, schedule_id, for_update=True)
        if schedule.created_by != actor_id:
            raise AccessDeniedError("Only the creator can submit this work schedule")
        if schedule.status not in EDITABLE_STATUSES:
            raise InvalidStateError(f"Work schedule cannot be submitted in status {schedule.status}")
        process = await start_process(db, DocumentType.WORK_SCHEDULE, schedule, approval_line_id, actor_id)
        effects.notify(schedule.current_approver_id, "document_approval_requested", process_id=process.id, document_id=schedule.id)
        await db.flush()
        return WorkScheduleResponse.model_validate(schedule)

    return await run_action(db, _action, name="work_schedule.submit")
