"""
Resolve the next approval step and its approver for a leave application.

First step by applicant job level:
    STAFF           -> substitute (when assigned), else department head
    DEPT_HEAD       -> HR staff
    CENTER_DIRECTOR -> admin director
    PHYSICIAN       -> center director
    ADMIN_DIRECTOR  -> admin director
    CEO_DIRECTOR    -> CEO director
    anything else   -> department head

After the first step the application follows one fixed order:
substitute, department head, HR staff, center director, HR final,
admin director, CEO director, approved.

The applicant is never resolved as their own approver. A step nobody can
take falls back one director level up; when that is empty too, routing
fails with NotFoundError.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from hr_approval.core.config import settings
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.enums import JobLevel, LeaveStatus, LeaveStepName, PermissionType
from hr_approval.core.exceptions import AccessDeniedError, NotFoundError, ValidationFailedError
from hr_approval.core.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveStep:
    name: LeaveStepName
    status: LeaveStatus
    slot: str
    job_level: Optional[JobLevel] = None
    hr_group: bool = False


LEAVE_STEPS: List[LeaveStep] = [
    LeaveStep(LeaveStepName.SUBSTITUTE_APPROVAL, LeaveStatus.PENDING_SUBSTITUTE, "substitute"),
    LeaveStep(LeaveStepName.DEPARTMENT_HEAD_APPROVAL, LeaveStatus.PENDING_DEPT_HEAD, "department_head", JobLevel.DEPT_HEAD),
    LeaveStep(LeaveStepName.HR_STAFF_APPROVAL, LeaveStatus.PENDING_HR_STAFF, "hr_staff", hr_group=True),
    LeaveStep(LeaveStepName.CENTER_DIRECTOR_APPROVAL, LeaveStatus.PENDING_CENTER_DIRECTOR, "center_director", JobLevel.CENTER_DIRECTOR),
    LeaveStep(LeaveStepName.HR_FINAL_APPROVAL, LeaveStatus.PENDING_HR_FINAL, "hr_final", hr_group=True),
    LeaveStep(LeaveStepName.ADMIN_DIRECTOR_APPROVAL, LeaveStatus.PENDING_ADMIN_DIRECTOR, "admin_director", JobLevel.ADMIN_DIRECTOR),
    LeaveStep(LeaveStepName.CEO_DIRECTOR_APPROVAL, LeaveStatus.PENDING_CEO_DIRECTOR, "ceo_director", JobLevel.CEO_DIRECTOR),
]

STEPS_BY_NAME: Dict[LeaveStepName, LeaveStep] = {s.name: s for s in LEAVE_STEPS}
STEPS_BY_STATUS: Dict[LeaveStatus, LeaveStep] = {s.status: s for s in LEAVE_STEPS}

APPLICANT_SLOT = "applicant"
LEAVE_SLOTS: List[str] = [APPLICANT_SLOT] + [s.slot for s in LEAVE_STEPS]

# Director steps whose natural approver may turn out to be the applicant.
SELF_SKIP_STEPS = frozenset({
    LeaveStepName.CENTER_DIRECTOR_APPROVAL,
    LeaveStepName.ADMIN_DIRECTOR_APPROVAL,
    LeaveStepName.CEO_DIRECTOR_APPROVAL,
})

_INITIAL_STEP_BY_LEVEL: Dict[int, LeaveStepName] = {
    JobLevel.DEPT_HEAD: LeaveStepName.HR_STAFF_APPROVAL,
    JobLevel.CENTER_DIRECTOR: LeaveStepName.ADMIN_DIRECTOR_APPROVAL,
    JobLevel.PHYSICIAN: LeaveStepName.CENTER_DIRECTOR_APPROVAL,
    JobLevel.ADMIN_DIRECTOR: LeaveStepName.ADMIN_DIRECTOR_APPROVAL,
    JobLevel.CEO_DIRECTOR: LeaveStepName.CEO_DIRECTOR_APPROVAL,
}

_FALLBACK_LEVEL: Dict[LeaveStepName, JobLevel] = {
    LeaveStepName.DEPARTMENT_HEAD_APPROVAL: JobLevel.CENTER_DIRECTOR,
    LeaveStepName.HR_STAFF_APPROVAL: JobLevel.CENTER_DIRECTOR,
    LeaveStepName.CENTER_DIRECTOR_APPROVAL: JobLevel.ADMIN_DIRECTOR,
    LeaveStepName.HR_FINAL_APPROVAL: JobLevel.ADMIN_DIRECTOR,
    LeaveStepName.ADMIN_DIRECTOR_APPROVAL: JobLevel.CEO_DIRECTOR,
}


@dataclass(frozen=True)
class RoutingDecision:
    """Where an application goes next. `step` None means fully approved."""

    step: Optional[LeaveStep]
    approver_id: Optional[str] = None
    self_skipped: Optional[LeaveStepName] = None

    @property
    def completed(self) -> bool:
        return self.step is None


def initial_step(applicant_job_level: int, has_substitute: bool) -> LeaveStepName:
    if applicant_job_level == JobLevel.STAFF:
        return LeaveStepName.SUBSTITUTE_APPROVAL if has_substitute else LeaveStepName.DEPARTMENT_HEAD_APPROVAL
    return _INITIAL_STEP_BY_LEVEL.get(applicant_job_level, LeaveStepName.DEPARTMENT_HEAD_APPROVAL)


def next_step(
    current_step: Optional[LeaveStepName],
    applicant_job_level: int,
    has_substitute: bool,
) -> Optional[LeaveStepName]:
    """Next step name, or None when the application is fully approved."""
    if current_step is None:
        return initial_step(applicant_job_level, has_substitute)
    names = [s.name for s in LEAVE_STEPS]
    idx = names.index(LeaveStepName(current_step))
    if idx + 1 >= len(names):
        return None
    return names[idx + 1]


def steps_after(step_name: LeaveStepName) -> List[LeaveStep]:
    names = [s.name for s in LEAVE_STEPS]
    return LEAVE_STEPS[names.index(LeaveStepName(step_name)) + 1:]


async def hr_group_members(directory: OrganizationDirectory, applicant_id: Optional[str] = None) -> List[str]:
    """HR leave-permission holders inside the HR department, applicant excluded."""
    return await directory.find_permission_holders(
        PermissionType.HR_LEAVE_APPLICATION,
        dept_code=settings.hr_dept_code,
        exclude=applicant_id,
    )


async def _fallback(directory: OrganizationDirectory, step: LeaveStep, applicant: User) -> str:
    level = _FALLBACK_LEVEL.get(step.name)
    if level is not None:
        candidates = await directory.find_users_by_job_level(level, exclude=applicant.user_id)
        if candidates:
            logger.info(
                "No approver for step, falling back to next director level",
                extra={"step": step.name.value, "fallback_level": int(level), "applicant_id": applicant.user_id},
            )
            return candidates[0]
    raise NotFoundError(f"No approver available for {step.name.value}")


async def resolve_substitute(directory: OrganizationDirectory, applicant: User, substitute_id: Optional[str]) -> User:
    if not substitute_id:
        raise ValidationFailedError("Substitute is not assigned")
    if substitute_id == applicant.user_id:
        raise ValidationFailedError("Applicant cannot be their own substitute")
    substitute = await directory.get_user(substitute_id)
    if not substitute.is_active:
        raise AccessDeniedError("Substitute is not an active user")
    return substitute


async def resolve_approver(
    directory: OrganizationDirectory,
    step_name: LeaveStepName,
    applicant: User,
    substitute_id: Optional[str] = None,
) -> Optional[str]:
    """
    Concrete approver for `step_name`, or None for a group-pending HR step
    (the applicant is an HR holder; any other holder may act).
    """
    step = STEPS_BY_NAME[LeaveStepName(step_name)]

    if step.name == LeaveStepName.SUBSTITUTE_APPROVAL:
        substitute = await resolve_substitute(directory, applicant, substitute_id)
        return substitute.user_id

    if step.hr_group:
        holders = await hr_group_members(directory)
        others = [h for h in holders if h != applicant.user_id]
        if applicant.user_id in holders and others:
            return None
        if others:
            return others[0]
        return await _fallback(directory, step, applicant)

    if step.name == LeaveStepName.DEPARTMENT_HEAD_APPROVAL:
        candidates = await directory.find_users_by_dept_and_job_level(
            applicant.dept_code, JobLevel.DEPT_HEAD, exclude=applicant.user_id
        )
    else:
        candidates = await directory.find_users_by_job_level(step.job_level, exclude=applicant.user_id)
    if candidates:
        return candidates[0]
    return await _fallback(directory, step, applicant)


async def _natural_approver_is_applicant(directory: OrganizationDirectory, step: LeaveStep, applicant: User) -> bool:
    if step.job_level is None or applicant.job_level < step.job_level:
        return False
    natural = await directory.find_users_by_job_level(step.job_level)
    return bool(natural) and natural[0] == applicant.user_id


async def route(
    directory: OrganizationDirectory,
    applicant: User,
    substitute_id: Optional[str],
    current_step: Optional[LeaveStepName] = None,
) -> RoutingDecision:
    """Compute the step after `current_step` (or the first step) and who takes it."""
    name = next_step(current_step, applicant.job_level, bool(substitute_id))
    if name is None:
        return RoutingDecision(step=None)
    step = STEPS_BY_NAME[name]
    if step.name in SELF_SKIP_STEPS and await _natural_approver_is_applicant(directory, step, applicant):
        logger.info(
            "Applicant is the natural approver, approving directly",
            extra={"step": step.name.value, "applicant_id": applicant.user_id},
        )
        return RoutingDecision(step=None, self_skipped=step.name)
    approver_id = await resolve_approver(directory, step.name, applicant, substitute_id)
    return RoutingDecision(step=step, approver_id=approver_id)
