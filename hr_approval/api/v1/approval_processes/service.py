"""
Generic approval process for contracts and work schedules.

start_process freezes every step of the chosen approval line into a PENDING
history row holding the resolved approver snapshot. Every later action reads
only those rows and the step orders captured at start, so editing the line
afterwards cannot reroute a running process.

The bound document mirrors the process: status, current step and approver,
printable flag, and one signature slot per signing step (``step_<order>``).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.api.v1.approval_lines.service import get_active_line
from hr_approval.api.v1.leaves.resolver import resolve_substitute
from hr_approval.core.config import settings
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.effects import PostCommitEffects
from hr_approval.core.enums import (
    ApprovalAction,
    ApprovalProcessStatus,
    ApproverType,
    DocumentStatus,
    DocumentType,
    JobLevel,
    PermissionType,
    UserRole,
)
from hr_approval.core.exceptions import (
    AccessDeniedError,
    ConsistencyError,
    InvalidStateError,
    NotFoundError,
    SignatureConflictError,
    ValidationFailedError,
)
from hr_approval.core.final_approval import FinalApprover, apply_final_approval, finalized_reason
from hr_approval.core.models import (
    ApprovalStep,
    ApprovalStepHistory,
    DocumentApprovalProcess,
    EmploymentContract,
    User,
    WorkSchedule,
)
from hr_approval.core.signatures import SignatureEntry, SignatureLedger, normalize_image_url
from hr_approval.core.unit_of_work import run_action

from .schemas import ApprovalProcessResponse, StepHistoryResponse

logger = logging.getLogger(__name__)

ApprovalDocument = Union[EmploymentContract, WorkSchedule]

DOCUMENT_MODELS: Dict[DocumentType, Type[ApprovalDocument]] = {
    DocumentType.EMPLOYMENT_CONTRACT: EmploymentContract,
    DocumentType.WORK_SCHEDULE: WorkSchedule,
}

FINAL_APPROVAL_PERMISSIONS: Dict[DocumentType, Tuple[PermissionType, ...]] = {
    DocumentType.EMPLOYMENT_CONTRACT: (PermissionType.FINAL_APPROVAL_ALL, PermissionType.FINAL_APPROVAL_CONTRACT),
    DocumentType.WORK_SCHEDULE: (PermissionType.FINAL_APPROVAL_ALL, PermissionType.FINAL_APPROVAL_WORK_SCHEDULE),
}


def step_slot(step_order: int) -> str:
    return f"step_{step_order}"


def document_snapshot(document_type: DocumentType, document: ApprovalDocument) -> Dict[str, Any]:
    snapshot = {c.key: getattr(document, c.key) for c in document.__table__.columns}
    snapshot["document_type"] = document_type.value
    return snapshot


async def load_document(
    db: AsyncSession,
    document_type: DocumentType,
    document_id: int,
    *,
    for_update: bool = False,
) -> ApprovalDocument:
    model = DOCUMENT_MODELS.get(DocumentType(document_type))
    if model is None:
        raise ValidationFailedError(f"Unsupported document type: {document_type}")
    stmt = select(model).where(model.id == document_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    document = result.scalar_one_or_none()
    if not document or document.status == DocumentStatus.DELETED.value:
        raise NotFoundError("Document not found")
    return document


async def _resolve_step(
    directory: OrganizationDirectory,
    step: ApprovalStep,
    applicant: User,
    substitute_id: Optional[str],
) -> Optional[User]:
    """Concrete approver for a template step; None for a permission group."""
    approver_type = ApproverType(step.approver_type)

    if approver_type == ApproverType.SPECIFIC_USER:
        approver = await directory.find_user(step.approver_id)
        if not approver or not approver.is_active:
            raise ValidationFailedError(f"Step {step.step_order}: approver {step.approver_id} is not an active user")
        if approver.user_id == applicant.user_id:
            raise ValidationFailedError(f"Step {step.step_order}: the applicant cannot approve their own document")
        return approver

    if approver_type == ApproverType.SUBSTITUTE:
        return await resolve_substitute(directory, applicant, substitute_id)

    if approver_type == ApproverType.PERMISSION_GROUP:
        holders = await directory.find_permission_holders(step.permission_type, exclude=applicant.user_id)
        if not holders:
            raise NotFoundError(f"Step {step.step_order}: nobody holds {step.permission_type}")
        return None

    if approver_type == ApproverType.DEPT_JOB_LEVEL:
        candidates = await directory.find_users_by_dept_and_job_level(
            step.dept_code or applicant.dept_code, step.job_level, exclude=applicant.user_id
        )
    else:
        candidates = await directory.find_users_by_job_level(step.job_level, exclude=applicant.user_id)
    if not candidates:
        raise NotFoundError(f"Step {step.step_order}: no approver available for {step.step_name}")
    return await directory.get_user(candidates[0])


def _freeze_step(step: ApprovalStep, approver: Optional[User]) -> ApprovalStepHistory:
    return ApprovalStepHistory(
        step_order=step.step_order,
        step_name=step.step_name,
        approver_type=step.approver_type,
        approver_id=approver.user_id if approver else None,
        approver_name=approver.user_name if approver else None,
        approver_job_level=approver.job_level if approver else None,
        approver_dept_code=approver.dept_code if approver else None,
        required_permission=step.permission_type if approver is None else None,
        is_optional=step.is_optional,
        is_final_approval_available=step.is_final_approval_available,
        action=ApprovalAction.PENDING.value,
        is_signed=False,
    )


async def start_process(
    db: AsyncSession,
    document_type: DocumentType,
    document: ApprovalDocument,
    approval_line_id: int,
    applicant_id: str,
    substitute_id: Optional[str] = None,
) -> DocumentApprovalProcess:
    """Freeze the line into a new process and bind `document` to its first step. Caller commits."""
    directory = OrganizationDirectory(db)
    line = await get_active_line(db, approval_line_id)
    if not line.is_active:
        raise ValidationFailedError("Approval line is not active")
    if line.document_type != DocumentType(document_type).value:
        raise ValidationFailedError("Approval line does not apply to this document type")
    if not line.steps:
        raise ValidationFailedError("Approval line has no steps")

    applicant = await directory.get_user(applicant_id)
    histories = []
    for step in line.steps:
        approver = await _resolve_step(directory, step, applicant, substitute_id)
        histories.append(_freeze_step(step, approver))

    process = DocumentApprovalProcess(
        document_id=document.id,
        document_type=DocumentType(document_type).value,
        applicant_id=applicant.user_id,
        approval_line_id=line.id,
        step_orders=[h.step_order for h in histories],
        current_step_order=histories[0].step_order,
        status=ApprovalProcessStatus.IN_PROGRESS.value,
        histories=histories,
    )
    db.add(process)
    await db.flush()

    document.approval_process_id = process.id
    document.status = DocumentStatus.IN_PROGRESS.value
    document.current_step_order = histories[0].step_order
    document.current_approver_id = histories[0].approver_id
    document.rejection_reason = None
    document.printable = False
    document.updated_at = datetime.utcnow()
    logger.info(
        "Approval process started",
        extra={
            "process_id": process.id,
            "document_type": process.document_type,
            "document_id": document.id,
            "step_count": len(histories),
        },
    )
    return process


async def _get_process(db: AsyncSession, process_id: int, *, for_update: bool = False) -> DocumentApprovalProcess:
    stmt = (
        select(DocumentApprovalProcess)
        .where(DocumentApprovalProcess.id == process_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    process = result.scalar_one_or_none()
    if not process:
        raise NotFoundError("Approval process not found")
    return process


def _history_for(process: DocumentApprovalProcess, step_order: Optional[int]) -> Optional[ApprovalStepHistory]:
    for history in process.histories:
        if history.step_order == step_order:
            return history
    return None


def _current_history(process: DocumentApprovalProcess) -> ApprovalStepHistory:
    if process.status != ApprovalProcessStatus.IN_PROGRESS.value:
        raise InvalidStateError(f"Approval process is not in progress (status {process.status})")
    history = _history_for(process, process.current_step_order)
    if history is None or history.action != ApprovalAction.PENDING.value:
        raise ConsistencyError(
            "Current step has no pending history row",
            process_id=process.id,
            step_order=process.current_step_order,
        )
    return history


async def _ensure_can_act(
    directory: OrganizationDirectory,
    process: DocumentApprovalProcess,
    history: ApprovalStepHistory,
    actor: User,
) -> None:
    if not actor.is_active:
        raise AccessDeniedError("Inactive users cannot approve")
    if actor.user_id == process.applicant_id:
        raise AccessDeniedError("Applicants cannot act on their own document")
    if history.approver_id:
        if history.approver_id != actor.user_id:
            raise AccessDeniedError("You are not the approver of the current step")
        return
    if not history.required_permission:
        raise ConsistencyError(
            "Step has neither an approver nor a permission group",
            process_id=process.id,
            step_order=history.step_order,
        )
    holders = await directory.find_permission_holders(history.required_permission, exclude=process.applicant_id)
    if actor.user_id not in holders:
        raise AccessDeniedError("You are not in the approval group of the current step")


def _signature(actor: User, image_url: Optional[str]) -> SignatureEntry:
    return SignatureEntry(
        text=actor.user_name,
        image_url=image_url or actor.sign_image,
        is_signed=True,
        signer_id=actor.user_id,
        signer_name=actor.user_name,
    )


def _mark_acted(history: ApprovalStepHistory, action: ApprovalAction, actor: User, comment: Optional[str], image_url: Optional[str]) -> None:
    history.action = action.value
    history.acted_by = actor.user_id
    history.comment = comment
    history.is_signed = not history.is_optional
    history.signature_image_url = normalize_image_url(image_url or actor.sign_image) if not history.is_optional else None
    history.action_date = datetime.utcnow()


def _complete(
    process: DocumentApprovalProcess,
    document_type: DocumentType,
    document: ApprovalDocument,
    effects: PostCommitEffects,
) -> None:
    process.status = ApprovalProcessStatus.APPROVED.value
    process.current_step_order = None
    process.updated_at = datetime.utcnow()
    document.status = DocumentStatus.APPROVED.value
    document.current_step_order = None
    document.current_approver_id = None
    document.printable = True
    document.updated_at = datetime.utcnow()
    logger.info("Approval process completed", extra={"process_id": process.id, "document_id": document.id})
    effects.render(document_snapshot(document_type, document))
    effects.notify(process.applicant_id, "document_approved", process_id=process.id, document_id=document.id)


def _move_to_next_step(
    process: DocumentApprovalProcess,
    document_type: DocumentType,
    document: ApprovalDocument,
    effects: PostCommitEffects,
) -> None:
    later = sorted(o for o in process.step_orders if o > process.current_step_order)
    if not later:
        _complete(process, document_type, document, effects)
        return
    next_history = _history_for(process, later[0])
    if next_history is None or next_history.action != ApprovalAction.PENDING.value:
        raise ConsistencyError(
            "Next step has no pending history row",
            process_id=process.id,
            step_order=later[0],
        )
    process.current_step_order = next_history.step_order
    process.updated_at = datetime.utcnow()
    document.current_step_order = next_history.step_order
    document.current_approver_id = next_history.approver_id
    document.updated_at = datetime.utcnow()
    effects.notify(next_history.approver_id, "document_approval_requested", process_id=process.id, document_id=document.id)


async def _act(
    db: AsyncSession,
    process_id: int,
    actor_id: str,
    handler,
    *,
    name: str,
) -> ApprovalProcessResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> ApprovalProcessResponse:
        process = await _get_process(db, process_id, for_update=True)
        document_type = DocumentType(process.document_type)
        document = await load_document(db, document_type, process.document_id, for_update=True)
        history = _current_history(process)
        actor = await directory.get_user(actor_id)
        await _ensure_can_act(directory, process, history, actor)
        await handler(directory, process, document_type, document, history, actor, effects)
        await db.flush()
        return ApprovalProcessResponse.model_validate(process)

    return await run_action(db, _action, name=name)


async def approve_step(
    db: AsyncSession,
    process_id: int,
    actor_id: str,
    comment: Optional[str] = None,
    signature_image_url: Optional[str] = None,
) -> ApprovalProcessResponse:
    async def _approve(directory, process, document_type, document, history, actor, effects) -> None:
        _mark_acted(history, ApprovalAction.APPROVED, actor, comment, signature_image_url)
        if not history.is_optional:
            ledger = SignatureLedger.from_raw(document.signatures)
            try:
                ledger.record(step_slot(history.step_order), _signature(actor, signature_image_url))
            except SignatureConflictError as e:
                logger.info(
                    "Slot already signed by another user, keeping existing signature",
                    extra={"process_id": process.id, "slot": e.slot, "existing_signer_id": e.existing_signer_id},
                )
            document.signatures = ledger.dump()
        _move_to_next_step(process, document_type, document, effects)

    return await _act(db, process_id, actor_id, _approve, name="process.approve")


async def final_approve_step(
    db: AsyncSession,
    process_id: int,
    actor_id: str,
    comment: Optional[str] = None,
    signature_image_url: Optional[str] = None,
) -> ApprovalProcessResponse:
    """Approve the current step and skip every step still pending after it."""

    async def _final(directory, process, document_type, document, history, actor, effects) -> None:
        senior = actor.job_level >= settings.final_approval_min_job_level
        delegated = history.is_final_approval_available and await directory.has_any_permission(
            actor.user_id, FINAL_APPROVAL_PERMISSIONS[document_type]
        )
        if not senior and not delegated:
            raise AccessDeniedError("You are not allowed to final-approve this document")

        final_approver = FinalApprover(user_id=actor.user_id, user_name=actor.user_name)
        _mark_acted(history, ApprovalAction.FINAL_APPROVED, actor, comment, signature_image_url)
        later = [
            h for h in process.histories
            if h.step_order > history.step_order and h.action == ApprovalAction.PENDING.value
        ]
        for skipped in later:
            skipped.action = ApprovalAction.SKIPPED.value
            skipped.acted_by = actor.user_id
            skipped.comment = finalized_reason(final_approver)
            skipped.action_date = datetime.utcnow()

        ledger = SignatureLedger.from_raw(document.signatures)
        apply_final_approval(
            ledger,
            actor=final_approver,
            decision_slot=step_slot(history.step_order),
            decision=None if history.is_optional else _signature(actor, signature_image_url),
            later_slots=[step_slot(h.step_order) for h in later if not h.is_optional],
        )
        document.signatures = ledger.dump()
        _complete(process, document_type, document, effects)

    return await _act(db, process_id, actor_id, _final, name="process.final_approve")


async def reject_step(db: AsyncSession, process_id: int, actor_id: str, reason: str) -> ApprovalProcessResponse:
    if not reason or not reason.strip():
        raise ValidationFailedError("Rejection reason is required")

    async def _reject(directory, process, document_type, document, history, actor, effects) -> None:
        _mark_acted(history, ApprovalAction.REJECTED, actor, reason.strip(), None)
        history.is_signed = False
        history.signature_image_url = None
        process.status = ApprovalProcessStatus.REJECTED.value
        process.current_step_order = None
        process.updated_at = datetime.utcnow()
        document.status = DocumentStatus.REJECTED.value
        document.rejection_reason = reason.strip()
        document.current_step_order = None
        document.current_approver_id = None
        document.printable = False
        document.updated_at = datetime.utcnow()
        logger.info(
            "Approval process rejected",
            extra={"process_id": process.id, "step_order": history.step_order, "approver_id": actor.user_id},
        )
        effects.notify(process.applicant_id, "document_rejected", process_id=process.id, reason=document.rejection_reason)

    return await _act(db, process_id, actor_id, _reject, name="process.reject")


DOCUMENT_PARTY_COLUMNS = ("creator_id", "employee_id", "created_by", "current_approver_id")


def _is_document_party(document: ApprovalDocument, viewer: User) -> bool:
    if viewer.user_id in {getattr(document, column, None) for column in DOCUMENT_PARTY_COLUMNS}:
        return True
    dept_code = getattr(document, "dept_code", None)
    return dept_code is not None and dept_code == viewer.dept_code


async def _may_view(
    directory: OrganizationDirectory,
    viewer: User,
    document: Optional[ApprovalDocument],
    process: Optional[DocumentApprovalProcess],
) -> bool:
    """Parties of the document, anyone frozen into the process, group holders and admins."""
    if viewer.role == UserRole.ADMIN.value or viewer.job_level >= JobLevel.SUPER_ADMIN:
        return True
    if document is not None and _is_document_party(document, viewer):
        return True
    if process is None:
        return False
    if viewer.user_id == process.applicant_id:
        return True
    granted: Optional[set] = None
    for history in process.histories:
        if viewer.user_id in (history.approver_id, history.acted_by):
            return True
        if history.required_permission:
            if granted is None:
                granted = {p.value for p in await directory.get_permissions(viewer.user_id)}
            if history.required_permission in granted:
                return True
    return False


async def ensure_can_view_document(db: AsyncSession, document: ApprovalDocument, viewer_id: str) -> None:
    directory = OrganizationDirectory(db)
    viewer = await directory.get_user(viewer_id)
    process = await _get_process(db, document.approval_process_id) if document.approval_process_id else None
    if not await _may_view(directory, viewer, document, process):
        raise AccessDeniedError("You are not allowed to view this document")


async def _get_visible_process(db: AsyncSession, process_id: int, viewer_id: str) -> DocumentApprovalProcess:
    directory = OrganizationDirectory(db)
    viewer = await directory.get_user(viewer_id)
    process = await _get_process(db, process_id)
    model = DOCUMENT_MODELS.get(DocumentType(process.document_type))
    document = await db.get(model, process.document_id) if model else None
    if not await _may_view(directory, viewer, document, process):
        raise AccessDeniedError("You are not allowed to view this approval process")
    return process


async def get_process(db: AsyncSession, process_id: int, viewer_id: str) -> ApprovalProcessResponse:
    return ApprovalProcessResponse.model_validate(await _get_visible_process(db, process_id, viewer_id))


async def get_remaining_steps(db: AsyncSession, process_id: int, viewer_id: str) -> List[StepHistoryResponse]:
    """History rows still PENDING, in step order."""
    process = await _get_visible_process(db, process_id, viewer_id)
    return [
        StepHistoryResponse.model_validate(h)
        for h in process.histories
        if h.action == ApprovalAction.PENDING.value
    ]
