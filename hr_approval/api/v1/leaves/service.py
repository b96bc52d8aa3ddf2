"""Leave application lifecycle: draft editing, submit, approve, reject, final approval, delete."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.core.config import settings
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.effects import PostCommitEffects, get_renderer
from hr_approval.core.enums import (
    HalfDayType,
    JobLevel,
    LeaveAuditAction,
    LeaveStatus,
    LeaveStepName,
    LeaveType,
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
from hr_approval.core.models import LeaveApplication, LeaveApplicationDay, LeaveAuditLog, User
from hr_approval.core.models.leave_application import EDITABLE_LEAVE_STATUSES, PENDING_LEAVE_STATUSES
from hr_approval.core.signatures import SignatureEntry, SignatureLedger
from hr_approval.core.unit_of_work import run_action

from .resolver import (
    APPLICANT_SLOT,
    LEAVE_SLOTS,
    STEPS_BY_NAME,
    LeaveStep,
    RoutingDecision,
    hr_group_members,
    resolve_substitute,
    route,
    steps_after,
)
from .schemas import (
    LeaveApplicationDetail,
    LeaveApplicationResponse,
    LeaveAuditLogResponse,
    LeaveDayResponse,
    LeaveFormUpdate,
    LeavePeriod,
    SignatureUpdate,
    VacationBalanceResponse,
)

logger = logging.getLogger(__name__)

HALF_DAY = Decimal("0.5")
FULL_DAY = Decimal("1")
HR_GROUP_STATUSES = frozenset({LeaveStatus.PENDING_HR_STAFF.value, LeaveStatus.PENDING_HR_FINAL.value})
FINAL_APPROVAL_PERMISSIONS = (PermissionType.FINAL_APPROVAL_ALL, PermissionType.FINAL_APPROVAL_LEAVE_APPLICATION)


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def _to_response(app: LeaveApplication) -> LeaveApplicationResponse:
    ledger = SignatureLedger.from_raw(app.signatures)
    return LeaveApplicationResponse(
        id=app.id,
        applicant_id=app.applicant_id,
        substitute_id=app.substitute_id,
        leave_type=app.leave_type,
        leave_detail=app.leave_detail,
        start_date=app.start_date,
        end_date=app.end_date,
        total_days=_decimal(app.total_days),
        application_date=app.application_date,
        status=app.status,
        current_approval_step=app.current_approval_step,
        current_approver_id=app.current_approver_id,
        rejection_reason=app.rejection_reason,
        printable=app.printable,
        is_final_approved=app.is_final_approved,
        final_approver_id=app.final_approver_id,
        final_approval_step=app.final_approval_step,
        final_approval_date=app.final_approval_date,
        signatures={slot: ledger.entries(slot) for slot in ledger.slots()},
        approval_flags=ledger.approval_flags(LEAVE_SLOTS),
        days=[LeaveDayResponse.model_validate(d) for d in app.days],
        created_at=app.created_at,
        updated_at=app.updated_at,
    )


def _print_snapshot(app: LeaveApplication, applicant: User) -> Dict[str, Any]:
    return {
        "document_type": "LEAVE_APPLICATION",
        "id": app.id,
        "applicant_id": applicant.user_id,
        "applicant_name": applicant.user_name,
        "dept_code": applicant.dept_code,
        "leave_type": app.leave_type,
        "leave_detail": app.leave_detail,
        "start_date": app.start_date.isoformat() if app.start_date else None,
        "end_date": app.end_date.isoformat() if app.end_date else None,
        "total_days": str(_decimal(app.total_days)),
        "status": app.status,
        "signatures": app.signatures,
    }


async def _log_leave_audit(
    db: AsyncSession,
    leave_application_id: int,
    action: LeaveAuditAction,
    actor: Optional[User],
    step_name: Optional[str] = None,
    remarks: Optional[str] = None,
) -> None:
    entry = LeaveAuditLog(
        leave_application_id=leave_application_id,
        step_name=step_name,
        action=action.value,
        performed_by=actor.user_id if actor else None,
        performed_by_name=actor.user_name if actor else None,
        performed_by_job_level=actor.job_level if actor else None,
        remarks=remarks,
    )
    db.add(entry)


async def _get_application(db: AsyncSession, leave_id: int, *, for_update: bool = False) -> LeaveApplication:
    stmt = (
        select(LeaveApplication)
        .where(LeaveApplication.id == leave_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    app = result.scalar_one_or_none()
    if not app or app.status == LeaveStatus.DELETED.value:
        raise NotFoundError("Leave application not found")
    return app


def _require_applicant(app: LeaveApplication, actor: User) -> None:
    if app.applicant_id != actor.user_id:
        raise AccessDeniedError("Only the applicant can modify this leave application")


def _require_editable(app: LeaveApplication) -> None:
    if app.status not in EDITABLE_LEAVE_STATUSES:
        raise InvalidStateError(f"Leave application cannot be edited in status {app.status}")


def _current_step(app: LeaveApplication) -> LeaveStep:
    if app.status not in PENDING_LEAVE_STATUSES:
        raise InvalidStateError(f"Leave application is not awaiting approval (status {app.status})")
    try:
        step = STEPS_BY_NAME[LeaveStepName(app.current_approval_step)]
    except (KeyError, ValueError):
        raise ConsistencyError(
            "Pending leave application has no valid current step",
            leave_application_id=app.id,
            status=app.status,
            current_approval_step=app.current_approval_step,
        )
    if step.status.value != app.status:
        raise ConsistencyError(
            "Leave status does not match current step",
            leave_application_id=app.id,
            status=app.status,
            current_approval_step=app.current_approval_step,
        )
    return step


async def _ensure_can_act(directory: OrganizationDirectory, app: LeaveApplication, actor: User) -> LeaveStep:
    """The actor must be the concrete current approver, or a member of the HR group for a group-pending step."""
    step = _current_step(app)
    if not actor.is_active:
        raise AccessDeniedError("Inactive users cannot approve")
    if actor.user_id == app.applicant_id:
        raise AccessDeniedError("Applicants cannot act on their own leave application")
    if app.current_approver_id:
        if actor.user_id != app.current_approver_id:
            raise AccessDeniedError("You are not the current approver of this leave application")
        return step
    if not step.hr_group:
        raise ConsistencyError(
            "Pending leave application has no approver",
            leave_application_id=app.id,
            status=app.status,
        )
    if actor.user_id not in await hr_group_members(directory, app.applicant_id):
        raise AccessDeniedError("You are not in the HR approval group")
    return step


def _approval_entry(actor: User, image_url: Optional[str], signature_date: Any = None, text: Optional[str] = None) -> SignatureEntry:
    return SignatureEntry(
        text=text or actor.user_name,
        image_url=image_url or actor.sign_image,
        is_signed=True,
        signature_date=signature_date,
        signer_id=actor.user_id,
        signer_name=actor.user_name,
    )


def _merge_approval(ledger: SignatureLedger, app: LeaveApplication, slot: str, entry: SignatureEntry) -> None:
    try:
        ledger.record(slot, entry)
    except SignatureConflictError as e:
        logger.info(
            "Slot already signed by another user, keeping existing signature",
            extra={"leave_application_id": app.id, "slot": slot, "existing_signer_id": e.existing_signer_id},
        )


def _build_days(periods: List[LeavePeriod]) -> List[LeaveApplicationDay]:
    by_date: Dict[date, LeaveApplicationDay] = {}
    for period in periods:
        if period.half_day_type != HalfDayType.ALL_DAY:
            by_date[period.start_date] = LeaveApplicationDay(
                leave_date=period.start_date,
                half_day_type=period.half_day_type.value,
                days=HALF_DAY,
            )
            continue
        current = period.start_date
        while current <= period.end_date:
            by_date[current] = LeaveApplicationDay(
                leave_date=current,
                half_day_type=HalfDayType.ALL_DAY.value,
                days=FULL_DAY,
            )
            current += timedelta(days=1)
    return [by_date[d] for d in sorted(by_date)]


def _recompute_totals(app: LeaveApplication) -> None:
    """Date range from the day rows; day count only for annual leave."""
    if app.days:
        app.start_date = min(d.leave_date for d in app.days)
        app.end_date = max(d.leave_date for d in app.days)
    else:
        app.start_date = None
        app.end_date = None
    if app.leave_type == LeaveType.ANNUAL_LEAVE.value:
        app.total_days = sum((_decimal(d.days) for d in app.days), Decimal("0"))
    else:
        app.total_days = Decimal("0")


def _remaining_days(user: User) -> Decimal:
    return _decimal(user.total_vacation_days) - _decimal(user.used_vacation_days)


def _validate_for_submit(app: LeaveApplication, applicant: User) -> None:
    if not app.leave_type:
        raise ValidationFailedError("Leave type is required")
    if not app.days or app.start_date is None or app.end_date is None:
        raise ValidationFailedError("Leave period is required")
    if app.leave_type == LeaveType.ANNUAL_LEAVE.value:
        total = _decimal(app.total_days)
        if total <= 0:
            raise ValidationFailedError("Annual leave must cover at least half a day")
        if total > _remaining_days(applicant):
            raise ValidationFailedError("Insufficient annual leave balance")
    ledger = SignatureLedger.from_raw(app.signatures)
    if not ledger.is_signed(APPLICANT_SLOT):
        raise ValidationFailedError("Applicant signature is required before submitting")


async def _complete(app: LeaveApplication, applicant: User, effects: PostCommitEffects) -> None:
    if app.leave_type == LeaveType.ANNUAL_LEAVE.value:
        total = _decimal(app.total_days)
        if total > _remaining_days(applicant):
            raise ValidationFailedError("Insufficient annual leave balance")
        applicant.used_vacation_days = _decimal(applicant.used_vacation_days) + total
    app.status = LeaveStatus.APPROVED.value
    app.current_approval_step = None
    app.current_approver_id = None
    app.printable = True
    app.updated_at = datetime.utcnow()
    logger.info("Leave application approved", extra={"leave_application_id": app.id, "applicant_id": applicant.user_id})
    effects.render(_print_snapshot(app, applicant))
    effects.notify(applicant.user_id, "leave_approved", leave_application_id=app.id)


async def _advance(
    app: LeaveApplication,
    applicant: User,
    decision: RoutingDecision,
    effects: PostCommitEffects,
) -> None:
    if decision.completed:
        await _complete(app, applicant, effects)
        return
    app.status = decision.step.status.value
    app.current_approval_step = decision.step.name.value
    app.current_approver_id = decision.approver_id
    app.updated_at = datetime.utcnow()
    logger.info(
        "Leave application routed",
        extra={
            "leave_application_id": app.id,
            "step": decision.step.name.value,
            "approver_id": decision.approver_id,
        },
    )
    effects.notify(decision.approver_id, "leave_approval_requested", leave_application_id=app.id)


# ----- Draft editing -----


async def create_leave_application(db: AsyncSession, applicant_id: str) -> LeaveApplicationResponse:
    """Create an empty DRAFT for the applicant."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        applicant = await directory.get_user(applicant_id)
        if not applicant.is_active:
            raise AccessDeniedError("Inactive users cannot apply for leave")
        app = LeaveApplication(
            applicant_id=applicant.user_id,
            status=LeaveStatus.DRAFT.value,
            application_date=date.today(),
            total_days=Decimal("0"),
            signatures={},
            form_periods={},
            printable=False,
            days=[],
        )
        db.add(app)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.create")


async def update_leave_form(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    payload: LeaveFormUpdate,
) -> LeaveApplicationResponse:
    """Edit form fields of a DRAFT or REJECTED application; day rows and totals are recomputed."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        _require_applicant(app, actor)
        _require_editable(app)

        if payload.leave_type is not None:
            app.leave_type = payload.leave_type.value
        if payload.leave_detail is not None:
            app.leave_detail = payload.leave_detail.strip() or None
        if payload.application_date is not None:
            app.application_date = payload.application_date
        if payload.flexible_periods is not None or payload.consecutive_period is not None:
            periods = list(payload.flexible_periods or [])
            if payload.consecutive_period is not None:
                periods.append(payload.consecutive_period)
            app.form_periods = {
                "flexible_periods": [p.model_dump(mode="json") for p in payload.flexible_periods or []],
                "consecutive_period": payload.consecutive_period.model_dump(mode="json") if payload.consecutive_period else None,
            }
            app.days = _build_days(periods)
        _recompute_totals(app)
        app.updated_at = datetime.utcnow()
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.update_form")


async def set_substitute(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    substitute_id: Optional[str],
) -> LeaveApplicationResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        _require_applicant(app, actor)
        _require_editable(app)
        if substitute_id:
            substitute = await resolve_substitute(directory, actor, substitute_id)
            app.substitute_id = substitute.user_id
        else:
            app.substitute_id = None
        app.updated_at = datetime.utcnow()
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.set_substitute")


async def update_signature(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    payload: SignatureUpdate,
) -> LeaveApplicationResponse:
    """Sign a slot directly.

    The applicant slot is signed by the applicant while the application is a
    DRAFT; any other slot only by the party authorized for the current step,
    and only that step's slot.
    """
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        if payload.slot not in LEAVE_SLOTS:
            raise ValidationFailedError(f"Unknown signature slot: {payload.slot}")
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        step_name = None
        if payload.slot == APPLICANT_SLOT:
            _require_applicant(app, actor)
            if app.status != LeaveStatus.DRAFT.value:
                raise InvalidStateError("The applicant can only sign while the application is a draft")
        else:
            step = await _ensure_can_act(directory, app, actor)
            if step.slot != payload.slot:
                raise AccessDeniedError("You can only sign the slot of the current approval step")
            step_name = step.name.value

        ledger = SignatureLedger.from_raw(app.signatures)
        ledger.record(
            payload.slot,
            SignatureEntry(
                text=payload.text or actor.user_name,
                image_url=payload.image_url or actor.sign_image,
                is_signed=payload.is_signed,
                signature_date=payload.signature_date,
                signer_id=actor.user_id,
                signer_name=actor.user_name,
            ),
        )
        app.signatures = ledger.dump()
        app.updated_at = datetime.utcnow()
        await _log_leave_audit(db, app.id, LeaveAuditAction.SIGNED, actor, step_name=step_name, remarks=payload.slot)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.update_signature")


# ----- Approval flow -----


async def submit_leave_application(db: AsyncSession, leave_id: int, actor_id: str) -> LeaveApplicationResponse:
    """Submit a DRAFT (or resubmit a REJECTED) application; routing restarts from the first step."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        app = await _get_application(db, leave_id, for_update=True)
        applicant = await directory.get_user(actor_id)
        _require_applicant(app, applicant)
        _require_editable(app)
        _validate_for_submit(app, applicant)

        decision = await route(directory, applicant, app.substitute_id)
        app.rejection_reason = None
        app.is_final_approved = False
        app.final_approver_id = None
        app.final_approval_step = None
        app.final_approval_date = None
        await _log_leave_audit(db, app.id, LeaveAuditAction.SUBMITTED, applicant)
        if decision.self_skipped is not None:
            await _log_leave_audit(
                db,
                app.id,
                LeaveAuditAction.SKIPPED,
                applicant,
                step_name=decision.self_skipped.value,
                remarks="applicant is the approver for this step",
            )
        await _advance(app, applicant, decision, effects)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.submit")


async def approve_leave_application(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    signature_image_url: Optional[str] = None,
    signature_date: Any = None,
    comment: Optional[str] = None,
) -> LeaveApplicationResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        step = await _ensure_can_act(directory, app, actor)

        ledger = SignatureLedger.from_raw(app.signatures)
        _merge_approval(ledger, app, step.slot, _approval_entry(actor, signature_image_url, signature_date))
        app.signatures = ledger.dump()
        await _log_leave_audit(db, app.id, LeaveAuditAction.APPROVED, actor, step_name=step.name.value, remarks=comment)

        applicant = await directory.get_user(app.applicant_id)
        decision = await route(directory, applicant, app.substitute_id, current_step=step.name)
        if decision.self_skipped is not None:
            await _log_leave_audit(
                db,
                app.id,
                LeaveAuditAction.SKIPPED,
                applicant,
                step_name=decision.self_skipped.value,
                remarks="applicant is the approver for this step",
            )
        await _advance(app, applicant, decision, effects)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.approve")


async def reject_leave_application(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    reason: str,
) -> LeaveApplicationResponse:
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        if not reason or not reason.strip():
            raise ValidationFailedError("Rejection reason is required")
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        step = await _ensure_can_act(directory, app, actor)

        app.status = LeaveStatus.REJECTED.value
        app.rejection_reason = reason.strip()
        app.current_approval_step = None
        app.current_approver_id = None
        app.printable = False
        app.updated_at = datetime.utcnow()
        await _log_leave_audit(db, app.id, LeaveAuditAction.REJECTED, actor, step_name=step.name.value, remarks=app.rejection_reason)
        logger.info(
            "Leave application rejected",
            extra={"leave_application_id": app.id, "step": step.name.value, "approver_id": actor.user_id},
        )
        effects.notify(app.applicant_id, "leave_rejected", leave_application_id=app.id, reason=app.rejection_reason)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.reject")


async def final_approve_leave_application(
    db: AsyncSession,
    leave_id: int,
    actor_id: str,
    signature_image_url: Optional[str] = None,
    signature_date: Any = None,
) -> LeaveApplicationResponse:
    """Approve the current step and settle every later step in one decision."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> LeaveApplicationResponse:
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        step = await _ensure_can_act(directory, app, actor)

        senior = actor.job_level >= settings.final_approval_min_job_level
        delegated = step.hr_group and await directory.has_any_permission(actor.user_id, FINAL_APPROVAL_PERMISSIONS)
        if not senior and not delegated:
            raise AccessDeniedError("You are not allowed to final-approve this leave application")

        final_approver = FinalApprover(user_id=actor.user_id, user_name=actor.user_name)
        later = steps_after(step.name)
        ledger = SignatureLedger.from_raw(app.signatures)
        apply_final_approval(
            ledger,
            actor=final_approver,
            decision_slot=step.slot,
            decision=_approval_entry(actor, signature_image_url, signature_date),
            later_slots=[s.slot for s in later],
        )
        app.signatures = ledger.dump()

        await _log_leave_audit(db, app.id, LeaveAuditAction.FINAL_APPROVED, actor, step_name=step.name.value)
        for skipped in later:
            await _log_leave_audit(
                db,
                app.id,
                LeaveAuditAction.SKIPPED,
                actor,
                step_name=skipped.name.value,
                remarks=finalized_reason(final_approver),
            )
        app.is_final_approved = True
        app.final_approver_id = actor.user_id
        app.final_approval_step = step.name.value
        app.final_approval_date = datetime.utcnow()

        applicant = await directory.get_user(app.applicant_id)
        await _complete(app, applicant, effects)
        await db.flush()
        return _to_response(app)

    return await run_action(db, _action, name="leave.final_approve")


async def delete_leave_application(db: AsyncSession, leave_id: int, actor_id: str) -> None:
    """Soft-delete a DRAFT."""
    directory = OrganizationDirectory(db)

    async def _action(effects: PostCommitEffects) -> None:
        app = await _get_application(db, leave_id, for_update=True)
        actor = await directory.get_user(actor_id)
        _require_applicant(app, actor)
        if app.status != LeaveStatus.DRAFT.value:
            raise InvalidStateError("Only draft leave applications can be deleted")
        app.status = LeaveStatus.DELETED.value
        app.updated_at = datetime.utcnow()
        await _log_leave_audit(db, app.id, LeaveAuditAction.DELETED, actor)
        await db.flush()

    await run_action(db, _action, name="leave.delete")


# ----- Reads -----


async def _can_view(directory: OrganizationDirectory, app: LeaveApplication, viewer: User) -> bool:
    if viewer.user_id in (app.applicant_id, app.substitute_id, app.current_approver_id):
        return True
    if viewer.role == UserRole.ADMIN.value or viewer.job_level >= JobLevel.SUPER_ADMIN:
        return True
    participants = await directory.db.execute(
        select(LeaveAuditLog.id).where(
            LeaveAuditLog.leave_application_id == app.id,
            LeaveAuditLog.performed_by == viewer.user_id,
        ).limit(1)
    )
    if participants.scalar_one_or_none():
        return True
    return viewer.user_id in await hr_group_members(directory, app.applicant_id)


async def get_leave_application(db: AsyncSession, leave_id: int, viewer_id: str) -> LeaveApplicationDetail:
    directory = OrganizationDirectory(db)
    app = await _get_application(db, leave_id)
    viewer = await directory.get_user(viewer_id)
    if not await _can_view(directory, app, viewer):
        raise AccessDeniedError("You are not allowed to view this leave application")
    result = await db.execute(
        select(LeaveAuditLog)
        .where(LeaveAuditLog.leave_application_id == app.id)
        .order_by(LeaveAuditLog.id)
    )
    history = [LeaveAuditLogResponse.model_validate(row) for row in result.scalars().all()]
    return LeaveApplicationDetail(**_to_response(app).model_dump(), history=history)


async def list_my_leave_applications(db: AsyncSession, applicant_id: str) -> List[LeaveApplicationResponse]:
    result = await db.execute(
        select(LeaveApplication)
        .where(
            LeaveApplication.applicant_id == applicant_id,
            LeaveApplication.status != LeaveStatus.DELETED.value,
        )
        .order_by(LeaveApplication.id.desc())
    )
    return [_to_response(a) for a in result.scalars().all()]


async def list_pending_for_approver(db: AsyncSession, approver_id: str) -> List[LeaveApplicationResponse]:
    """Applications assigned to the approver, plus group-pending HR steps they may take."""
    directory = OrganizationDirectory(db)
    result = await db.execute(
        select(LeaveApplication).where(
            LeaveApplication.current_approver_id == approver_id,
            LeaveApplication.status.in_(PENDING_LEAVE_STATUSES),
        )
    )
    apps = {a.id: a for a in result.scalars().all()}
    if approver_id in await hr_group_members(directory):
        group = await db.execute(
            select(LeaveApplication).where(
                LeaveApplication.current_approver_id.is_(None),
                LeaveApplication.status.in_(HR_GROUP_STATUSES),
                LeaveApplication.applicant_id != approver_id,
            )
        )
        for a in group.scalars().all():
            apps[a.id] = a
    return [_to_response(apps[k]) for k in sorted(apps)]


async def render_leave_application(db: AsyncSession, leave_id: int, viewer_id: str) -> bytes:
    directory = OrganizationDirectory(db)
    app = await _get_application(db, leave_id)
    viewer = await directory.get_user(viewer_id)
    if not await _can_view(directory, app, viewer):
        raise AccessDeniedError("You are not allowed to view this leave application")
    if not app.printable:
        raise InvalidStateError("Leave application is not printable until fully approved")
    applicant = await directory.get_user(app.applicant_id)
    return get_renderer().render(_print_snapshot(app, applicant))


async def get_vacation_balance(db: AsyncSession, user_id: str) -> VacationBalanceResponse:
    user = await OrganizationDirectory(db).get_user(user_id)
    return VacationBalanceResponse(
        user_id=user.user_id,
        total_days=_decimal(user.total_vacation_days),
        used_days=_decimal(user.used_vacation_days),
        remaining_days=_remaining_days(user),
    )
