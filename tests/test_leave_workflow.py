"""Leave application state machine, end to end through the service layer."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from conftest import signed_draft
from hr_approval.api.v1.leaves import service
from hr_approval.api.v1.leaves.schemas import LeaveFormUpdate, LeavePeriod, SignatureUpdate
from hr_approval.core.effects import LoggingNotifier, configure_effects
from hr_approval.core.enums import HalfDayType, LeaveAuditAction, LeaveStatus, LeaveStepName, LeaveType, PermissionType
from hr_approval.core.exceptions import (
    AccessDeniedError,
    InvalidStateError,
    NotFoundError,
    SignatureConflictError,
    ValidationFailedError,
)
from hr_approval.core.models import LeaveApplication, LeaveAuditLog, User, UserPermission
from hr_approval.core.signatures import SignatureEntry, SignatureLedger


async def _audit_rows(db, leave_id):
    result = await db.execute(
        select(LeaveAuditLog).where(LeaveAuditLog.leave_application_id == leave_id).order_by(LeaveAuditLog.id)
    )
    return list(result.scalars().all())


async def _walk(db, leave_id, *approvers):
    res = None
    for approver in approvers:
        res = await service.approve_leave_application(db, leave_id, approver)
    return res


@pytest.fixture()
def failing_notifier():
    class _Failing:
        async def send(self, recipient_id, template, variables):
            raise RuntimeError("mail server down")

    configure_effects(notifier=_Failing())
    yield
    configure_effects(notifier=LoggingNotifier())


# ----- Draft editing -----


@pytest.mark.asyncio
async def test_create_starts_as_empty_draft(db_session, org) -> None:
    created = await service.create_leave_application(db_session, "staff1")
    assert created.status == LeaveStatus.DRAFT.value
    assert created.total_days == Decimal("0")
    assert created.signatures == {}
    assert created.approval_flags["applicant"] is False


@pytest.mark.asyncio
async def test_half_days_and_flexible_periods_are_totalled(db_session, org) -> None:
    created = await service.create_leave_application(db_session, "staff1")
    res = await service.update_leave_form(
        db_session,
        created.id,
        "staff1",
        LeaveFormUpdate(
            leave_type=LeaveType.ANNUAL_LEAVE,
            flexible_periods=[
                LeavePeriod(start_date=date(2025, 3, 3)),
                LeavePeriod(start_date=date(2025, 3, 5), half_day_type=HalfDayType.MORNING),
            ],
            consecutive_period=LeavePeriod(start_date=date(2025, 3, 10)),
        ),
    )
    assert res.total_days == Decimal("2.5")
    assert res.start_date == date(2025, 3, 3)
    assert res.end_date == date(2025, 3, 10)
    assert [d.half_day_type for d in res.days] == ["ALL_DAY", "MORNING", "ALL_DAY"]


@pytest.mark.asyncio
async def test_non_annual_leave_has_no_day_count(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1", leave_type=LeaveType.SICK_LEAVE)
    detail = await service.get_leave_application(db_session, leave_id, "staff1")
    assert detail.total_days == Decimal("0")
    assert len(detail.days) == 2


@pytest.mark.asyncio
async def test_periods_are_replaced_on_edit(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    res = await service.update_leave_form(
        db_session,
        leave_id,
        "staff1",
        LeaveFormUpdate(consecutive_period=LeavePeriod(start_date=date(2025, 4, 1), end_date=date(2025, 4, 3))),
    )
    assert [d.leave_date for d in res.days] == [date(2025, 4, 1), date(2025, 4, 2), date(2025, 4, 3)]
    assert res.total_days == Decimal("3")


@pytest.mark.asyncio
async def test_only_applicant_edits_draft(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    with pytest.raises(AccessDeniedError):
        await service.update_leave_form(db_session, leave_id, "staff2", LeaveFormUpdate(leave_detail="mine now"))


def test_half_day_period_must_be_single_date() -> None:
    with pytest.raises(ValueError):
        LeavePeriod(start_date=date(2025, 3, 3), end_date=date(2025, 3, 4), half_day_type=HalfDayType.AFTERNOON)


# ----- Submit validation -----


@pytest.mark.asyncio
async def test_submit_requires_applicant_signature(db_session, org) -> None:
    created = await service.create_leave_application(db_session, "staff1")
    await service.update_leave_form(
        db_session,
        created.id,
        "staff1",
        LeaveFormUpdate(leave_type=LeaveType.ANNUAL_LEAVE, consecutive_period=LeavePeriod(start_date=date(2025, 3, 3))),
    )
    with pytest.raises(ValidationFailedError):
        await service.submit_leave_application(db_session, created.id, "staff1")


@pytest.mark.asyncio
async def test_submit_requires_period(db_session, org) -> None:
    created = await service.create_leave_application(db_session, "staff1")
    await service.update_leave_form(db_session, created.id, "staff1", LeaveFormUpdate(leave_type=LeaveType.ANNUAL_LEAVE))
    with pytest.raises(ValidationFailedError):
        await service.submit_leave_application(db_session, created.id, "staff1")


@pytest.mark.asyncio
async def test_submit_rejects_insufficient_balance(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1", start=date(2025, 3, 1), end=date(2025, 3, 20))
    with pytest.raises(ValidationFailedError):
        await service.submit_leave_application(db_session, leave_id, "staff1")
    detail = await service.get_leave_application(db_session, leave_id, "staff1")
    assert detail.status == LeaveStatus.DRAFT.value


# ----- Approval chain -----


@pytest.mark.asyncio
async def test_staff_full_chain_to_approval(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")

    res = await service.submit_leave_application(db_session, leave_id, "staff1")
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value
    assert res.current_approver_id == "head1"

    expected = [
        ("head1", LeaveStatus.PENDING_HR_STAFF, "hr1"),
        ("hr1", LeaveStatus.PENDING_CENTER_DIRECTOR, "center1"),
        ("center1", LeaveStatus.PENDING_HR_FINAL, "hr1"),
        ("hr1", LeaveStatus.PENDING_ADMIN_DIRECTOR, "admin1"),
        ("admin1", LeaveStatus.PENDING_CEO_DIRECTOR, "ceo1"),
    ]
    for approver, status, next_approver in expected:
        res = await service.approve_leave_application(db_session, leave_id, approver)
        assert res.status == status.value
        assert res.current_approver_id == next_approver

    res = await service.approve_leave_application(db_session, leave_id, "ceo1", comment="enjoy")
    assert res.status == LeaveStatus.APPROVED.value
    assert res.printable is True
    assert res.current_approval_step is None
    assert all(res.approval_flags[slot] for slot in ("applicant", "department_head", "hr_staff", "ceo_director"))
    assert res.approval_flags["substitute"] is False

    balance = await service.get_vacation_balance(db_session, "staff1")
    assert balance.used_days == Decimal("2")
    assert balance.remaining_days == Decimal("13")

    actions = [row.action for row in await _audit_rows(db_session, leave_id)]
    assert actions.count(LeaveAuditAction.APPROVED.value) == 6
    assert actions[-1] == LeaveAuditAction.APPROVED.value

    content = await service.render_leave_application(db_session, leave_id, "staff1")
    assert b'"status": "APPROVED"' in content


@pytest.mark.asyncio
async def test_substitute_step_comes_first(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.set_substitute(db_session, leave_id, "staff1", "staff2")

    res = await service.submit_leave_application(db_session, leave_id, "staff1")
    assert res.status == LeaveStatus.PENDING_SUBSTITUTE.value
    assert res.current_approver_id == "staff2"

    res = await service.approve_leave_application(db_session, leave_id, "staff2")
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value
    assert res.signatures["substitute"][0].signer_id == "staff2"


@pytest.mark.asyncio
async def test_substitute_must_be_someone_else(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    with pytest.raises(ValidationFailedError):
        await service.set_substitute(db_session, leave_id, "staff1", "staff1")
    with pytest.raises(NotFoundError):
        await service.set_substitute(db_session, leave_id, "staff1", "ghost")


@pytest.mark.asyncio
async def test_only_current_approver_may_act(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")

    with pytest.raises(AccessDeniedError):
        await service.approve_leave_application(db_session, leave_id, "staff2")
    with pytest.raises(AccessDeniedError):
        await service.approve_leave_application(db_session, leave_id, "staff1")

    detail = await service.get_leave_application(db_session, leave_id, "staff1")
    assert detail.status == LeaveStatus.PENDING_DEPT_HEAD.value


@pytest.mark.asyncio
async def test_cannot_approve_draft(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    with pytest.raises(InvalidStateError):
        await service.approve_leave_application(db_session, leave_id, "head1")


@pytest.mark.asyncio
async def test_reject_then_resubmit(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await service.approve_leave_application(db_session, leave_id, "head1")

    with pytest.raises(ValidationFailedError):
        await service.reject_leave_application(db_session, leave_id, "hr1", "   ")

    res = await service.reject_leave_application(db_session, leave_id, "hr1", "dates overlap with audit")
    assert res.status == LeaveStatus.REJECTED.value
    assert res.rejection_reason == "dates overlap with audit"
    assert res.current_approver_id is None

    with pytest.raises(InvalidStateError):
        await service.approve_leave_application(db_session, leave_id, "hr1")

    await service.update_leave_form(
        db_session,
        leave_id,
        "staff1",
        LeaveFormUpdate(consecutive_period=LeavePeriod(start_date=date(2025, 3, 10))),
    )
    res = await service.submit_leave_application(db_session, leave_id, "staff1")
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value
    assert res.rejection_reason is None
    assert res.signatures["applicant"][0].signer_id == "staff1"
    # earlier approvals stay on the document
    assert res.signatures["department_head"][0].signer_id == "head1"


# ----- Final approval -----


@pytest.mark.asyncio
async def test_center_director_final_approval_skips_the_rest(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await _walk(db_session, leave_id, "head1", "hr1")

    res = await service.final_approve_leave_application(db_session, leave_id, "center1")
    assert res.status == LeaveStatus.APPROVED.value
    assert res.is_final_approved is True
    assert res.final_approver_id == "center1"
    assert res.final_approval_step == LeaveStepName.CENTER_DIRECTOR_APPROVAL.value
    assert res.printable is True
    assert res.signatures["center_director"][0].is_signed
    for slot in ("hr_final", "admin_director", "ceo_director"):
        entry = res.signatures[slot][0]
        assert entry.is_skipped and not entry.is_signed
        assert entry.skipped_by == "center1"
        assert res.approval_flags[slot] is False

    rows = await _audit_rows(db_session, leave_id)
    skipped = [r.step_name for r in rows if r.action == LeaveAuditAction.SKIPPED.value]
    assert skipped == [
        LeaveStepName.HR_FINAL_APPROVAL.value,
        LeaveStepName.ADMIN_DIRECTOR_APPROVAL.value,
        LeaveStepName.CEO_DIRECTOR_APPROVAL.value,
    ]
    assert (await service.get_vacation_balance(db_session, "staff1")).used_days == Decimal("2")


@pytest.mark.asyncio
async def test_final_approval_keeps_existing_later_signature(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await _walk(db_session, leave_id, "head1", "hr1")

    app = (await db_session.execute(select(LeaveApplication).where(LeaveApplication.id == leave_id))).scalar_one()
    ledger = SignatureLedger.from_raw(app.signatures)
    ledger.record(
        "admin_director",
        SignatureEntry(text="ADMIN1", is_signed=True, signer_id="admin1", signature_date="2025-03-01T08:00:00"),
    )
    app.signatures = ledger.dump()
    await db_session.commit()

    res = await service.final_approve_leave_application(db_session, leave_id, "center1")
    assert res.signatures["admin_director"][0].signer_id == "admin1"
    assert res.signatures["admin_director"][0].is_signed
    assert res.signatures["ceo_director"][0].is_skipped


@pytest.mark.asyncio
async def test_dept_head_cannot_final_approve(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    with pytest.raises(AccessDeniedError):
        await service.final_approve_leave_application(db_session, leave_id, "head1")


@pytest.mark.asyncio
async def test_hr_with_delegated_permission_can_final_approve(db_session, org) -> None:
    db_session.add(UserPermission(user_id="hr1", permission_type=PermissionType.FINAL_APPROVAL_LEAVE_APPLICATION.value))
    await db_session.commit()
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await service.approve_leave_application(db_session, leave_id, "head1")

    res = await service.final_approve_leave_application(db_session, leave_id, "hr1")
    assert res.status == LeaveStatus.APPROVED.value
    assert res.final_approval_step == LeaveStepName.HR_STAFF_APPROVAL.value
    assert res.signatures["center_director"][0].is_skipped


@pytest.mark.asyncio
async def test_hr_without_delegation_cannot_final_approve(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await service.approve_leave_application(db_session, leave_id, "head1")
    with pytest.raises(AccessDeniedError):
        await service.final_approve_leave_application(db_session, leave_id, "hr1")


@pytest.mark.asyncio
async def test_balance_is_rechecked_on_completion(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")
    await _walk(db_session, leave_id, "head1", "hr1")

    user = await db_session.get(User, "staff1")
    user.used_vacation_days = Decimal("14")
    await db_session.commit()

    with pytest.raises(ValidationFailedError):
        await service.final_approve_leave_application(db_session, leave_id, "center1")
    detail = await service.get_leave_application(db_session, leave_id, "staff1")
    assert detail.status == LeaveStatus.PENDING_CENTER_DIRECTOR.value
    assert detail.is_final_approved is False


# ----- Self approval and HR group -----


@pytest.mark.asyncio
async def test_sole_admin_director_is_approved_on_submit(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "admin1")
    res = await service.submit_leave_application(db_session, leave_id, "admin1")
    assert res.status == LeaveStatus.APPROVED.value
    assert res.printable is True

    rows = await _audit_rows(db_session, leave_id)
    assert [r.action for r in rows][-2:] == [LeaveAuditAction.SUBMITTED.value, LeaveAuditAction.SKIPPED.value]
    assert rows[-1].step_name == LeaveStepName.ADMIN_DIRECTOR_APPROVAL.value


@pytest.mark.asyncio
async def test_hr_applicant_gets_group_pending_step(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "hr1")
    res = await service.submit_leave_application(db_session, leave_id, "hr1")
    # AD has no department head, so center1 covers that step
    assert res.current_approver_id == "center1"

    res = await service.approve_leave_application(db_session, leave_id, "center1")
    assert res.status == LeaveStatus.PENDING_HR_STAFF.value
    assert res.current_approver_id is None

    pending = await service.list_pending_for_approver(db_session, "hr2")
    assert [p.id for p in pending] == [leave_id]
    assert await service.list_pending_for_approver(db_session, "hr1") == []

    with pytest.raises(AccessDeniedError):
        await service.approve_leave_application(db_session, leave_id, "hr1")
    with pytest.raises(AccessDeniedError):
        await service.approve_leave_application(db_session, leave_id, "staff2")

    res = await service.approve_leave_application(db_session, leave_id, "hr2")
    assert res.status == LeaveStatus.PENDING_CENTER_DIRECTOR.value
    assert res.signatures["hr_staff"][0].signer_id == "hr2"


# ----- Signatures -----


@pytest.mark.asyncio
async def test_signature_slot_rules(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")

    with pytest.raises(ValidationFailedError):
        await service.update_signature(db_session, leave_id, "staff1", SignatureUpdate(slot="treasurer"))
    with pytest.raises(InvalidStateError):
        await service.update_signature(db_session, leave_id, "head1", SignatureUpdate(slot="department_head"))

    await service.submit_leave_application(db_session, leave_id, "staff1")

    with pytest.raises(InvalidStateError):
        await service.update_signature(db_session, leave_id, "staff1", SignatureUpdate(slot="applicant"))
    with pytest.raises(AccessDeniedError):
        await service.update_signature(db_session, leave_id, "head1", SignatureUpdate(slot="hr_staff"))

    res = await service.update_signature(
        db_session, leave_id, "head1", SignatureUpdate(slot="department_head", image_url="abc")
    )
    assert res.signatures["department_head"][0].image_url == "data:image/png;base64,abc"
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value


@pytest.mark.asyncio
async def test_signed_slot_rejects_another_signer(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    app = (await db_session.execute(select(LeaveApplication).where(LeaveApplication.id == leave_id))).scalar_one()
    ledger = SignatureLedger.from_raw(app.signatures)
    ledger.record("department_head", SignatureEntry(is_signed=True, signer_id="someone_else"))
    app.signatures = ledger.dump()
    await db_session.commit()
    await service.submit_leave_application(db_session, leave_id, "staff1")

    with pytest.raises(SignatureConflictError):
        await service.update_signature(db_session, leave_id, "head1", SignatureUpdate(slot="department_head"))

    # approving still works; the earlier signature stays in place
    res = await service.approve_leave_application(db_session, leave_id, "head1")
    assert res.signatures["department_head"][0].signer_id == "someone_else"
    assert res.status == LeaveStatus.PENDING_HR_STAFF.value


# ----- Delete, reads, effects -----


@pytest.mark.asyncio
async def test_delete_rules(db_session, org) -> None:
    draft_id = await signed_draft(db_session, "staff1")
    with pytest.raises(AccessDeniedError):
        await service.delete_leave_application(db_session, draft_id, "staff2")
    await service.delete_leave_application(db_session, draft_id, "staff1")
    with pytest.raises(NotFoundError):
        await service.get_leave_application(db_session, draft_id, "staff1")

    submitted_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, submitted_id, "staff1")
    with pytest.raises(InvalidStateError):
        await service.delete_leave_application(db_session, submitted_id, "staff1")

    mine = await service.list_my_leave_applications(db_session, "staff1")
    assert [m.id for m in mine] == [submitted_id]


@pytest.mark.asyncio
async def test_view_permissions(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    await service.submit_leave_application(db_session, leave_id, "staff1")

    detail = await service.get_leave_application(db_session, leave_id, "head1")
    assert [h.action for h in detail.history] == [LeaveAuditAction.SIGNED.value, LeaveAuditAction.SUBMITTED.value]
    assert (await service.get_leave_application(db_session, leave_id, "hr2")).id == leave_id
    with pytest.raises(AccessDeniedError):
        await service.get_leave_application(db_session, leave_id, "staff2")


@pytest.mark.asyncio
async def test_print_requires_approval(db_session, org) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    with pytest.raises(InvalidStateError):
        await service.render_leave_application(db_session, leave_id, "staff1")


@pytest.mark.asyncio
async def test_failing_notifier_does_not_undo_approval(db_session, org, failing_notifier) -> None:
    leave_id = await signed_draft(db_session, "staff1")
    res = await service.submit_leave_application(db_session, leave_id, "staff1")
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value

    await db_session.rollback()
    detail = await service.get_leave_application(db_session, leave_id, "staff1")
    assert detail.status == LeaveStatus.PENDING_DEPT_HEAD.value


@pytest.mark.asyncio
async def test_three_day_leave_final_approved_by_hr(db_session, org) -> None:
    db_session.add(UserPermission(user_id="hr1", permission_type=PermissionType.FINAL_APPROVAL_ALL.value))
    await db_session.commit()
    leave_id = await signed_draft(db_session, "staff1", start=date(2025, 3, 3), end=date(2025, 3, 5))

    res = await service.submit_leave_application(db_session, leave_id, "staff1")
    assert res.total_days == Decimal("3")
    assert res.status == LeaveStatus.PENDING_DEPT_HEAD.value
    assert res.current_approver_id == "head1"

    res = await service.approve_leave_application(db_session, leave_id, "head1")
    assert res.status == LeaveStatus.PENDING_HR_STAFF.value

    res = await service.final_approve_leave_application(db_session, leave_id, "hr1")
    assert res.status == LeaveStatus.APPROVED.value
    assert res.printable is True
    rows = await _audit_rows(db_session, leave_id)
    assert len([r for r in rows if r.action == LeaveAuditAction.SKIPPED.value]) == 4
