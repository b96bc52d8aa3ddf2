"""Generic approval processes: frozen step snapshots driving contracts and work schedules."""

import pytest

from conftest import add_user
from hr_approval.api.v1.approval_lines import service as line_service
from hr_approval.api.v1.approval_lines.schemas import ApprovalLineCreate, ApprovalLineUpdate, ApprovalStepIn
from hr_approval.api.v1.approval_processes import service as process_service
from hr_approval.api.v1.contracts import service as contract_service
from hr_approval.api.v1.contracts.schemas import ContractCreate
from hr_approval.api.v1.work_schedules import service as schedule_service
from hr_approval.api.v1.work_schedules.schemas import WorkScheduleCreate
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
    ValidationFailedError,
)
from hr_approval.core.models import DocumentApprovalProcess, UserPermission


SCHEDULE_STEPS = [
    ApprovalStepIn(step_order=1, step_name="Head nurse", approver_type=ApproverType.DEPT_JOB_LEVEL, job_level=JobLevel.DEPT_HEAD),
    ApprovalStepIn(
        step_order=2,
        step_name="HR review",
        approver_type=ApproverType.PERMISSION_GROUP,
        permission_type=PermissionType.HR_LEAVE_APPLICATION,
    ),
    ApprovalStepIn(step_order=3, step_name="Center director", approver_type=ApproverType.JOB_LEVEL, job_level=JobLevel.CENTER_DIRECTOR),
    ApprovalStepIn(step_order=4, step_name="CEO", approver_type=ApproverType.SPECIFIC_USER, approver_id="ceo1"),
]


async def _line(db, document_type=DocumentType.WORK_SCHEDULE, steps=None, creator="head1"):
    return await line_service.create_approval_line(
        db,
        creator,
        ApprovalLineCreate(name="Monthly schedule", document_type=document_type, steps=steps or SCHEDULE_STEPS),
    )


async def _submitted_schedule(db, line_id):
    created = await schedule_service.create_work_schedule(db, "staff1", WorkScheduleCreate(schedule_month="2025-04"))
    return await schedule_service.submit_work_schedule(db, created.id, "staff1", line_id)


@pytest.mark.asyncio
async def test_start_freezes_resolved_approvers(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    assert schedule.status == DocumentStatus.IN_PROGRESS.value
    assert schedule.dept_code == "NUR"
    assert schedule.current_step_order == 1
    assert schedule.current_approver_id == "head1"

    steps = await process_service.get_remaining_steps(db_session, schedule.approval_process_id, "staff1")
    assert [s.approver_id for s in steps] == ["head1", None, "center1", "ceo1"]
    assert steps[1].required_permission == PermissionType.HR_LEAVE_APPLICATION.value
    assert all(s.action == ApprovalAction.PENDING.value for s in steps)


@pytest.mark.asyncio
async def test_full_chain_with_permission_group(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    pid = schedule.approval_process_id

    await process_service.approve_step(db_session, pid, "head1", comment="ok")
    current = await schedule_service.get_work_schedule(db_session, schedule.id, "staff1")
    assert current.current_step_order == 2
    assert current.current_approver_id is None

    with pytest.raises(AccessDeniedError):
        await process_service.approve_step(db_session, pid, "staff2")

    await process_service.approve_step(db_session, pid, "hr2")
    await process_service.approve_step(db_session, pid, "center1")
    res = await process_service.approve_step(db_session, pid, "ceo1")

    assert res.status == ApprovalProcessStatus.APPROVED.value
    assert res.current_step_order is None
    assert [h.acted_by for h in res.histories] == ["head1", "hr2", "center1", "ceo1"]
    assert all(h.is_signed for h in res.histories)

    done = await schedule_service.get_work_schedule(db_session, schedule.id, "staff1")
    assert done.status == DocumentStatus.APPROVED.value
    assert done.printable is True
    assert sorted(done.signatures) == ["step_1", "step_2", "step_3", "step_4"]
    assert done.signatures["step_2"][0].signer_id == "hr2"
    assert await process_service.get_remaining_steps(db_session, pid, "staff1") == []


@pytest.mark.asyncio
async def test_line_edits_do_not_reroute_running_process(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)

    await line_service.update_approval_line(
        db_session,
        line.id,
        "head1",
        ApprovalLineUpdate(
            steps=[ApprovalStepIn(step_order=1, step_name="Admin", approver_type=ApproverType.SPECIFIC_USER, approver_id="admin1")]
        ),
    )

    with pytest.raises(AccessDeniedError):
        await process_service.approve_step(db_session, schedule.approval_process_id, "admin1")
    res = await process_service.approve_step(db_session, schedule.approval_process_id, "head1")
    assert res.current_step_order == 2
    assert len(res.step_orders) == 4


@pytest.mark.asyncio
async def test_reject_then_resubmit_starts_new_process(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    first_pid = schedule.approval_process_id

    with pytest.raises(ValidationFailedError):
        await process_service.reject_step(db_session, first_pid, "head1", " ")

    res = await process_service.reject_step(db_session, first_pid, "head1", "night shifts uncovered")
    assert res.status == ApprovalProcessStatus.REJECTED.value
    assert res.histories[0].action == ApprovalAction.REJECTED.value
    assert res.histories[0].is_signed is False

    rejected = await schedule_service.get_work_schedule(db_session, schedule.id, "staff1")
    assert rejected.status == DocumentStatus.REJECTED.value
    assert rejected.rejection_reason == "night shifts uncovered"

    with pytest.raises(InvalidStateError):
        await process_service.approve_step(db_session, first_pid, "head1")

    again = await schedule_service.submit_work_schedule(db_session, schedule.id, "staff1", line.id)
    assert again.status == DocumentStatus.IN_PROGRESS.value
    assert again.approval_process_id != first_pid


@pytest.mark.asyncio
async def test_final_approval_skips_pending_steps(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    pid = schedule.approval_process_id
    await process_service.approve_step(db_session, pid, "head1")
    await process_service.approve_step(db_session, pid, "hr1")

    res = await process_service.final_approve_step(db_session, pid, "center1")
    assert res.status == ApprovalProcessStatus.APPROVED.value
    assert [h.action for h in res.histories] == [
        ApprovalAction.APPROVED.value,
        ApprovalAction.APPROVED.value,
        ApprovalAction.FINAL_APPROVED.value,
        ApprovalAction.SKIPPED.value,
    ]
    assert res.histories[3].acted_by == "center1"

    done = await schedule_service.get_work_schedule(db_session, schedule.id, "staff1")
    assert done.signatures["step_3"][0].signer_id == "center1"
    assert done.signatures["step_4"][0].is_skipped


@pytest.mark.asyncio
async def test_final_approval_requires_seniority_or_delegation(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    with pytest.raises(AccessDeniedError):
        await process_service.final_approve_step(db_session, schedule.approval_process_id, "head1")


@pytest.mark.asyncio
async def test_delegated_final_approval_on_contract(db_session, org) -> None:
    db_session.add(UserPermission(user_id="hr1", permission_type=PermissionType.HR_CONTRACT.value))
    db_session.add(UserPermission(user_id="hr2", permission_type=PermissionType.FINAL_APPROVAL_CONTRACT.value))
    await db_session.commit()
    line = await _line(
        db_session,
        DocumentType.EMPLOYMENT_CONTRACT,
        [
            ApprovalStepIn(
                step_order=1,
                step_name="HR lead",
                approver_type=ApproverType.SPECIFIC_USER,
                approver_id="hr2",
                is_final_approval_available=True,
            ),
            ApprovalStepIn(step_order=2, step_name="CEO", approver_type=ApproverType.SPECIFIC_USER, approver_id="ceo1"),
        ],
        creator="hr1",
    )
    contract = await contract_service.create_contract(
        db_session, "hr1", ContractCreate(employee_id="staff1", title="2025 employment contract")
    )
    submitted = await contract_service.submit_contract(db_session, contract.id, "hr1", line.id)
    assert submitted.current_approver_id == "hr2"

    res = await process_service.final_approve_step(db_session, submitted.approval_process_id, "hr2")
    assert res.status == ApprovalProcessStatus.APPROVED.value
    assert res.histories[1].action == ApprovalAction.SKIPPED.value

    done = await contract_service.get_contract(db_session, contract.id, "staff1")
    assert done.status == DocumentStatus.APPROVED.value
    assert done.printable is True


@pytest.mark.asyncio
async def test_optional_step_leaves_no_signature(db_session, org) -> None:
    line = await _line(
        db_session,
        steps=[
            ApprovalStepIn(
                step_order=1,
                step_name="Courtesy review",
                approver_type=ApproverType.SPECIFIC_USER,
                approver_id="doc1",
                is_optional=True,
            ),
            ApprovalStepIn(step_order=2, step_name="Head nurse", approver_type=ApproverType.DEPT_JOB_LEVEL, job_level=JobLevel.DEPT_HEAD),
        ],
    )
    schedule = await _submitted_schedule(db_session, line.id)
    res = await process_service.approve_step(db_session, schedule.approval_process_id, "doc1")
    assert res.histories[0].is_signed is False

    current = await schedule_service.get_work_schedule(db_session, schedule.id, "staff1")
    assert "step_1" not in current.signatures
    assert current.current_approver_id == "head1"


@pytest.mark.asyncio
async def test_corrupt_next_step_is_a_consistency_error(db_session, org) -> None:
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    pid = schedule.approval_process_id

    process = await db_session.get(DocumentApprovalProcess, pid)
    process.histories[1].action = ApprovalAction.APPROVED.value
    await db_session.commit()

    with pytest.raises(ConsistencyError) as exc:
        await process_service.approve_step(db_session, pid, "head1")
    assert exc.value.status_code == 500
    assert "pending" in exc.value.detail

    unchanged = await process_service.get_process(db_session, pid, "staff1")
    assert unchanged.current_step_order == 1
    assert unchanged.histories[0].action == ApprovalAction.PENDING.value


@pytest.mark.asyncio
async def test_line_must_match_document_type(db_session, org) -> None:
    line = await _line(db_session, DocumentType.EMPLOYMENT_CONTRACT)
    created = await schedule_service.create_work_schedule(db_session, "staff1", WorkScheduleCreate(schedule_month="2025-04"))
    with pytest.raises(ValidationFailedError):
        await schedule_service.submit_work_schedule(db_session, created.id, "staff1", line.id)


@pytest.mark.asyncio
async def test_applicant_cannot_be_specific_approver(db_session, org) -> None:
    line = await _line(
        db_session,
        steps=[ApprovalStepIn(step_order=1, step_name="Self", approver_type=ApproverType.SPECIFIC_USER, approver_id="staff1")],
    )
    created = await schedule_service.create_work_schedule(db_session, "staff1", WorkScheduleCreate(schedule_month="2025-04"))
    with pytest.raises(ValidationFailedError):
        await schedule_service.submit_work_schedule(db_session, created.id, "staff1", line.id)


@pytest.mark.asyncio
async def test_deleted_line_cannot_start_process(db_session, org) -> None:
    line = await _line(db_session)
    with pytest.raises(AccessDeniedError):
        await line_service.delete_approval_line(db_session, line.id, "staff2")
    await line_service.delete_approval_line(db_session, line.id, "head1")
    created = await schedule_service.create_work_schedule(db_session, "staff1", WorkScheduleCreate(schedule_month="2025-04"))
    with pytest.raises(NotFoundError):
        await schedule_service.submit_work_schedule(db_session, created.id, "staff1", line.id)


@pytest.mark.asyncio
async def test_only_creator_edits_line(db_session, org) -> None:
    line = await _line(db_session)
    with pytest.raises(AccessDeniedError):
        await line_service.update_approval_line(db_session, line.id, "hr1", ApprovalLineUpdate(name="hijacked"))


@pytest.mark.asyncio
async def test_duplicate_step_orders_are_rejected(db_session, org) -> None:
    steps = [
        ApprovalStepIn(step_order=1, step_name="A", approver_type=ApproverType.SPECIFIC_USER, approver_id="head1"),
        ApprovalStepIn(step_order=1, step_name="B", approver_type=ApproverType.SPECIFIC_USER, approver_id="ceo1"),
    ]
    with pytest.raises(ValidationFailedError):
        await _line(db_session, steps=steps)


@pytest.mark.asyncio
async def test_contract_delete_and_schedule_listing(db_session, org) -> None:
    contract = await contract_service.create_contract(
        db_session, "hr1", ContractCreate(employee_id="staff1", title="Part-time contract")
    )
    with pytest.raises(AccessDeniedError):
        await contract_service.delete_contract(db_session, contract.id, "staff1")
    await contract_service.delete_contract(db_session, contract.id, "hr1")
    with pytest.raises(NotFoundError):
        await contract_service.get_contract(db_session, contract.id, "hr1")

    april = await schedule_service.create_work_schedule(db_session, "staff1", WorkScheduleCreate(schedule_month="2025-04"))
    may = await schedule_service.create_work_schedule(db_session, "head1", WorkScheduleCreate(schedule_month="2025-05"))
    listed = await schedule_service.list_department_schedules(db_session, "staff1")
    assert [s.id for s in listed] == [may.id, april.id]


@pytest.mark.asyncio
async def test_process_reads_are_limited_to_participants(db_session, org) -> None:
    db_session.add(UserPermission(user_id="hr1", permission_type=PermissionType.HR_CONTRACT.value))
    await db_session.commit()
    line = await _line(
        db_session,
        DocumentType.EMPLOYMENT_CONTRACT,
        [ApprovalStepIn(step_order=1, step_name="CEO", approver_type=ApproverType.SPECIFIC_USER, approver_id="ceo1")],
        creator="hr1",
    )
    contract = await contract_service.create_contract(
        db_session, "hr1", ContractCreate(employee_id="staff1", title="2025 employment contract")
    )
    submitted = await contract_service.submit_contract(db_session, contract.id, "hr1", line.id)
    pid = submitted.approval_process_id
    await process_service.reject_step(db_session, pid, "ceo1", "salary too high for staff1")

    with pytest.raises(AccessDeniedError):
        await process_service.get_process(db_session, pid, "staff2")
    with pytest.raises(AccessDeniedError):
        await process_service.get_remaining_steps(db_session, pid, "staff2")
    with pytest.raises(AccessDeniedError):
        await contract_service.get_contract(db_session, contract.id, "staff2")

    for viewer in ("hr1", "staff1", "ceo1"):
        res = await process_service.get_process(db_session, pid, viewer)
        assert [h.comment for h in res.histories] == ["salary too high for staff1"]


@pytest.mark.asyncio
async def test_schedule_reads_follow_department_and_approval_group(db_session, org) -> None:
    await add_user(db_session, "auditor1", dept_code="QA", role=UserRole.ADMIN.value)
    await db_session.commit()
    line = await _line(db_session)
    schedule = await _submitted_schedule(db_session, line.id)
    pid = schedule.approval_process_id

    with pytest.raises(AccessDeniedError):
        await schedule_service.get_work_schedule(db_session, schedule.id, "doc1")
    with pytest.raises(AccessDeniedError):
        await process_service.get_remaining_steps(db_session, pid, "doc1")

    # department colleague, permission-group holder, frozen approver and admin
    for viewer in ("staff2", "hr2", "center1", "auditor1"):
        assert (await schedule_service.get_work_schedule(db_session, schedule.id, viewer)).id == schedule.id
    assert len(await process_service.get_remaining_steps(db_session, pid, "hr2")) == 4

    with pytest.raises(AccessDeniedError):
        await schedule_service.list_department_schedules(db_session, "doc1", "NUR")
    assert await schedule_service.list_department_schedules(db_session, "doc1") == []
    listed = await schedule_service.list_department_schedules(db_session, "auditor1", "NUR")
    assert [s.id for s in listed] == [schedule.id]
