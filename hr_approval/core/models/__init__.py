from hr_approval.core.models.user import DeptPermission, User, UserPermission
from hr_approval.core.models.leave_application import LeaveApplication, LeaveApplicationDay
from hr_approval.core.models.leave_audit_log import LeaveAuditLog
from hr_approval.core.models.approval_line import ApprovalLine, ApprovalStep
from hr_approval.core.models.approval_process import ApprovalStepHistory, DocumentApprovalProcess
from hr_approval.core.models.employment_contract import EmploymentContract
from hr_approval.core.models.work_schedule import WorkSchedule

__all__ = [
    "ApprovalLine",
    "ApprovalStep",
    "ApprovalStepHistory",
    "DeptPermission",
    "DocumentApprovalProcess",
    "EmploymentContract",
    "LeaveApplication",
    "LeaveApplicationDay",
    "LeaveAuditLog",
    "User",
    "UserPermission",
    "WorkSchedule",
]
