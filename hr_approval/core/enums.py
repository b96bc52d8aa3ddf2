from enum import Enum, IntEnum


class JobLevel(IntEnum):
    STAFF = 0
    DEPT_HEAD = 1
    CENTER_DIRECTOR = 2
    PHYSICIAN = 3
    ADMIN_DIRECTOR = 4
    CEO_DIRECTOR = 5
    SUPER_ADMIN = 6


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class PermissionType(str, Enum):
    HR_LEAVE_APPLICATION = "HR_LEAVE_APPLICATION"
    HR_CONTRACT = "HR_CONTRACT"
    MANAGE_USERS = "MANAGE_USERS"
    FINAL_APPROVAL_ALL = "FINAL_APPROVAL_ALL"
    FINAL_APPROVAL_LEAVE_APPLICATION = "FINAL_APPROVAL_LEAVE_APPLICATION"
    FINAL_APPROVAL_CONTRACT = "FINAL_APPROVAL_CONTRACT"
    FINAL_APPROVAL_WORK_SCHEDULE = "FINAL_APPROVAL_WORK_SCHEDULE"


class LeaveStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_SUBSTITUTE = "PENDING_SUBSTITUTE"
    PENDING_DEPT_HEAD = "PENDING_DEPT_HEAD"
    PENDING_HR_STAFF = "PENDING_HR_STAFF"
    PENDING_CENTER_DIRECTOR = "PENDING_CENTER_DIRECTOR"
    PENDING_HR_FINAL = "PENDING_HR_FINAL"
    PENDING_ADMIN_DIRECTOR = "PENDING_ADMIN_DIRECTOR"
    PENDING_CEO_DIRECTOR = "PENDING_CEO_DIRECTOR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


class LeaveStepName(str, Enum):
    SUBSTITUTE_APPROVAL = "SUBSTITUTE_APPROVAL"
    DEPARTMENT_HEAD_APPROVAL = "DEPARTMENT_HEAD_APPROVAL"
    HR_STAFF_APPROVAL = "HR_STAFF_APPROVAL"
    CENTER_DIRECTOR_APPROVAL = "CENTER_DIRECTOR_APPROVAL"
    HR_FINAL_APPROVAL = "HR_FINAL_APPROVAL"
    ADMIN_DIRECTOR_APPROVAL = "ADMIN_DIRECTOR_APPROVAL"
    CEO_DIRECTOR_APPROVAL = "CEO_DIRECTOR_APPROVAL"


class LeaveType(str, Enum):
    ANNUAL_LEAVE = "ANNUAL_LEAVE"
    FAMILY_EVENT_LEAVE = "FAMILY_EVENT_LEAVE"
    SPECIAL_LEAVE = "SPECIAL_LEAVE"
    MENSTRUAL_LEAVE = "MENSTRUAL_LEAVE"
    MATERNITY_LEAVE = "MATERNITY_LEAVE"
    MISCARRIAGE_LEAVE = "MISCARRIAGE_LEAVE"
    SICK_LEAVE = "SICK_LEAVE"
    OTHER = "OTHER"


class HalfDayType(str, Enum):
    ALL_DAY = "ALL_DAY"
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


class LeaveAuditAction(str, Enum):
    SUBMITTED = "SUBMITTED"
    SIGNED = "SIGNED"
    APPROVED = "APPROVED"
    FINAL_APPROVED = "FINAL_APPROVED"
    SKIPPED = "SKIPPED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


class DocumentType(str, Enum):
    EMPLOYMENT_CONTRACT = "EMPLOYMENT_CONTRACT"
    WORK_SCHEDULE = "WORK_SCHEDULE"


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


class ApproverType(str, Enum):
    SPECIFIC_USER = "SPECIFIC_USER"
    JOB_LEVEL = "JOB_LEVEL"
    DEPT_JOB_LEVEL = "DEPT_JOB_LEVEL"
    PERMISSION_GROUP = "PERMISSION_GROUP"
    SUBSTITUTE = "SUBSTITUTE"


class ApprovalAction(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"
    FINAL_APPROVED = "FINAL_APPROVED"


class ApprovalProcessStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
