from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from hr_approval.core.enums import HalfDayType, LeaveType
from hr_approval.core.signatures import SignatureEntry


# ----- Form -----
class LeavePeriod(BaseModel):
    start_date: date
    end_date: Optional[date] = None
    half_day_type: HalfDayType = HalfDayType.ALL_DAY

    @model_validator(mode="after")
    def check_range(self) -> "LeavePeriod":
        if self.end_date is None:
            self.end_date = self.start_date
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.half_day_type != HalfDayType.ALL_DAY and self.end_date != self.start_date:
            raise ValueError("A half-day period must be a single date")
        return self


class LeaveFormUpdate(BaseModel):
    """Editable leave form fields. Omitted fields keep their stored value."""

    leave_type: Optional[LeaveType] = None
    leave_detail: Optional[str] = Field(None, max_length=2000)
    application_date: Optional[date] = None
    flexible_periods: Optional[List[LeavePeriod]] = None
    consecutive_period: Optional[LeavePeriod] = None


class SubstituteAssign(BaseModel):
    substitute_id: Optional[str] = Field(None, max_length=50)


# ----- Actions -----
class SignatureUpdate(BaseModel):
    slot: str = Field(..., max_length=50)
    text: str = ""
    image_url: Optional[str] = None
    is_signed: bool = True
    signature_date: Optional[Any] = None


class LeaveApprove(BaseModel):
    signature_image_url: Optional[str] = None
    signature_date: Optional[Any] = None
    comment: Optional[str] = Field(None, max_length=1000)


class LeaveReject(BaseModel):
    reason: str = Field(..., max_length=2000)


# ----- Responses -----
class LeaveDayResponse(BaseModel):
    leave_date: date
    half_day_type: str
    days: Decimal

    class Config:
        from_attributes = True


class LeaveAuditLogResponse(BaseModel):
    id: int
    step_name: Optional[str] = None
    action: str
    performed_by: Optional[str] = None
    performed_by_name: Optional[str] = None
    remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LeaveApplicationResponse(BaseModel):
    id: int
    applicant_id: str
    substitute_id: Optional[str] = None
    leave_type: Optional[str] = None
    leave_detail: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_days: Decimal
    application_date: Optional[date] = None
    status: str
    current_approval_step: Optional[str] = None
    current_approver_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    printable: bool
    is_final_approved: bool = False
    final_approver_id: Optional[str] = None
    final_approval_step: Optional[str] = None
    final_approval_date: Optional[datetime] = None
    signatures: Dict[str, List[SignatureEntry]] = Field(default_factory=dict)
    approval_flags: Dict[str, bool] = Field(default_factory=dict)
    days: List[LeaveDayResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class LeaveApplicationDetail(LeaveApplicationResponse):
    history: List[LeaveAuditLogResponse] = Field(default_factory=list)


class VacationBalanceResponse(BaseModel):
    user_id: str
    total_days: Decimal
    used_days: Decimal
    remaining_days: Decimal
