from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StepApprove(BaseModel):
    comment: Optional[str] = Field(None, max_length=1000)
    signature_image_url: Optional[str] = None


class StepReject(BaseModel):
    reason: str = Field(..., max_length=2000)


class StepHistoryResponse(BaseModel):
    id: int
    step_order: int
    step_name: str
    approver_type: str
    approver_id: Optional[str] = None
    approver_name: Optional[str] = None
    approver_job_level: Optional[int] = None
    approver_dept_code: Optional[str] = None
    required_permission: Optional[str] = None
    is_optional: bool
    is_final_approval_available: bool
    action: str
    acted_by: Optional[str] = None
    comment: Optional[str] = None
    is_signed: bool
    action_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalProcessResponse(BaseModel):
    id: int
    document_id: int
    document_type: str
    applicant_id: str
    approval_line_id: Optional[int] = None
    step_orders: List[int] = Field(default_factory=list)
    current_step_order: Optional[int] = None
    status: str
    histories: List[StepHistoryResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
