from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from hr_approval.core.signatures import SignatureEntry


class WorkScheduleCreate(BaseModel):
    schedule_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM")
    dept_code: Optional[str] = Field(None, max_length=20, description="Defaults to the creator's department")
    form_data: Dict[str, Any] = Field(default_factory=dict)


class WorkScheduleSubmit(BaseModel):
    approval_line_id: int


class WorkScheduleResponse(BaseModel):
    id: int
    dept_code: str
    schedule_month: str
    created_by: str
    form_data: Dict[str, Any] = Field(default_factory=dict)
    status: str
    approval_process_id: Optional[int] = None
    current_step_order: Optional[int] = None
    current_approver_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    signatures: Dict[str, List[SignatureEntry]] = Field(default_factory=dict)
    printable: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
