from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from hr_approval.core.enums import ApproverType, DocumentType, PermissionType


class ApprovalStepIn(BaseModel):
    step_order: int = Field(..., ge=1)
    step_name: str = Field(..., min_length=1, max_length=100)
    approver_type: ApproverType
    approver_id: Optional[str] = Field(None, max_length=50)
    job_level: Optional[int] = Field(None, ge=0)
    dept_code: Optional[str] = Field(None, max_length=20)
    permission_type: Optional[PermissionType] = None
    is_optional: bool = False
    is_final_approval_available: bool = False


class ApprovalLineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    document_type: DocumentType
    steps: List[ApprovalStepIn] = Field(..., min_length=1)


class ApprovalLineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    is_active: Optional[bool] = None
    steps: Optional[List[ApprovalStepIn]] = Field(None, min_length=1)


class ApprovalStepResponse(BaseModel):
    id: int
    step_order: int
    step_name: str
    approver_type: str
    approver_id: Optional[str] = None
    job_level: Optional[int] = None
    dept_code: Optional[str] = None
    permission_type: Optional[str] = None
    is_optional: bool
    is_final_approval_available: bool

    class Config:
        from_attributes = True


class ApprovalLineResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    document_type: str
    created_by: str
    is_active: bool
    steps: List[ApprovalStepResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
