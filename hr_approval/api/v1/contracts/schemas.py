from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from hr_approval.core.signatures import SignatureEntry


class ContractCreate(BaseModel):
    employee_id: str = Field(..., max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    form_data: Dict[str, Any] = Field(default_factory=dict)


class ContractSubmit(BaseModel):
    approval_line_id: int
    substitute_id: Optional[str] = Field(None, max_length=50)


class ContractResponse(BaseModel):
    id: int
    creator_id: str
    employee_id: str
    title: str
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
