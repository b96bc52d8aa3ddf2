from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from hr_approval.core.enums import DocumentStatus
from hr_approval.db.session import Base


class EmploymentContract(Base):
    __tablename__ = "employment_contracts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    creator_id = Column(String(50), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    employee_id = Column(String(50), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    form_data = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=DocumentStatus.DRAFT.value, index=True)
    approval_process_id = Column(Integer, nullable=True)
    current_step_order = Column(Integer, nullable=True)
    current_approver_id = Column(String(50), nullable=True, index=True)
    rejection_reason = Column(Text, nullable=True)
    signatures = Column(JSON, nullable=False, default=dict)
    printable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
