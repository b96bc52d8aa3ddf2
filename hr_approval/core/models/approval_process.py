"""Running approval process for a non-leave document, with its frozen per-step history."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from hr_approval.core.enums import ApprovalAction, ApprovalProcessStatus
from hr_approval.db.session import Base


class DocumentApprovalProcess(Base):
    __tablename__ = "document_approval_processes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Integer, nullable=False, index=True)
    document_type = Column(String(30), nullable=False, index=True)
    applicant_id = Column(String(50), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)
    approval_line_id = Column(Integer, ForeignKey("approval_lines.id", ondelete="SET NULL"), nullable=True)
    # step orders captured at start; later template edits never change them
    step_orders = Column(JSON, nullable=False, default=list)
    current_step_order = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=ApprovalProcessStatus.IN_PROGRESS.value, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    histories = relationship(
        "ApprovalStepHistory",
        cascade="all, delete-orphan",
        order_by="ApprovalStepHistory.step_order",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class ApprovalStepHistory(Base):
    __tablename__ = "approval_step_histories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    approval_process_id = Column(
        Integer,
        ForeignKey("document_approval_processes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_order = Column(Integer, nullable=False)
    step_name = Column(String(100), nullable=False)
    approver_type = Column(String(30), nullable=False)
    approver_id = Column(String(50), nullable=True)
    approver_name = Column(String(100), nullable=True)
    approver_job_level = Column(Integer, nullable=True)
    approver_dept_code = Column(String(20), nullable=True)
    required_permission = Column(String(50), nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    is_final_approval_available = Column(Boolean, nullable=False, default=False)
    action = Column(String(20), nullable=False, default=ApprovalAction.PENDING.value)
    acted_by = Column(String(50), nullable=True)
    comment = Column(Text, nullable=True)
    signature_image_url = Column(Text, nullable=True)
    is_signed = Column(Boolean, nullable=False, default=False)
    action_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
