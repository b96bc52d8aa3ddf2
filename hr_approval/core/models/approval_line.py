"""Approval line templates: an ordered list of steps reused when starting a process."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from hr_approval.db.session import Base


class ApprovalLine(Base):
    __tablename__ = "approval_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    document_type = Column(String(30), nullable=False, index=True)
    created_by = Column(String(50), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    steps = relationship(
        "ApprovalStep",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.step_order",
        lazy="selectin",
    )


class ApprovalStep(Base):
    __tablename__ = "approval_steps"
    __table_args__ = (UniqueConstraint("approval_line_id", "step_order", name="uq_approval_step_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    approval_line_id = Column(Integer, ForeignKey("approval_lines.id", ondelete="CASCADE"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    step_name = Column(String(100), nullable=False)
    approver_type = Column(String(30), nullable=False)
    approver_id = Column(String(50), nullable=True)
    job_level = Column(Integer, nullable=True)
    dept_code = Column(String(20), nullable=True)
    permission_type = Column(String(50), nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    is_final_approval_available = Column(Boolean, nullable=False, default=False)
