"""Append-only history for leave applications: SUBMITTED, SIGNED, APPROVED, FINAL_APPROVED, SKIPPED, REJECTED, DELETED."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from hr_approval.db.session import Base


class LeaveAuditLog(Base):
    __tablename__ = "leave_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    leave_application_id = Column(
        Integer,
        ForeignKey("leave_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_name = Column(String(50), nullable=True)
    action = Column(String(30), nullable=False)
    performed_by = Column(String(50), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    performed_by_name = Column(String(100), nullable=True)
    performed_by_job_level = Column(Integer, nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
