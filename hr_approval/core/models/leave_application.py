"""Leave application document with its embedded signature ledger."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from hr_approval.core.enums import LeaveStatus
from hr_approval.db.session import Base


PENDING_LEAVE_STATUSES = frozenset(s.value for s in LeaveStatus if s.value.startswith("PENDING_"))
EDITABLE_LEAVE_STATUSES = frozenset({LeaveStatus.DRAFT.value, LeaveStatus.REJECTED.value})


class LeaveApplication(Base):
    __tablename__ = "leave_applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    applicant_id = Column(String(50), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)
    substitute_id = Column(String(50), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    leave_type = Column(String(30), nullable=True)
    leave_detail = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    total_days = Column(Numeric(5, 1), nullable=False, default=0)
    application_date = Column(Date, nullable=True)
    status = Column(String(30), nullable=False, default=LeaveStatus.DRAFT.value, index=True)
    current_approval_step = Column(String(50), nullable=True)
    current_approver_id = Column(String(50), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    rejection_reason = Column(Text, nullable=True)
    printable = Column(Boolean, nullable=False, default=False)

    is_final_approved = Column(Boolean, nullable=False, default=False)
    final_approver_id = Column(String(50), nullable=True)
    final_approval_step = Column(String(50), nullable=True)
    final_approval_date = Column(DateTime(timezone=True), nullable=True)

    # slot name -> list of signature entries, see hr_approval.core.signatures
    signatures = Column(JSON, nullable=False, default=dict)
    # raw period input kept for re-editing the form
    form_periods = Column(JSON, nullable=False, default=dict)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    days = relationship(
        "LeaveApplicationDay",
        cascade="all, delete-orphan",
        order_by="LeaveApplicationDay.leave_date",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class LeaveApplicationDay(Base):
    __tablename__ = "leave_application_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    leave_application_id = Column(
        Integer,
        ForeignKey("leave_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_date = Column(Date, nullable=False)
    half_day_type = Column(String(20), nullable=False, default="ALL_DAY")
    days = Column(Numeric(2, 1), nullable=False, default=1)
