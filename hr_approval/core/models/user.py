"""Organization directory: users and their individual / department-wide permission grants."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from hr_approval.core.config import settings
from hr_approval.db.session import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(50), primary_key=True)
    user_name = Column(String(100), nullable=False)
    dept_code = Column(String(20), nullable=True, index=True)
    job_level = Column(Integer, nullable=False, default=0, index=True)
    role = Column(String(20), nullable=False, default="USER")
    is_active = Column(Boolean, nullable=False, default=True)
    sign_image = Column(Text, nullable=True)
    total_vacation_days = Column(Numeric(5, 1), nullable=False, default=lambda: settings.annual_leave_default_days)
    used_vacation_days = Column(Numeric(5, 1), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserPermission(Base):
    __tablename__ = "user_permissions"
    __table_args__ = (UniqueConstraint("user_id", "permission_type", name="uq_user_permission"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    permission_type = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class DeptPermission(Base):
    __tablename__ = "dept_permissions"
    __table_args__ = (UniqueConstraint("dept_code", "permission_type", name="uq_dept_permission"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    dept_code = Column(String(20), nullable=False, index=True)
    permission_type = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
