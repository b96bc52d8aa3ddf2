import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

from datetime import date
from typing import AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hr_approval.api.v1.leaves import service as leave_service
from hr_approval.api.v1.leaves.schemas import LeaveFormUpdate, LeavePeriod, SignatureUpdate
from hr_approval.auth.security import create_access_token
from hr_approval.core.enums import JobLevel, LeaveType, PermissionType
from hr_approval.core.models import DeptPermission, User, UserPermission
from hr_approval.db.session import Base, get_db
from hr_approval.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; also overrides the FastAPI dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject={'sub': user_id})}"}


async def add_user(
    db: AsyncSession,
    user_id: str,
    job_level: int = JobLevel.STAFF,
    dept_code: Optional[str] = "NUR",
    *,
    role: str = "USER",
    is_active: bool = True,
    permissions=(),
) -> User:
    user = User(
        user_id=user_id,
        user_name=user_id.upper(),
        dept_code=dept_code,
        job_level=int(job_level),
        role=role,
        is_active=is_active,
        total_vacation_days=15,
        used_vacation_days=0,
    )
    db.add(user)
    for kind in permissions:
        db.add(UserPermission(user_id=user_id, permission_type=kind.value))
    await db.flush()
    return user


@pytest.fixture()
async def org(db_session: AsyncSession) -> Dict[str, User]:
    """A small hospital: nursing staff, an HR team in AD, and one director per level."""
    users = {
        "staff1": await add_user(db_session, "staff1"),
        "staff2": await add_user(db_session, "staff2"),
        "head1": await add_user(db_session, "head1", JobLevel.DEPT_HEAD),
        "hr1": await add_user(db_session, "hr1", dept_code="AD", permissions=[PermissionType.HR_LEAVE_APPLICATION]),
        "hr2": await add_user(db_session, "hr2", dept_code="AD"),
        "center1": await add_user(db_session, "center1", JobLevel.CENTER_DIRECTOR, "MED"),
        "doc1": await add_user(db_session, "doc1", JobLevel.PHYSICIAN, "MED"),
        "admin1": await add_user(db_session, "admin1", JobLevel.ADMIN_DIRECTOR, "ADM"),
        "ceo1": await add_user(db_session, "ceo1", JobLevel.CEO_DIRECTOR, "ADM"),
    }
    # hr2 holds the HR permission through a department-wide grant
    db_session.add(DeptPermission(dept_code="AD", permission_type=PermissionType.HR_LEAVE_APPLICATION.value))
    await db_session.commit()
    return users


async def signed_draft(
    db: AsyncSession,
    applicant_id: str,
    leave_type: LeaveType = LeaveType.ANNUAL_LEAVE,
    start: date = date(2025, 3, 3),
    end: date = date(2025, 3, 4),
) -> int:
    """DRAFT with a two-day period and the applicant signature, ready to submit."""
    created = await leave_service.create_leave_application(db, applicant_id)
    await leave_service.update_leave_form(
        db,
        created.id,
        applicant_id,
        LeaveFormUpdate(leave_type=leave_type, consecutive_period=LeavePeriod(start_date=start, end_date=end)),
    )
    await leave_service.update_signature(
        db,
        created.id,
        applicant_id,
        SignatureUpdate(slot="applicant", image_url="iVBORw0KGgo", signature_date="2025-02-20T10:00:00"),
    )
    return created.id
