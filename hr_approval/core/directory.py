"""Organization directory lookups used by routing and authorization.

Every candidate lookup returns active users only, ordered by user_id so the
same directory state always yields the same approver.
"""

from typing import Iterable, List, Optional, Set, Union

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.core.enums import PermissionType
from hr_approval.core.exceptions import NotFoundError
from hr_approval.core.models import DeptPermission, User, UserPermission


def _as_value(kind: Union[PermissionType, str]) -> str:
    return kind.value if isinstance(kind, PermissionType) else kind


class OrganizationDirectory:
    """Read-only view over users and permission grants within one session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_user(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        return await self.db.get(User, user_id)

    async def get_user(self, user_id: Optional[str]) -> User:
        user = await self.find_user(user_id)
        if not user:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    async def find_users_by_dept_and_job_level(
        self,
        dept_code: Optional[str],
        job_level: int,
        exclude: Optional[str] = None,
    ) -> List[str]:
        if not dept_code:
            return []
        stmt = select(User.user_id).where(
            User.dept_code == dept_code,
            User.job_level == int(job_level),
            User.is_active.is_(True),
        )
        if exclude:
            stmt = stmt.where(User.user_id != exclude)
        result = await self.db.execute(stmt.order_by(User.user_id))
        return list(result.scalars().all())

    async def find_users_by_job_level(self, job_level: int, exclude: Optional[str] = None) -> List[str]:
        stmt = select(User.user_id).where(User.job_level == int(job_level), User.is_active.is_(True))
        if exclude:
            stmt = stmt.where(User.user_id != exclude)
        result = await self.db.execute(stmt.order_by(User.user_id))
        return list(result.scalars().all())

    async def find_permission_holders(
        self,
        kind: Union[PermissionType, str],
        dept_code: Optional[str] = None,
        exclude: Optional[str] = None,
    ) -> List[str]:
        """Active users holding `kind` individually or through their department."""
        value = _as_value(kind)
        individual = select(UserPermission.user_id).where(UserPermission.permission_type == value)
        by_dept = select(DeptPermission.dept_code).where(DeptPermission.permission_type == value)
        stmt = select(User.user_id).where(
            User.is_active.is_(True),
            or_(User.user_id.in_(individual), User.dept_code.in_(by_dept)),
        )
        if dept_code:
            stmt = stmt.where(User.dept_code == dept_code)
        if exclude:
            stmt = stmt.where(User.user_id != exclude)
        result = await self.db.execute(stmt.order_by(User.user_id))
        return list(result.scalars().all())

    async def get_permissions(self, user_id: str) -> Set[PermissionType]:
        user = await self.get_user(user_id)
        individual = await self.db.execute(
            select(UserPermission.permission_type).where(UserPermission.user_id == user_id)
        )
        values = set(individual.scalars().all())
        if user.dept_code:
            by_dept = await self.db.execute(
                select(DeptPermission.permission_type).where(DeptPermission.dept_code == user.dept_code)
            )
            values.update(by_dept.scalars().all())
        return {PermissionType(v) for v in values if v in PermissionType._value2member_map_}

    async def has_permission(self, user_id: str, kind: PermissionType) -> bool:
        return kind in await self.get_permissions(user_id)

    async def has_any_permission(self, user_id: str, kinds: Iterable[PermissionType]) -> bool:
        granted = await self.get_permissions(user_id)
        return any(k in granted for k in kinds)
