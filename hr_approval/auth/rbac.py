from fastapi import Depends, HTTPException, status

from hr_approval.auth.dependencies import get_current_user
from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.enums import PermissionType, UserRole


def check_permission(kind: PermissionType):
    """
    Dependency factory to enforce a directory permission grant.

    Example:
        Depends(check_permission(PermissionType.HR_CONTRACT))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role == UserRole.ADMIN.value:
            return
        if kind.value not in current_user.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker
