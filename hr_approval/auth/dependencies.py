from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from hr_approval.auth.schemas import CurrentUser
from hr_approval.core.config import settings
from hr_approval.core.directory import OrganizationDirectory
from hr_approval.core.logging_config import LogContext
from hr_approval.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user and their effective permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise credentials_exception

    directory = OrganizationDirectory(db)
    user = await directory.find_user(str(user_id))
    if not user or not user.is_active:
        raise credentials_exception

    permissions = await directory.get_permissions(user.user_id)
    LogContext.bind(actor_id=user.user_id)

    return CurrentUser(
        user_id=user.user_id,
        user_name=user.user_name,
        role=user.role,
        job_level=user.job_level,
        dept_code=user.dept_code,
        permissions=sorted(p.value for p in permissions),
    )
