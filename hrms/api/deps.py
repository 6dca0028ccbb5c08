from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.core.context import set_actor_id
from hrms.core.permissions import PermissionCode, permissions_for_roles
from hrms.core.security import JWTKeyError, decode_token
from hrms.db.session import get_db
from hrms.repositories.departments import SqlDepartmentStore
from hrms.services.departments import DepartmentHierarchy


@dataclass(slots=True)
class Principal:
    """Caller identity taken from a verified access token."""

    subject: str
    roles: list[str] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(credentials.credentials, expected_type="access")
    except (ValueError, JWTKeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    roles = [str(role) for role in payload.get("roles") or []]
    set_actor_id(str(subject))
    return Principal(subject=str(subject), roles=roles, permissions=permissions_for_roles(roles))


def require_permission(permission_code: PermissionCode | str):
    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
        if target not in principal.permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return principal

    return dependency


async def get_department_hierarchy(db: AsyncSession = Depends(get_db)) -> DepartmentHierarchy:
    return DepartmentHierarchy(SqlDepartmentStore(db))
