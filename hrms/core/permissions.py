from enum import Enum
from typing import Iterable, List


class PermissionCode(str, Enum):
    DEPARTMENT_VIEW = "department.view"
    DEPARTMENT_MANAGE = "department.manage"
    DEPARTMENT_DELETE = "department.delete"

    @classmethod
    def list_all(cls) -> List[str]:
        return [code.value for code in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List[str]:
        """Return unique permission codes that are valid members."""
        seen = set()
        normalized: list[str] = []
        for value in values:
            try:
                code = cls(value)
            except ValueError:
                continue
            if code.value not in seen:
                seen.add(code.value)
                normalized.append(code.value)
        return normalized


class RoleName(str, Enum):
    ADMIN = "ADMIN"
    HR_MANAGER = "HR_MANAGER"
    EMPLOYEE = "EMPLOYEE"


ROLE_PERMISSIONS: dict[RoleName, frozenset[str]] = {
    RoleName.ADMIN: frozenset(PermissionCode.list_all()),
    RoleName.HR_MANAGER: frozenset(
        {PermissionCode.DEPARTMENT_VIEW.value, PermissionCode.DEPARTMENT_MANAGE.value}
    ),
    RoleName.EMPLOYEE: frozenset({PermissionCode.DEPARTMENT_VIEW.value}),
}


def permissions_for_roles(roles: Iterable[str]) -> set[str]:
    granted: set[str] = set()
    for raw in roles:
        # "ROLE_ADMIN" and "ADMIN" grant the same role
        value = str(raw).strip().upper().removeprefix("ROLE_")
        try:
            role = RoleName(value)
        except ValueError:
            continue
        granted.update(ROLE_PERMISSIONS[role])
    return granted
