from typing import Iterable

from fastapi import HTTPException, status
from pydantic import BaseModel, Field

from timecost.schemas.common import Permission


SUPER_PERMISSIONS = {Permission.system_full_access.value}

# prefix -> "<prefix>:fullAccess", e.g. "finance" -> "finance:fullAccess"
FULL_ACCESS_BY_PREFIX = {
    p.value.split(":", 1)[0]: p.value for p in Permission if p.value.endswith(":fullAccess")
}

BUDGET_OVERRIDE_PERMISSIONS = (Permission.finance_full_access, Permission.system_full_access)


class AuthContext(BaseModel):
    user_id: str
    permissions: list[str] = Field(default_factory=list)


def has_permission(auth: AuthContext, permission: Permission | str) -> bool:
    target = permission.value if isinstance(permission, Permission) else str(permission)
    granted = set(auth.permissions)
    if granted & SUPER_PERMISSIONS:
        return True
    if target in granted:
        return True
    # A scoped fullAccess satisfies every permission with the same prefix
    full = FULL_ACCESS_BY_PREFIX.get(target.split(":", 1)[0])
    return bool(full) and full in granted


def has_any_permission(auth: AuthContext, permissions: Iterable[Permission | str]) -> bool:
    return any(has_permission(auth, p) for p in permissions)


def can_view_compensation(auth: AuthContext) -> bool:
    return has_permission(auth, Permission.users_manage)


def can_override_budget(auth: AuthContext) -> bool:
    return has_any_permission(auth, BUDGET_OVERRIDE_PERMISSIONS)


def require_permission(auth: AuthContext, permission: Permission) -> None:
    if not has_permission(auth, permission):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
