import pytest
from fastapi import HTTPException

from timecost.core.rbac import (
    AuthContext,
    can_override_budget,
    can_view_compensation,
    has_permission,
    require_permission,
)
from timecost.schemas.common import Permission


def test_exact_permission():
    auth = AuthContext(user_id="u1", permissions=["finance:view"])
    assert has_permission(auth, Permission.finance_view)
    assert not has_permission(auth, Permission.users_manage)


def test_scoped_full_access_covers_prefix():
    auth = AuthContext(user_id="u1", permissions=["time-entry:fullAccess"])
    assert has_permission(auth, Permission.time_entry_analytics)
    assert has_permission(auth, "time-entry:delete")
    assert not has_permission(auth, Permission.finance_view)


def test_system_full_access_grants_everything():
    auth = AuthContext(user_id="root", permissions=["system:fullAccess"])
    assert can_view_compensation(auth)
    assert can_override_budget(auth)


def test_budget_override():
    assert can_override_budget(AuthContext(user_id="cfo", permissions=["finance:fullAccess"]))
    assert not can_override_budget(AuthContext(user_id="clerk", permissions=["finance:view"]))


def test_require_permission_raises_403():
    with pytest.raises(HTTPException) as exc:
        require_permission(AuthContext(user_id="u1"), Permission.users_manage)
    assert exc.value.status_code == 403
