from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored and clock datetimes are naive UTC; offset-aware input is converted to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Permission(str, Enum):
    system_full_access = "system:fullAccess"
    users_view = "users:view"
    users_manage = "users:manage"
    finance_view = "finance:view"
    finance_full_access = "finance:fullAccess"
    time_entry_full_access = "time-entry:fullAccess"
    time_entry_read = "time-entry:read"
    time_entry_analytics = "time-entry:analytics"
    time_entry_create = "time-entry:create"
    time_entry_update = "time-entry:update"
    time_entry_delete = "time-entry:delete"
