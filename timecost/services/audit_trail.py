import logging
from datetime import datetime
from typing import Any, Callable, Optional

from timecost.schemas.audit_schema import AuditAction, AuditEntry
from timecost.services.ports import AuditStore


logger = logging.getLogger(__name__)


class AuditTrail:
    """Append-only record of timer actions.

    Writes are best-effort: `record` returns the stored entry, or None when the
    store failed. It never raises into the timer operation that triggered it.
    """

    def __init__(self, store: AuditStore, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.clock = clock

    async def record(
        self,
        user_id: str,
        action: AuditAction,
        entry_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        entry = AuditEntry(
            user_id=user_id,
            entry_id=entry_id,
            action=action,
            metadata=metadata or {},
            timestamp=self.clock(),
        )
        try:
            return await self.store.append(entry)
        except Exception as exc:
            logger.warning("Failed to write audit entry %s for user %s: %s", action.value, user_id, exc)
            return None

    async def for_user(self, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list[AuditEntry]:
        return await self.store.find(user_id=user_id, start=start, end=end)

    async def for_entry(self, entry_id: str) -> list[AuditEntry]:
        return await self.store.find(entry_id=entry_id)

    async def in_range(self, start: datetime, end: datetime) -> list[AuditEntry]:
        return await self.store.find(start=start, end=end)

    async def by_action(self, action: AuditAction, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list[AuditEntry]:
        return await self.store.find(action=action, start=start, end=end)
