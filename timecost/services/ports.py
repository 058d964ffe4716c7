"""Interfaces of the collaborators the engines depend on."""
from datetime import datetime
from typing import Any, Optional, Protocol

from timecost.schemas.audit_schema import AuditAction, AuditEntry
from timecost.schemas.budget_schema import Budget, BudgetChanges, NewBudget
from timecost.schemas.time_entry_schema import DayEnd, NewTimeRecord, TimeRecord, TimeRecordChanges
from timecost.schemas.user_schema import UserProfile


class TimeRecordStore(Protocol):
    async def create(self, record: NewTimeRecord) -> TimeRecord: ...

    async def find_by_id(self, record_id: str) -> Optional[TimeRecord]: ...

    async def find_active_by_user(self, user_id: str) -> Optional[TimeRecord]: ...

    async def find_all_active_by_user(self, user_id: str) -> list[TimeRecord]: ...

    async def find_by_user_and_date_range(self, user_id: str, start: datetime, end: datetime) -> list[TimeRecord]: ...

    async def find_completed_in_range(self, start: datetime, end: datetime, user_id: Optional[str] = None) -> list[TimeRecord]: ...

    async def find_all_active(self) -> list[TimeRecord]: ...

    async def update(
        self,
        record_id: str,
        changes: TimeRecordChanges,
        *,
        expect_version: Optional[int] = None,
        expect_active: Optional[bool] = None,
        expect_paused: Optional[bool] = None,
    ) -> Optional[TimeRecord]:
        """Apply `changes` only if the record still matches the expectations.

        Every successful write bumps `version`, so passing the version that was
        read makes the call a compare-and-swap.

        Returns the updated record, or None when nothing matched.
        """
        ...

    async def delete(self, record_id: str) -> bool: ...


class UserDirectory(Protocol):
    async def resolve(self, user_id: str) -> Optional[UserProfile]: ...


class EventPublisher(Protocol):
    async def publish(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None: ...


class AuditStore(Protocol):
    async def append(self, entry: AuditEntry) -> AuditEntry: ...

    async def find(
        self,
        *,
        user_id: Optional[str] = None,
        entry_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AuditEntry]: ...


class DayEndStore(Protocol):
    async def create(self, day_end: DayEnd) -> DayEnd: ...

    async def last_for_day(self, user_id: str, day: datetime) -> Optional[DayEnd]: ...


class BudgetStore(Protocol):
    async def create(self, budget: NewBudget) -> Budget: ...

    async def find_by_id(self, budget_id: str) -> Optional[Budget]: ...

    async def find_all(self) -> list[Budget]: ...

    async def find_by_project(self, project: Optional[str]) -> list[Budget]: ...

    async def find_active(self, at: datetime) -> list[Budget]: ...

    async def update(self, budget_id: str, changes: BudgetChanges) -> Optional[Budget]: ...

    async def delete(self, budget_id: str) -> bool: ...
