"""In-memory collaborators and a controllable clock for engine tests."""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

from timecost.schemas.audit_schema import AuditAction, AuditEntry
from timecost.schemas.budget_schema import Budget, BudgetChanges, NewBudget
from timecost.schemas.time_entry_schema import DayEnd, NewTimeRecord, TimeRecord, TimeRecordChanges
from timecost.schemas.user_schema import UserProfile
from timecost.services.audit_trail import AuditTrail
from timecost.services.budget_engine import BudgetEngine
from timecost.services.cost_engine import CostAggregationEngine
from timecost.services.forecast_engine import ForecastEngine
from timecost.services.timer_engine import TimerEngine
from timecost.utils.durations import start_of_day


T0 = datetime(2024, 3, 4, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


_ids = itertools.count(1)


def _next_id() -> str:
    return f"{next(_ids):024x}"


class InMemoryTimeRecordStore:
    def __init__(self) -> None:
        self.records: dict[str, TimeRecord] = {}

    async def create(self, record: NewTimeRecord) -> TimeRecord:
        saved = TimeRecord(id=_next_id(), **record.model_dump())
        self.records[saved.id] = saved
        return saved

    async def find_by_id(self, record_id: str) -> Optional[TimeRecord]:
        return self.records.get(record_id)

    async def find_active_by_user(self, user_id: str) -> Optional[TimeRecord]:
        active = await self.find_all_active_by_user(user_id)
        return active[-1] if active else None

    async def find_all_active_by_user(self, user_id: str) -> list[TimeRecord]:
        return [r for r in self.records.values() if r.user_id == user_id and r.is_active]

    async def find_by_user_and_date_range(self, user_id: str, start: datetime, end: datetime) -> list[TimeRecord]:
        return [r for r in self.records.values() if r.user_id == user_id and start <= r.start_time <= end]

    async def find_completed_in_range(self, start: datetime, end: datetime, user_id: Optional[str] = None) -> list[TimeRecord]:
        return [
            r for r in self.records.values()
            if not r.is_active and start <= r.start_time <= end and (user_id is None or r.user_id == user_id)
        ]

    async def find_all_active(self) -> list[TimeRecord]:
        return [r for r in self.records.values() if r.is_active]

    async def update(
        self,
        record_id: str,
        changes: TimeRecordChanges,
        *,
        expect_version: Optional[int] = None,
        expect_active: Optional[bool] = None,
        expect_paused: Optional[bool] = None,
    ) -> Optional[TimeRecord]:
        current = self.records.get(record_id)
        if current is None:
            return None
        if expect_version is not None and current.version != expect_version:
            return None
        if expect_active is not None and current.is_active != expect_active:
            return None
        if expect_paused is not None and current.is_paused != expect_paused:
            return None
        data = current.model_dump(exclude={"state"})
        data.update(changes.model_dump(exclude_unset=True))
        data["version"] = current.version + 1
        updated = TimeRecord(**data)
        self.records[record_id] = updated
        return updated

    async def delete(self, record_id: str) -> bool:
        return self.records.pop(record_id, None) is not None


class InMemoryUserDirectory:
    def __init__(self, users: Optional[list[UserProfile]] = None) -> None:
        self.users = {u.id: u for u in users or []}
        self.broken: set[str] = set()

    def add(self, user_id: str, monthly_salary: float, name: Optional[str] = None) -> UserProfile:
        profile = UserProfile(
            id=user_id,
            display_name=name or user_id.title(),
            email=f"{user_id}@example.com",
            monthly_salary=monthly_salary,
        )
        self.users[user_id] = profile
        return profile

    async def resolve(self, user_id: str) -> Optional[UserProfile]:
        if user_id in self.broken:
            raise ConnectionError("directory unavailable")
        return self.users.get(user_id)


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((user_id, event_name, payload))

    def names(self) -> list[str]:
        return [e[1] for e in self.events]


class FailingPublisher:
    async def publish(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        raise RuntimeError("push channel down")


class InMemoryAuditStore:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> AuditEntry:
        saved = entry.model_copy(update={"id": _next_id()})
        self.entries.append(saved)
        return saved

    async def find(
        self,
        *,
        user_id: Optional[str] = None,
        entry_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AuditEntry]:
        found = []
        for e in self.entries:
            if user_id and e.user_id != user_id:
                continue
            if entry_id and e.entry_id != entry_id:
                continue
            if action is not None and e.action != action:
                continue
            if start and e.timestamp < start:
                continue
            if end and e.timestamp > end:
                continue
            found.append(e)
        return sorted(found, key=lambda e: e.timestamp, reverse=True)

    def actions(self) -> list[AuditAction]:
        return [e.action for e in self.entries]


class FailingAuditStore(InMemoryAuditStore):
    async def append(self, entry: AuditEntry) -> AuditEntry:
        raise RuntimeError("audit collection unavailable")


class InMemoryDayEndStore:
    def __init__(self) -> None:
        self.items: list[DayEnd] = []

    async def create(self, day_end: DayEnd) -> DayEnd:
        self.items.append(day_end)
        return day_end

    async def last_for_day(self, user_id: str, day: datetime) -> Optional[DayEnd]:
        start = start_of_day(day)
        matches = [
            d for d in self.items
            if d.user_id == user_id and start <= d.ended_at < start + timedelta(days=1)
        ]
        return max(matches, key=lambda d: d.ended_at) if matches else None


class InMemoryBudgetStore:
    def __init__(self) -> None:
        self.budgets: dict[str, Budget] = {}

    async def create(self, budget: NewBudget) -> Budget:
        saved = Budget(id=_next_id(), **budget.model_dump())
        self.budgets[saved.id] = saved
        return saved

    async def find_by_id(self, budget_id: str) -> Optional[Budget]:
        return self.budgets.get(budget_id)

    async def find_all(self) -> list[Budget]:
        return list(self.budgets.values())

    async def find_by_project(self, project: Optional[str]) -> list[Budget]:
        return [b for b in self.budgets.values() if b.project == project]

    async def find_active(self, at: datetime) -> list[Budget]:
        return [b for b in self.budgets.values() if b.start_date <= at <= b.end_date]

    async def update(self, budget_id: str, changes: BudgetChanges) -> Optional[Budget]:
        current = self.budgets.get(budget_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes.model_dump(exclude_unset=True))
        self.budgets[budget_id] = Budget.model_validate(updated.model_dump())
        return self.budgets[budget_id]

    async def delete(self, budget_id: str) -> bool:
        return self.budgets.pop(budget_id, None) is not None


def completed_record(
    user_id: str,
    projects: list[str],
    minutes: int,
    start: datetime = T0,
    is_overtime: bool = False,
) -> NewTimeRecord:
    return NewTimeRecord(
        user_id=user_id,
        projects=projects,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        is_active=False,
        duration_minutes=minutes,
        is_overtime=is_overtime,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryTimeRecordStore()


@pytest.fixture
def directory():
    return InMemoryUserDirectory()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def day_ends():
    return InMemoryDayEndStore()


@pytest.fixture
def budget_store():
    return InMemoryBudgetStore()


@pytest.fixture
def audit(audit_store, clock):
    return AuditTrail(audit_store, clock)


@pytest.fixture
def timer(store, audit, publisher, day_ends, clock):
    return TimerEngine(store, audit, publisher, day_ends=day_ends, clock=clock)


@pytest.fixture
def costs(store, directory, clock):
    return CostAggregationEngine(store, directory, clock)


@pytest.fixture
def forecaster(costs):
    return ForecastEngine(costs)


@pytest.fixture
def budgets(budget_store, costs, clock):
    return BudgetEngine(budget_store, costs, clock)
