import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from timecost.core.config import settings
from timecost.core.exceptions import AuthorizationError, TimerConflictError, ValidationError
from timecost.schemas.audit_schema import AuditAction
from timecost.schemas.time_entry_schema import (
    DayEnd,
    ManualEntryIn,
    NewTimeRecord,
    TaskItem,
    TimeEntryUpdate,
    TimeRecord,
    TimeRecordChanges,
)
from timecost.services.audit_trail import AuditTrail
from timecost.services.ports import DayEndStore, EventPublisher, TimeRecordStore
from timecost.utils.durations import (
    elapsed_ms,
    live_minutes,
    open_pause_ms,
    start_of_day,
    task_minutes,
    worked_minutes,
)


logger = logging.getLogger(__name__)

# Attempts to close a user's previous timer before `start` gives up
SUPERSEDE_ATTEMPTS = 3

# Background publishes are held here until they finish
_pending_events: set[asyncio.Task] = set()


async def drain_events() -> None:
    """Wait for every background publish scheduled so far."""
    while _pending_events:
        await asyncio.gather(*list(_pending_events), return_exceptions=True)


class TimerEvents:
    TIMER_STARTED = "time-entry:timer-started"
    TIMER_STOPPED = "time-entry:timer-stopped"
    TIMER_PAUSED = "time-entry:timer-paused"
    TIMER_RESUMED = "time-entry:timer-resumed"
    CREATED = "time-entry:created"
    UPDATED = "time-entry:updated"
    DELETED = "time-entry:deleted"


def normalize_projects(projects: Optional[Iterable[str]]) -> list[str]:
    names: list[str] = []
    for p in projects or []:
        name = str(p).strip()
        if name and name not in names:
            names.append(name)
    return names


def close_last_task(tasks: list[TaskItem], now: datetime, session_start: datetime, paused_ms: int) -> list[TaskItem]:
    if not tasks:
        return []
    closed = list(tasks)
    last = closed[-1]
    closed[-1] = last.model_copy(
        update={"duration_minutes": task_minutes(last.added_at, now, session_start, paused_ms)}
    )
    return closed


class TimerEngine:
    """Per-user timer lifecycle: Idle -> Active -> (Paused <-> Active) -> Stopped.

    Every transition reads the user's active record, computes the new state and
    writes it back with a compare-and-swap on the record version. Losing that
    race is reported the same way as having nothing to act on (None).

    Audit entries and published events are side effects: `_publish` and
    `AuditTrail.record` report failure through their return values and never
    raise. With `background_events` the publish runs as a task and the
    operation returns without waiting for it; `drain_events()` waits for those
    tasks.
    """

    def __init__(
        self,
        store: TimeRecordStore,
        audit: AuditTrail,
        publisher: EventPublisher,
        day_ends: Optional[DayEndStore] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        background_events: bool = False,
    ) -> None:
        self.store = store
        self.audit = audit
        self.publisher = publisher
        self.day_ends = day_ends
        self.clock = clock
        self.background_events = background_events

    async def _publish(self, user_id: str, event: str, payload: Any) -> bool:
        if isinstance(payload, TimeRecord):
            payload = payload.model_dump(mode="json")
        if self.background_events:
            task = asyncio.create_task(self._send(user_id, event, payload))
            _pending_events.add(task)
            task.add_done_callback(_pending_events.discard)
            return True
        return await self._send(user_id, event, payload)

    async def _send(self, user_id: str, event: str, payload: dict[str, Any]) -> bool:
        try:
            await self.publisher.publish(user_id, event, payload)
            return True
        except Exception as exc:
            logger.warning("Failed to publish %s for user %s: %s", event, user_id, exc)
            return False

    def _project(self, record: TimeRecord, now: datetime) -> TimeRecord:
        if not record.is_active:
            return record
        return record.model_copy(update={"duration_minutes": live_minutes(record, now)})

    async def _stop_record(self, record: TimeRecord, *, superseded: bool = False) -> Optional[TimeRecord]:
        now = self.clock()
        paused_ms = record.paused_duration_ms + open_pause_ms(record, now)
        changes = TimeRecordChanges(
            end_time=now,
            is_active=False,
            is_paused=False,
            paused_duration_ms=paused_ms,
            last_paused_at=None,
            duration_minutes=worked_minutes(record.start_time, now, paused_ms),
            tasks=close_last_task(record.tasks, now, record.start_time, paused_ms),
        )
        stopped = await self.store.update(record.id, changes, expect_version=record.version, expect_active=True)
        if stopped is None:
            return None
        metadata: dict[str, Any] = {
            "duration_minutes": stopped.duration_minutes,
            "projects": stopped.projects,
            "tasks": [t.model_dump(mode="json") for t in stopped.tasks],
        }
        if superseded:
            metadata["superseded"] = True
        await self.audit.record(stopped.user_id, AuditAction.stop_timer, stopped.id, metadata)
        await self._publish(stopped.user_id, TimerEvents.TIMER_STOPPED, stopped)
        return stopped

    async def _supersede_active(self, user_id: str) -> None:
        # The previous timer must be closed before the new one exists
        for _ in range(SUPERSEDE_ATTEMPTS):
            active = await self.store.find_active_by_user(user_id)
            if active is None:
                return
            await self._stop_record(active, superseded=True)
        if await self.store.find_active_by_user(user_id) is not None:
            raise TimerConflictError("Could not stop the previous timer")

    def _new_timer(self, user_id: str, projects: list[str], text: str, is_overtime: bool) -> NewTimeRecord:
        now = self.clock()
        return NewTimeRecord(
            user_id=user_id,
            projects=projects,
            tasks=[TaskItem(text=text, added_at=now)],
            start_time=now,
            is_active=True,
            is_overtime=bool(is_overtime),
        )

    # ---------------------- Timer lifecycle ----------------------

    async def start(self, user_id: str, projects: Iterable[str], task: str = "", is_overtime: bool = False) -> TimeRecord:
        names = normalize_projects(projects)
        if not names:
            raise ValidationError("At least one project is required")

        text = (task or "").strip() or settings.DEFAULT_TASK_LABEL
        await self._supersede_active(user_id)
        try:
            record = await self.store.create(self._new_timer(user_id, names, text, is_overtime))
        except TimerConflictError:
            # Another start for this user created its timer in between
            logger.info("Concurrent start for user %s, superseding again", user_id)
            await self._supersede_active(user_id)
            record = await self.store.create(self._new_timer(user_id, names, text, is_overtime))
        await self.audit.record(user_id, AuditAction.start_timer, record.id, {"projects": names, "task": text})
        await self._publish(user_id, TimerEvents.TIMER_STARTED, record)
        return record

    async def pause(self, user_id: str) -> Optional[TimeRecord]:
        record = await self.store.find_active_by_user(user_id)
        if record is None or record.is_paused:
            return None
        now = self.clock()
        paused = await self.store.update(
            record.id,
            TimeRecordChanges(is_paused=True, last_paused_at=now),
            expect_version=record.version,
            expect_active=True,
            expect_paused=False,
        )
        if paused is None:
            return None
        paused = self._project(paused, now)
        await self.audit.record(user_id, AuditAction.pause_timer, paused.id, {
            "duration_minutes": paused.duration_minutes,
            "paused_duration_ms": paused.paused_duration_ms,
        })
        await self._publish(user_id, TimerEvents.TIMER_PAUSED, paused)
        return paused

    async def resume(self, user_id: str) -> Optional[TimeRecord]:
        record = await self.store.find_active_by_user(user_id)
        if record is None or not record.is_paused:
            return None
        now = self.clock()
        resumed = await self.store.update(
            record.id,
            TimeRecordChanges(
                is_paused=False,
                last_paused_at=None,
                paused_duration_ms=record.paused_duration_ms + open_pause_ms(record, now),
            ),
            expect_version=record.version,
            expect_active=True,
            expect_paused=True,
        )
        if resumed is None:
            return None
        resumed = self._project(resumed, now)
        await self.audit.record(user_id, AuditAction.resume_timer, resumed.id, {
            "duration_minutes": resumed.duration_minutes,
            "paused_duration_ms": resumed.paused_duration_ms,
        })
        await self._publish(user_id, TimerEvents.TIMER_RESUMED, resumed)
        return resumed

    async def stop(self, user_id: str) -> Optional[TimeRecord]:
        record = await self.store.find_active_by_user(user_id)
        if record is None:
            return None
        return await self._stop_record(record)

    async def add_task(self, user_id: str, task_text: str) -> Optional[TimeRecord]:
        text = (task_text or "").strip()
        if not text:
            raise ValidationError("Task text is required")
        record = await self.store.find_active_by_user(user_id)
        if record is None:
            return None
        now = self.clock()
        tasks = close_last_task(record.tasks, now, record.start_time, record.paused_duration_ms)
        tasks.append(TaskItem(text=text, added_at=now))
        updated = await self.store.update(
            record.id,
            TimeRecordChanges(tasks=tasks),
            expect_version=record.version,
            expect_active=True,
        )
        if updated is None:
            return None
        updated = self._project(updated, now)
        await self.audit.record(user_id, AuditAction.add_task, updated.id, {"task": text})
        await self._publish(user_id, TimerEvents.UPDATED, updated)
        return updated

    async def get_active(self, user_id: str) -> Optional[TimeRecord]:
        record = await self.store.find_active_by_user(user_id)
        if record is None:
            return None
        return self._project(record, self.clock())

    # ---------------------- Day end ----------------------

    async def stop_all_active(self, user_id: str) -> list[TimeRecord]:
        stopped: list[TimeRecord] = []
        for record in await self.store.find_all_active_by_user(user_id):
            result = await self._stop_record(record)
            if result is not None:
                stopped.append(result)
        return stopped

    async def end_day(self, user_id: str) -> list[TimeRecord]:
        """Close every running timer and return all of today's entries."""
        stopped = await self.stop_all_active(user_id)
        now = self.clock()
        if self.day_ends is not None:
            await self.day_ends.create(DayEnd(user_id=user_id, ended_at=now))
        await self.audit.record(user_id, AuditAction.end_day, None, {"stopped": [r.id for r in stopped]})
        entries = await self.store.find_by_user_and_date_range(user_id, start_of_day(now), now)
        return [self._project(e, now) for e in entries]

    async def day_ended_at(self, user_id: str, day: datetime) -> Optional[datetime]:
        if self.day_ends is None:
            return None
        last = await self.day_ends.last_for_day(user_id, day)
        return last.ended_at if last else None

    # ---------------------- Entries ----------------------

    async def log_manual(self, user_id: str, entry: ManualEntryIn) -> TimeRecord:
        names = normalize_projects(entry.projects)
        if not names:
            raise ValidationError("At least one project is required")
        if entry.duration_minutes < 0:
            raise ValidationError("duration_minutes must not be negative")
        now = self.clock()
        end = entry.end_time or now
        start = entry.start_time or (end - timedelta(minutes=entry.duration_minutes))
        if elapsed_ms(start, end) < 0:
            raise ValidationError("end_time must not be before start_time")
        text = (entry.task or "").strip() or settings.DEFAULT_TASK_LABEL
        record = await self.store.create(NewTimeRecord(
            user_id=user_id,
            projects=names,
            tasks=[TaskItem(text=text, added_at=start, duration_minutes=entry.duration_minutes)],
            start_time=start,
            end_time=end,
            is_active=False,
            duration_minutes=entry.duration_minutes,
            is_overtime=entry.is_overtime,
            source="manual",
        ))
        await self.audit.record(user_id, AuditAction.log_manual, record.id, {
            "projects": names,
            "task": text,
            "duration_minutes": entry.duration_minutes,
        })
        await self._publish(user_id, TimerEvents.CREATED, record)
        return record

    async def update_entry(self, user_id: str, entry_id: str, update: TimeEntryUpdate) -> Optional[TimeRecord]:
        record = await self.store.find_by_id(entry_id)
        if record is None:
            return None
        if record.user_id != user_id:
            raise AuthorizationError("Access denied")

        fields: dict[str, Any] = {}
        if update.projects is not None:
            names = normalize_projects(update.projects)
            if not names:
                raise ValidationError("At least one project is required")
            fields["projects"] = names
        if update.task is not None:
            text = update.task.strip()
            if not text:
                raise ValidationError("Task text is required")
            tasks = list(record.tasks)
            if tasks:
                tasks[-1] = tasks[-1].model_copy(update={"text": text})
            else:
                tasks.append(TaskItem(text=text, added_at=record.start_time, duration_minutes=record.duration_minutes))
            fields["tasks"] = tasks
        if update.duration_minutes is not None:
            if record.is_active:
                raise ValidationError("The duration of a running timer cannot be edited")
            if update.duration_minutes < 0:
                raise ValidationError("duration_minutes must not be negative")
            fields["duration_minutes"] = update.duration_minutes
        if not fields:
            return self._project(record, self.clock())

        updated = await self.store.update(record.id, TimeRecordChanges(**fields), expect_version=record.version)
        if updated is None:
            return None
        await self.audit.record(user_id, AuditAction.update_entry, record.id, {
            "old_value": {
                "projects": record.projects,
                "tasks": [t.model_dump(mode="json") for t in record.tasks],
                "duration_minutes": record.duration_minutes,
            },
            "new_value": {
                "projects": updated.projects,
                "tasks": [t.model_dump(mode="json") for t in updated.tasks],
                "duration_minutes": updated.duration_minutes,
            },
        })
        updated = self._project(updated, self.clock())
        await self._publish(user_id, TimerEvents.UPDATED, updated)
        return updated

    async def delete_entry(self, user_id: str, entry_id: str) -> bool:
        record = await self.store.find_by_id(entry_id)
        if record is None:
            return False
        if record.user_id != user_id:
            raise AuthorizationError("Access denied")
        if record.is_active:
            raise ValidationError("Stop the timer before deleting it")
        await self.audit.record(user_id, AuditAction.delete_entry, record.id, {
            "projects": record.projects,
            "tasks": [t.model_dump(mode="json") for t in record.tasks],
            "duration_minutes": record.duration_minutes,
        })
        deleted = await self.store.delete(record.id)
        if deleted:
            await self._publish(user_id, TimerEvents.DELETED, {"id": record.id})
        return deleted

    async def list_entries(self, user_id: str, start: datetime, end: datetime) -> list[TimeRecord]:
        now = self.clock()
        entries = await self.store.find_by_user_and_date_range(user_id, start, end)
        return [self._project(e, now) for e in entries]
