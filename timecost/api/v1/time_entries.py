from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from timecost.api.v1.deps import get_audit_trail, get_timer_engine
from timecost.core.rbac import AuthContext
from timecost.core.security import get_auth_context
from timecost.schemas.audit_schema import AuditEntry
from timecost.schemas.common import to_naive_utc
from timecost.schemas.time_entry_schema import (
    AddTaskIn,
    ManualEntryIn,
    StartTimerIn,
    TimeEntryUpdate,
    TimeRecord,
)
from timecost.services.audit_trail import AuditTrail
from timecost.services.timer_engine import TimerEngine
from timecost.utils.durations import start_of_day


router = APIRouter(prefix="/time-entries", tags=["time-entries"])


def _or_404(record: Optional[TimeRecord], detail: str = "No active timer") -> TimeRecord:
    if record is None:
        raise HTTPException(status_code=404, detail=detail)
    return record


# ---------------------- Timer ----------------------


@router.post("/start", response_model=TimeRecord, status_code=status.HTTP_201_CREATED)
async def start_timer(
    payload: StartTimerIn,
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return await engine.start(auth.user_id, payload.projects, payload.task, payload.is_overtime)


@router.post("/pause", response_model=TimeRecord)
async def pause_timer(engine: TimerEngine = Depends(get_timer_engine), auth: AuthContext = Depends(get_auth_context)):
    return _or_404(await engine.pause(auth.user_id), "No running timer to pause")


@router.post("/resume", response_model=TimeRecord)
async def resume_timer(engine: TimerEngine = Depends(get_timer_engine), auth: AuthContext = Depends(get_auth_context)):
    return _or_404(await engine.resume(auth.user_id), "No paused timer to resume")


@router.post("/stop", response_model=TimeRecord)
async def stop_timer(engine: TimerEngine = Depends(get_timer_engine), auth: AuthContext = Depends(get_auth_context)):
    return _or_404(await engine.stop(auth.user_id))


@router.post("/tasks", response_model=TimeRecord)
async def add_task(
    payload: AddTaskIn,
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return _or_404(await engine.add_task(auth.user_id, payload.task))


@router.get("/active", response_model=Optional[TimeRecord])
async def active_timer(engine: TimerEngine = Depends(get_timer_engine), auth: AuthContext = Depends(get_auth_context)):
    return await engine.get_active(auth.user_id)


@router.post("/end-day")
async def end_day(engine: TimerEngine = Depends(get_timer_engine), auth: AuthContext = Depends(get_auth_context)):
    entries = await engine.end_day(auth.user_id)
    return {
        "items": [e.model_dump(mode="json") for e in entries],
        "total_minutes": sum(e.duration_minutes for e in entries),
    }


# ---------------------- Entries ----------------------


@router.post("/manual", response_model=TimeRecord, status_code=status.HTTP_201_CREATED)
async def log_manual(
    payload: ManualEntryIn,
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return await engine.log_manual(auth.user_id, payload)


@router.get("/me", response_model=list[TimeRecord])
async def my_entries(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    # Defaults to today
    end = to_naive_utc(end) or engine.clock()
    start = to_naive_utc(start) or start_of_day(end)
    return await engine.list_entries(auth.user_id, start, end)


@router.get("/audit", response_model=list[AuditEntry])
async def my_audit(
    days: int = Query(7, ge=1, le=90),
    audit: AuditTrail = Depends(get_audit_trail),
    auth: AuthContext = Depends(get_auth_context),
):
    now = audit.clock()
    return await audit.for_user(auth.user_id, now - timedelta(days=days), now)


@router.patch("/{entry_id}", response_model=TimeRecord)
async def update_entry(
    payload: TimeEntryUpdate,
    entry_id: str = Path(...),
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    return _or_404(await engine.update_entry(auth.user_id, entry_id, payload), "Time entry not found")


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str = Path(...),
    engine: TimerEngine = Depends(get_timer_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if not await engine.delete_entry(auth.user_id, entry_id):
        raise HTTPException(status_code=404, detail="Time entry not found")
    return {"status": "ok"}
