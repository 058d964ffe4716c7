from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from timecost.schemas.common import to_naive_utc


class TaskItem(BaseModel):
    text: str
    added_at: datetime
    duration_minutes: int = Field(default=0, ge=0)


class NewTimeRecord(BaseModel):
    user_id: str
    projects: list[str]
    tasks: list[TaskItem] = Field(default_factory=list)
    start_time: datetime
    end_time: Optional[datetime] = None
    is_active: bool = True
    is_paused: bool = False
    paused_duration_ms: int = 0
    last_paused_at: Optional[datetime] = None
    duration_minutes: int = 0
    is_overtime: bool = False
    source: Literal["timer", "manual"] = "timer"


class TimeRecord(NewTimeRecord):
    id: str
    version: int = 0  # bumped by the store on every write
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def state(self) -> str:  # active | paused | completed
        if not self.is_active:
            return "completed"
        return "paused" if self.is_paused else "active"


class TimeRecordChanges(BaseModel):
    """Partial update of a time record. Only explicitly set fields are written."""

    projects: Optional[list[str]] = None
    tasks: Optional[list[TaskItem]] = None
    end_time: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_paused: Optional[bool] = None
    paused_duration_ms: Optional[int] = None
    last_paused_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None


class StartTimerIn(BaseModel):
    projects: list[str]
    task: str = ""
    is_overtime: bool = False


class AddTaskIn(BaseModel):
    task: str


class ManualEntryIn(BaseModel):
    projects: list[str]
    task: str = ""
    duration_minutes: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_overtime: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class TimeEntryUpdate(BaseModel):
    projects: Optional[list[str]] = None
    task: Optional[str] = None
    duration_minutes: Optional[int] = None


class DayEnd(BaseModel):
    user_id: str
    ended_at: datetime
