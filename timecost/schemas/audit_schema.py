from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    start_timer = "start_timer"
    pause_timer = "pause_timer"
    resume_timer = "resume_timer"
    stop_timer = "stop_timer"
    add_task = "add_task"
    log_manual = "log_manual"
    update_entry = "update_entry"
    delete_entry = "delete_entry"
    end_day = "end_day"


class AuditEntry(BaseModel):
    id: Optional[str] = None
    user_id: str
    entry_id: Optional[str] = None
    action: AuditAction
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
