from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from timecost.core.config import settings
from timecost.schemas.common import to_naive_utc


class AlertThresholds(BaseModel):
    warning: float = Field(default_factory=lambda: settings.BUDGET_WARNING_THRESHOLD, ge=0, le=100)
    critical: float = Field(default_factory=lambda: settings.BUDGET_CRITICAL_THRESHOLD, ge=0, le=100)


class AlertThresholdsPatch(BaseModel):
    warning: Optional[float] = Field(default=None, ge=0, le=100)
    critical: Optional[float] = Field(default=None, ge=0, le=100)


class BudgetIn(BaseModel):
    project: Optional[str] = None  # None for team-wide budgets
    start_date: datetime
    end_date: datetime
    amount: float
    currency: Optional[str] = None
    alert_thresholds: Optional[AlertThresholdsPatch] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value):
        return to_naive_utc(value)


class BudgetUpdate(BaseModel):
    project: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    alert_thresholds: Optional[AlertThresholdsPatch] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value):
        return to_naive_utc(value)


class NewBudget(BaseModel):
    project: Optional[str] = None
    start_date: datetime
    end_date: datetime
    amount: float
    currency: str
    alert_thresholds: AlertThresholds
    created_by: str


class BudgetChanges(BaseModel):
    """Validated partial update handed to the budget store."""

    project: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    alert_thresholds: Optional[AlertThresholds] = None


class Budget(NewBudget):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BudgetComparison(BaseModel):
    budget: Budget
    actual_cost: float
    actual_hours: float
    remaining_budget: float
    remaining_days: int
    utilization_percentage: float
    alert_level: Literal["ok", "warning", "critical"] = "ok"
    projected_cost: float
    projected_overspend: float  # negative when under budget
