"""Cost analytics shapes.

Safe models never declare compensation fields (``hourly_rate``,
``monthly_salary``, ``avg_hourly_rate``). Privileged models are separate
classes rather than subclasses, so a privileged value is never accepted where
a safe one is expected.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ProjectLiveCost(BaseModel):
    project: str
    live_cost: float
    burn_rate: float  # per hour, summed across active developers
    developers: int
    active_minutes: int


class SafeActiveDeveloper(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    profile_image: Optional[str] = None
    position: Optional[str] = None
    projects: list[str]
    active_minutes: int
    live_cost: float
    start_time: datetime
    is_paused: bool


class PrivilegedActiveDeveloper(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    profile_image: Optional[str] = None
    position: Optional[str] = None
    projects: list[str]
    active_minutes: int
    live_cost: float
    start_time: datetime
    is_paused: bool
    monthly_salary: float
    hourly_rate: float


class SafeLiveCostData(BaseModel):
    total_burn_rate: float = 0.0
    total_live_cost: float = 0.0
    active_hours: float = 0.0
    active_developers: list[SafeActiveDeveloper] = Field(default_factory=list)
    project_costs: list[ProjectLiveCost] = Field(default_factory=list)
    timestamp: datetime


class PrivilegedLiveCostData(BaseModel):
    total_burn_rate: float = 0.0
    total_live_cost: float = 0.0
    active_hours: float = 0.0
    active_developers: list[PrivilegedActiveDeveloper] = Field(default_factory=list)
    project_costs: list[ProjectLiveCost] = Field(default_factory=list)
    timestamp: datetime


class SafeDeveloperCost(BaseModel):
    user_id: str
    user_name: str
    hours: float
    cost: float


class PrivilegedDeveloperCost(BaseModel):
    user_id: str
    user_name: str
    hours: float
    cost: float
    hourly_rate: float


class SafeProjectCostSummary(BaseModel):
    project: str
    total_cost: float
    total_hours: float
    developers: list[SafeDeveloperCost]
    avg_cost_per_hour: float


class PrivilegedProjectCostSummary(BaseModel):
    project: str
    total_cost: float
    total_hours: float
    developers: list[PrivilegedDeveloperCost]
    avg_hourly_rate: float


class SafeTopPerformer(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    profile_image: Optional[str] = None
    position: Optional[str] = None
    total_hours: float
    total_cost: float
    project_count: int
    projects: list[str]


class PrivilegedTopPerformer(BaseModel):
    user_id: str
    user_name: str
    user_email: str
    profile_image: Optional[str] = None
    position: Optional[str] = None
    total_hours: float
    total_cost: float
    project_count: int
    projects: list[str]
    hourly_rate: float


class CostHours(BaseModel):
    cost: float = 0.0
    hours: float = 0.0


class DailyCost(CostHours):
    date: str  # YYYY-MM-DD


class MonthlyCost(CostHours):
    month: str  # YYYY-MM


class OvertimeBreakdown(BaseModel):
    regular: CostHours = Field(default_factory=CostHours)
    overtime: CostHours = Field(default_factory=CostHours)
    overtime_percentage: float = 0.0


class SafeCostSummary(BaseModel):
    total_cost: float = 0.0
    total_hours: float = 0.0
    project_costs: list[SafeProjectCostSummary] = Field(default_factory=list)
    top_performers: list[SafeTopPerformer] = Field(default_factory=list)
    daily_costs: list[DailyCost] = Field(default_factory=list)
    monthly_costs: list[MonthlyCost] = Field(default_factory=list)
    overtime_breakdown: OvertimeBreakdown = Field(default_factory=OvertimeBreakdown)


class PrivilegedCostSummary(BaseModel):
    total_cost: float = 0.0
    total_hours: float = 0.0
    project_costs: list[PrivilegedProjectCostSummary] = Field(default_factory=list)
    top_performers: list[PrivilegedTopPerformer] = Field(default_factory=list)
    daily_costs: list[DailyCost] = Field(default_factory=list)
    monthly_costs: list[MonthlyCost] = Field(default_factory=list)
    overtime_breakdown: OvertimeBreakdown = Field(default_factory=OvertimeBreakdown)


class CostForecast(BaseModel):
    projected_cost: float
    projected_hours: float
    days_remaining: int
    confidence: int = Field(ge=0, le=100)
    daily_average: float
    trend: Literal["increasing", "decreasing", "stable"] = "stable"


class PeriodChange(BaseModel):
    cost: float
    hours: float
    cost_percentage: float
    hours_percentage: float


class PeriodComparison(BaseModel):
    current: CostHours
    previous: CostHours
    change: PeriodChange
