"""Projection of privileged cost shapes onto their safe counterparts.

Each mapper builds the safe model field by field, so anything the safe model
does not declare is dropped.
"""
from timecost.schemas.cost_schema import (
    PrivilegedActiveDeveloper,
    PrivilegedCostSummary,
    PrivilegedDeveloperCost,
    PrivilegedLiveCostData,
    PrivilegedProjectCostSummary,
    PrivilegedTopPerformer,
    SafeActiveDeveloper,
    SafeCostSummary,
    SafeDeveloperCost,
    SafeLiveCostData,
    SafeProjectCostSummary,
    SafeTopPerformer,
)


def to_safe_active_developer(dev: PrivilegedActiveDeveloper) -> SafeActiveDeveloper:
    return SafeActiveDeveloper(
        user_id=dev.user_id,
        user_name=dev.user_name,
        user_email=dev.user_email,
        profile_image=dev.profile_image,
        position=dev.position,
        projects=list(dev.projects),
        active_minutes=dev.active_minutes,
        live_cost=dev.live_cost,
        start_time=dev.start_time,
        is_paused=dev.is_paused,
    )


def to_safe_live_cost(data: PrivilegedLiveCostData) -> SafeLiveCostData:
    return SafeLiveCostData(
        total_burn_rate=data.total_burn_rate,
        total_live_cost=data.total_live_cost,
        active_hours=data.active_hours,
        active_developers=[to_safe_active_developer(d) for d in data.active_developers],
        project_costs=[p.model_copy() for p in data.project_costs],
        timestamp=data.timestamp,
    )


def to_safe_developer_cost(row: PrivilegedDeveloperCost) -> SafeDeveloperCost:
    return SafeDeveloperCost(user_id=row.user_id, user_name=row.user_name, hours=row.hours, cost=row.cost)


def to_safe_project_summary(summary: PrivilegedProjectCostSummary) -> SafeProjectCostSummary:
    return SafeProjectCostSummary(
        project=summary.project,
        total_cost=summary.total_cost,
        total_hours=summary.total_hours,
        developers=[to_safe_developer_cost(d) for d in summary.developers],
        avg_cost_per_hour=summary.total_cost / summary.total_hours if summary.total_hours > 0 else 0.0,
    )


def to_safe_top_performer(p: PrivilegedTopPerformer) -> SafeTopPerformer:
    return SafeTopPerformer(
        user_id=p.user_id,
        user_name=p.user_name,
        user_email=p.user_email,
        profile_image=p.profile_image,
        position=p.position,
        total_hours=p.total_hours,
        total_cost=p.total_cost,
        project_count=p.project_count,
        projects=list(p.projects),
    )


def to_safe_cost_summary(summary: PrivilegedCostSummary) -> SafeCostSummary:
    return SafeCostSummary(
        total_cost=summary.total_cost,
        total_hours=summary.total_hours,
        project_costs=[to_safe_project_summary(p) for p in summary.project_costs],
        top_performers=[to_safe_top_performer(p) for p in summary.top_performers],
        daily_costs=[d.model_copy() for d in summary.daily_costs],
        monthly_costs=[m.model_copy() for m in summary.monthly_costs],
        overtime_breakdown=summary.overtime_breakdown.model_copy(deep=True),
    )
