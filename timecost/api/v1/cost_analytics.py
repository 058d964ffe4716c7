from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from timecost.api.v1.deps import get_cost_engine, get_forecast_engine
from timecost.core.feature_flags import features
from timecost.core.rbac import AuthContext, require_permission
from timecost.core.security import get_auth_context
from timecost.schemas.common import Permission, to_naive_utc
from timecost.schemas.cost_schema import (
    CostForecast,
    OvertimeBreakdown,
    PeriodComparison,
    PrivilegedCostSummary,
    PrivilegedLiveCostData,
    PrivilegedProjectCostSummary,
    SafeCostSummary,
    SafeLiveCostData,
    SafeProjectCostSummary,
)
from timecost.services.cost_engine import CostAggregationEngine
from timecost.services.forecast_engine import ForecastEngine


router = APIRouter(prefix="/cost-analytics", tags=["cost-analytics"])


def _range(now: datetime, start: Optional[datetime], end: Optional[datetime], days: int = 30) -> tuple[datetime, datetime]:
    end = to_naive_utc(end) or now
    start = to_naive_utc(start) or end - timedelta(days=days)
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return start, end


def _require_privileged(auth: AuthContext) -> None:
    if not features.privileged_views:
        raise HTTPException(status_code=404, detail="Privileged views disabled")
    require_permission(auth, Permission.users_manage)


# ---------------------- Live ----------------------


@router.get("/live", response_model=SafeLiveCostData)
async def live_cost(
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if not features.live_cost:
        raise HTTPException(status_code=404, detail="Live cost disabled")
    require_permission(auth, Permission.time_entry_analytics)
    return await costs.live_cost()


@router.get("/live/privileged", response_model=PrivilegedLiveCostData)
async def live_cost_privileged(
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if not features.live_cost:
        raise HTTPException(status_code=404, detail="Live cost disabled")
    _require_privileged(auth)
    return await costs.live_cost_privileged()


# ---------------------- Historical ----------------------


@router.get("/summary", response_model=SafeCostSummary)
async def cost_summary(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    project: Optional[str] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.time_entry_analytics)
    return await costs.cost_summary(*_range(costs.clock(), start, end), project)


@router.get("/summary/privileged", response_model=PrivilegedCostSummary)
async def cost_summary_privileged(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    project: Optional[str] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    _require_privileged(auth)
    return await costs.cost_summary_privileged(*_range(costs.clock(), start, end), project)


@router.get("/projects", response_model=list[str])
async def project_names(
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.time_entry_analytics)
    return await costs.project_names()


@router.get("/projects/{name}", response_model=SafeProjectCostSummary)
async def project_detail(
    name: str = Path(...),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.time_entry_analytics)
    detail = await costs.project_detail(name, *_range(costs.clock(), start, end))
    if detail is None:
        raise HTTPException(status_code=404, detail="No time recorded for this project")
    return detail


@router.get("/projects/{name}/privileged", response_model=PrivilegedProjectCostSummary)
async def project_detail_privileged(
    name: str = Path(...),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    _require_privileged(auth)
    detail = await costs.project_detail_privileged(name, *_range(costs.clock(), start, end))
    if detail is None:
        raise HTTPException(status_code=404, detail="No time recorded for this project")
    return detail


@router.get("/forecast", response_model=CostForecast)
async def forecast(
    days: int = Query(30, ge=1, le=365),
    history_days: int = Query(30, ge=2, le=730),
    project: Optional[str] = Query(None),
    engine: ForecastEngine = Depends(get_forecast_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    if not features.forecast:
        raise HTTPException(status_code=404, detail="Forecast disabled")
    require_permission(auth, Permission.time_entry_analytics)
    start, end = _range(engine.costs.clock(), None, None, history_days)
    return await engine.forecast(start, end, days, project)


@router.get("/overtime", response_model=OvertimeBreakdown)
async def overtime(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    project: Optional[str] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.time_entry_analytics)
    return await costs.overtime_breakdown(*_range(costs.clock(), start, end), project)


@router.get("/comparison", response_model=PeriodComparison)
async def period_comparison(
    days: int = Query(30, ge=1, le=365),
    project: Optional[str] = Query(None),
    costs: CostAggregationEngine = Depends(get_cost_engine),
    auth: AuthContext = Depends(get_auth_context),
):
    require_permission(auth, Permission.time_entry_analytics)
    current_end = costs.clock()
    current_start = current_end - timedelta(days=days)
    previous_start = current_start - timedelta(days=days)
    return await costs.period_comparison(current_start, current_end, previous_start, current_start, project)
