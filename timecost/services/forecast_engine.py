import math
from datetime import datetime
from typing import Optional

from timecost.schemas.cost_schema import CostForecast
from timecost.services.cost_engine import CostAggregationEngine


DEFAULT_FORECAST_DAYS = 30
TREND_SLOPE_EPSILON = 0.01


class ForecastEngine:
    """Least-squares projection of daily cost over the coming `days`."""

    def __init__(self, costs: CostAggregationEngine) -> None:
        self.costs = costs

    async def forecast(
        self,
        start: datetime,
        end: datetime,
        days: int = DEFAULT_FORECAST_DAYS,
        project: Optional[str] = None,
    ) -> CostForecast:
        summary = await self.costs.cost_summary(start, end, project)
        return project_daily_costs([d.cost for d in summary.daily_costs], [d.hours for d in summary.daily_costs], days)


def project_daily_costs(costs: list[float], hours: list[float], days: int) -> CostForecast:
    n = len(costs)
    if n < 2:
        daily = costs[0] if costs else 0.0
        daily_hours = hours[0] if hours else 0.0
        return CostForecast(
            projected_cost=daily * days,
            projected_hours=daily_hours * days,
            days_remaining=days,
            confidence=0,
            daily_average=daily,
            trend="stable",
        )

    xs = range(1, n + 1)
    sum_x = sum(xs)
    sum_y = sum(costs)
    sum_xy = sum(x * y for x, y in zip(xs, costs))
    sum_xx = sum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    mean = sum_y / n
    mean_hours = sum(hours) / n
    projected_daily = slope * (n + days) + intercept
    projected_cost = max(0.0, (projected_daily + mean) / 2 * days)

    if slope > TREND_SLOPE_EPSILON:
        trend = "increasing"
    elif slope < -TREND_SLOPE_EPSILON:
        trend = "decreasing"
    else:
        trend = "stable"

    if mean > 0:
        std = math.sqrt(sum((y - mean) ** 2 for y in costs) / n)
        confidence = round(min(100.0, max(0.0, 100 - std / mean * 100)))
    else:
        confidence = 0

    return CostForecast(
        projected_cost=projected_cost,
        projected_hours=mean_hours * days,
        days_remaining=days,
        confidence=confidence,
        daily_average=mean,
        trend=trend,
    )
