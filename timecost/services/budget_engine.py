import logging
from datetime import datetime
from typing import Any, Callable, Optional

from timecost.core.config import settings
from timecost.core.exceptions import AuthorizationError, ValidationError
from timecost.core.rbac import AuthContext, can_override_budget, has_permission
from timecost.schemas.budget_schema import (
    AlertThresholds,
    Budget,
    BudgetChanges,
    BudgetComparison,
    BudgetIn,
    BudgetUpdate,
    NewBudget,
)
from timecost.schemas.common import Permission
from timecost.services.cost_engine import CostAggregationEngine
from timecost.services.ports import BudgetStore
from timecost.utils.durations import ceil_days, elapsed_ms


logger = logging.getLogger(__name__)


def _validate(start_date: datetime, end_date: datetime, amount: float) -> None:
    if start_date >= end_date:
        raise ValidationError("start_date must be before end_date")
    if amount <= 0:
        raise ValidationError("amount must be greater than 0")


def _can_modify(budget: Budget, auth: AuthContext) -> bool:
    return budget.created_by == auth.user_id or can_override_budget(auth)


def _can_read(budget: Budget, auth: AuthContext) -> bool:
    return _can_modify(budget, auth) or has_permission(auth, Permission.finance_view)


def alert_level(utilization: float, thresholds: AlertThresholds) -> str:
    if utilization >= thresholds.critical:
        return "critical"
    if utilization >= thresholds.warning:
        return "warning"
    return "ok"


class BudgetEngine:
    """Budgets and their comparison against actual labor cost.

    Only the creator, or a holder of an override permission, may modify or
    delete a budget. Reads also accept `finance:view`.
    """

    def __init__(
        self,
        store: BudgetStore,
        costs: CostAggregationEngine,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.store = store
        self.costs = costs
        self.clock = clock

    async def create(self, data: BudgetIn, created_by: str) -> Budget:
        _validate(data.start_date, data.end_date, data.amount)
        thresholds = AlertThresholds(**(data.alert_thresholds.model_dump(exclude_none=True) if data.alert_thresholds else {}))
        budget = await self.store.create(NewBudget(
            project=(data.project or "").strip() or None,
            start_date=data.start_date,
            end_date=data.end_date,
            amount=data.amount,
            currency=data.currency or settings.DEFAULT_CURRENCY,
            alert_thresholds=thresholds,
            created_by=created_by,
        ))
        logger.info("Budget %s created by %s", budget.id, created_by)
        return budget

    async def update(self, budget_id: str, data: BudgetUpdate, auth: AuthContext) -> Optional[Budget]:
        budget = await self.store.find_by_id(budget_id)
        if budget is None:
            return None
        if not _can_modify(budget, auth):
            raise AuthorizationError("Not authorized to modify this budget")

        fields: dict[str, Any] = {}
        for name in ("start_date", "end_date", "amount", "currency"):
            value = getattr(data, name)
            if value is not None:
                fields[name] = value
        # project=None explicitly turns the budget into a team-wide one
        if "project" in data.model_fields_set:
            fields["project"] = (data.project or "").strip() or None
        if data.alert_thresholds is not None:
            merged = budget.alert_thresholds.model_dump()
            merged.update(data.alert_thresholds.model_dump(exclude_none=True))
            fields["alert_thresholds"] = AlertThresholds(**merged)

        _validate(
            fields.get("start_date", budget.start_date),
            fields.get("end_date", budget.end_date),
            fields.get("amount", budget.amount),
        )
        if not fields:
            return budget
        return await self.store.update(budget_id, BudgetChanges(**fields))

    async def delete(self, budget_id: str, auth: AuthContext) -> bool:
        budget = await self.store.find_by_id(budget_id)
        if budget is None:
            return False
        if not _can_modify(budget, auth):
            raise AuthorizationError("Not authorized to delete this budget")
        deleted = await self.store.delete(budget_id)
        if deleted:
            logger.info("Budget %s deleted by %s", budget_id, auth.user_id)
        return deleted

    async def get(self, budget_id: str, auth: AuthContext) -> Optional[Budget]:
        budget = await self.store.find_by_id(budget_id)
        if budget is None:
            return None
        if not _can_read(budget, auth):
            raise AuthorizationError("Not authorized to view this budget")
        return budget

    async def list_all(self, auth: AuthContext) -> list[Budget]:
        return [b for b in await self.store.find_all() if _can_read(b, auth)]

    async def list_by_project(self, project: Optional[str], auth: AuthContext) -> list[Budget]:
        return [b for b in await self.store.find_by_project(project) if _can_read(b, auth)]

    async def list_active(self, auth: AuthContext, at: Optional[datetime] = None) -> list[Budget]:
        return [b for b in await self.store.find_active(at or self.clock()) if _can_read(b, auth)]

    async def compare(self, budget_id: str, auth: AuthContext) -> Optional[BudgetComparison]:
        budget = await self.get(budget_id, auth)
        if budget is None:
            return None
        return await self._compare(budget)

    async def compare_all(self, auth: AuthContext, at: Optional[datetime] = None) -> list[BudgetComparison]:
        return [await self._compare(b) for b in await self.list_active(auth, at)]

    async def _compare(self, budget: Budget) -> BudgetComparison:
        """Actual cost so far and the cost projected over the whole period.

        Day counts are whole days rounded up. `total_days` is at least 1 and
        `days_elapsed` is kept between 1 and `total_days`, so a budget whose
        period has ended projects exactly its actual cost and one that has not
        started yet projects from a single day. An unclamped elapsed/total
        ratio would instead scale a finished budget's cost down and an upcoming
        one's up, and divide by zero on a same-day period.
        """
        summary = await self.costs.cost_summary(budget.start_date, budget.end_date, budget.project)
        if budget.project:
            row = next((p for p in summary.project_costs if p.project == budget.project), None)
            actual_cost = row.total_cost if row else 0.0
            actual_hours = row.total_hours if row else 0.0
        else:
            actual_cost = summary.total_cost
            actual_hours = summary.total_hours

        now = self.clock()
        total_days = max(1, ceil_days(elapsed_ms(budget.start_date, budget.end_date)))
        days_elapsed = min(total_days, max(1, ceil_days(elapsed_ms(budget.start_date, now))))
        remaining_days = max(0, ceil_days(elapsed_ms(now, budget.end_date)))

        utilization = actual_cost / budget.amount * 100 if budget.amount > 0 else 0.0
        projected_cost = actual_cost / days_elapsed * total_days

        return BudgetComparison(
            budget=budget,
            actual_cost=actual_cost,
            actual_hours=actual_hours,
            remaining_budget=budget.amount - actual_cost,
            remaining_days=remaining_days,
            utilization_percentage=utilization,
            alert_level=alert_level(utilization, budget.alert_thresholds),
            projected_cost=projected_cost,
            projected_overspend=projected_cost - budget.amount,
        )
