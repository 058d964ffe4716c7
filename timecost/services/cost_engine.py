import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from timecost.schemas.cost_schema import (
    CostHours,
    DailyCost,
    MonthlyCost,
    OvertimeBreakdown,
    PeriodChange,
    PeriodComparison,
    PrivilegedActiveDeveloper,
    PrivilegedCostSummary,
    PrivilegedDeveloperCost,
    PrivilegedLiveCostData,
    PrivilegedProjectCostSummary,
    PrivilegedTopPerformer,
    ProjectLiveCost,
    SafeCostSummary,
    SafeLiveCostData,
    SafeProjectCostSummary,
)
from timecost.schemas.time_entry_schema import TimeRecord
from timecost.schemas.user_schema import UserProfile
from timecost.services.ports import TimeRecordStore, UserDirectory
from timecost.services.privilege_view import (
    to_safe_cost_summary,
    to_safe_live_cost,
    to_safe_project_summary,
)
from timecost.utils.durations import live_minutes


logger = logging.getLogger(__name__)

HOURS_PER_MONTH = 160
TOP_PERFORMERS_LIMIT = 20
PROJECT_NAMES_LOOKBACK_YEARS = 2


def hourly_rate(monthly_salary: float) -> float:
    return (monthly_salary or 0) / HOURS_PER_MONTH


def percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def years_before(dt: datetime, years: int) -> datetime:
    try:
        return dt.replace(year=dt.year - years)
    except ValueError:  # Feb 29
        return dt.replace(year=dt.year - years, day=28)


class CostAggregationEngine:
    """Turns time records and salaries into cost figures.

    Every computation is done on privileged shapes; the public methods return
    the safe projection. Callers decide which variant a user may see.
    """

    def __init__(
        self,
        store: TimeRecordStore,
        directory: UserDirectory,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.store = store
        self.directory = directory
        self.clock = clock

    async def _resolve_users(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        users: dict[str, UserProfile] = {}
        for user_id in dict.fromkeys(user_ids):
            try:
                profile = await self.directory.resolve(user_id)
            except Exception as exc:
                logger.warning("Could not resolve user %s: %s", user_id, exc)
                continue
            if profile is not None:
                users[user_id] = profile
        return users

    async def _completed(self, start: datetime, end: datetime, project: Optional[str] = None) -> list[TimeRecord]:
        records = await self.store.find_completed_in_range(start, end)
        if project:
            records = [r for r in records if project in r.projects]
        return records

    # ---------------------- Live ----------------------

    async def live_cost_privileged(self) -> PrivilegedLiveCostData:
        now = self.clock()
        active = await self.store.find_all_active()
        if not active:
            return PrivilegedLiveCostData(timestamp=now)

        users = await self._resolve_users(r.user_id for r in active)
        developers: list[PrivilegedActiveDeveloper] = []
        by_project: dict[str, dict] = {}

        for record in active:
            user = users.get(record.user_id)
            if user is None:
                continue
            rate = hourly_rate(user.monthly_salary)
            minutes = live_minutes(record, now)
            cost = minutes / 60 * rate
            developers.append(PrivilegedActiveDeveloper(
                user_id=user.id,
                user_name=user.display_name,
                user_email=user.email,
                profile_image=user.profile_image,
                position=user.position,
                projects=list(record.projects),
                active_minutes=minutes,
                live_cost=cost,
                start_time=record.start_time,
                is_paused=record.is_paused,
                monthly_salary=user.monthly_salary,
                hourly_rate=rate,
            ))
            # A running timer burns its full rate on each of its projects
            for project in record.projects:
                agg = by_project.setdefault(project, {"cost": 0.0, "burn": 0.0, "devs": set(), "minutes": 0})
                agg["cost"] += cost
                agg["burn"] += rate
                agg["devs"].add(record.user_id)
                agg["minutes"] += minutes

        project_costs = [
            ProjectLiveCost(
                project=name,
                live_cost=agg["cost"],
                burn_rate=agg["burn"],
                developers=len(agg["devs"]),
                active_minutes=agg["minutes"],
            )
            for name, agg in by_project.items()
        ]
        project_costs.sort(key=lambda p: p.live_cost, reverse=True)
        developers.sort(key=lambda d: d.live_cost, reverse=True)

        return PrivilegedLiveCostData(
            total_burn_rate=sum(d.hourly_rate for d in developers),
            total_live_cost=sum(d.live_cost for d in developers),
            active_hours=sum(d.active_minutes for d in developers) / 60,
            active_developers=developers,
            project_costs=project_costs,
            timestamp=now,
        )

    async def live_cost(self) -> SafeLiveCostData:
        return to_safe_live_cost(await self.live_cost_privileged())

    # ---------------------- Historical ----------------------

    async def cost_summary_privileged(
        self, start: datetime, end: datetime, project: Optional[str] = None
    ) -> PrivilegedCostSummary:
        records = await self._completed(start, end, project)
        if not records:
            return PrivilegedCostSummary()

        users = await self._resolve_users(r.user_id for r in records)
        projects: dict[str, dict] = {}
        per_user: dict[str, dict] = {}
        daily: dict[str, CostHours] = {}
        overtime = OvertimeBreakdown()

        for record in records:
            user = users.get(record.user_id)
            if user is None:
                continue
            rate = hourly_rate(user.monthly_salary)
            hours = record.duration_minutes / 60
            cost = hours * rate

            if record.projects:
                share = len(record.projects)
                for name in record.projects:
                    agg = projects.setdefault(name, {"cost": 0.0, "hours": 0.0, "devs": {}})
                    agg["cost"] += cost / share
                    agg["hours"] += hours / share
                    dev = agg["devs"].setdefault(record.user_id, {"cost": 0.0, "hours": 0.0, "rate": rate})
                    dev["cost"] += cost / share
                    dev["hours"] += hours / share

            u = per_user.setdefault(record.user_id, {"cost": 0.0, "hours": 0.0, "rate": rate, "projects": []})
            u["cost"] += cost
            u["hours"] += hours
            for name in record.projects:
                if name not in u["projects"]:
                    u["projects"].append(name)

            day = daily.setdefault(record.start_time.strftime("%Y-%m-%d"), CostHours())
            day.cost += cost
            day.hours += hours

            bucket = overtime.overtime if record.is_overtime else overtime.regular
            bucket.cost += cost
            bucket.hours += hours

        project_costs = [self._project_summary(name, agg, users) for name, agg in projects.items()]
        project_costs.sort(key=lambda p: p.total_cost, reverse=True)

        performers = []
        for user_id, agg in per_user.items():
            user = users[user_id]
            performers.append(PrivilegedTopPerformer(
                user_id=user_id,
                user_name=user.display_name,
                user_email=user.email,
                profile_image=user.profile_image,
                position=user.position,
                total_hours=agg["hours"],
                total_cost=agg["cost"],
                project_count=len(agg["projects"]),
                projects=agg["projects"],
                hourly_rate=agg["rate"],
            ))
        performers.sort(key=lambda p: p.total_hours, reverse=True)

        daily_costs = [DailyCost(date=k, cost=v.cost, hours=v.hours) for k, v in sorted(daily.items())]
        monthly: dict[str, CostHours] = {}
        for d in daily_costs:
            m = monthly.setdefault(d.date[:7], CostHours())
            m.cost += d.cost
            m.hours += d.hours
        monthly_costs = [MonthlyCost(month=k, cost=v.cost, hours=v.hours) for k, v in sorted(monthly.items())]

        total_cost = sum(u["cost"] for u in per_user.values())
        total_hours = sum(u["hours"] for u in per_user.values())
        if total_cost > 0:
            overtime.overtime_percentage = overtime.overtime.cost / total_cost * 100

        return PrivilegedCostSummary(
            total_cost=total_cost,
            total_hours=total_hours,
            project_costs=project_costs,
            top_performers=performers[:TOP_PERFORMERS_LIMIT],
            daily_costs=daily_costs,
            monthly_costs=monthly_costs,
            overtime_breakdown=overtime,
        )

    @staticmethod
    def _project_summary(name: str, agg: dict, users: dict[str, UserProfile]) -> PrivilegedProjectCostSummary:
        developers = [
            PrivilegedDeveloperCost(
                user_id=user_id,
                user_name=users[user_id].display_name if user_id in users else "Unknown",
                hours=dev["hours"],
                cost=dev["cost"],
                hourly_rate=dev["rate"],
            )
            for user_id, dev in agg["devs"].items()
        ]
        developers.sort(key=lambda d: d.cost, reverse=True)
        avg_rate = sum(d.hourly_rate for d in developers) / len(developers) if developers else 0.0
        return PrivilegedProjectCostSummary(
            project=name,
            total_cost=agg["cost"],
            total_hours=agg["hours"],
            developers=developers,
            avg_hourly_rate=avg_rate,
        )

    async def cost_summary(self, start: datetime, end: datetime, project: Optional[str] = None) -> SafeCostSummary:
        return to_safe_cost_summary(await self.cost_summary_privileged(start, end, project))

    async def project_detail_privileged(
        self, project: str, start: datetime, end: datetime
    ) -> Optional[PrivilegedProjectCostSummary]:
        records = await self._completed(start, end, project)
        if not records:
            return None
        users = await self._resolve_users(r.user_id for r in records)
        agg: dict = {"cost": 0.0, "hours": 0.0, "devs": {}}
        for record in records:
            user = users.get(record.user_id)
            if user is None:
                continue
            rate = hourly_rate(user.monthly_salary)
            share = len(record.projects)
            hours = record.duration_minutes / 60 / share
            cost = hours * rate
            agg["cost"] += cost
            agg["hours"] += hours
            dev = agg["devs"].setdefault(record.user_id, {"cost": 0.0, "hours": 0.0, "rate": rate})
            dev["cost"] += cost
            dev["hours"] += hours
        return self._project_summary(project, agg, users)

    async def project_detail(self, project: str, start: datetime, end: datetime) -> Optional[SafeProjectCostSummary]:
        detail = await self.project_detail_privileged(project, start, end)
        return to_safe_project_summary(detail) if detail else None

    async def project_names(self) -> list[str]:
        now = self.clock()
        records = await self.store.find_completed_in_range(years_before(now, PROJECT_NAMES_LOOKBACK_YEARS), now)
        return sorted({p for r in records for p in r.projects})

    async def overtime_breakdown(self, start: datetime, end: datetime, project: Optional[str] = None) -> OvertimeBreakdown:
        summary = await self.cost_summary_privileged(start, end, project)
        return summary.overtime_breakdown

    async def period_comparison(
        self,
        current_start: datetime,
        current_end: datetime,
        previous_start: datetime,
        previous_end: datetime,
        project: Optional[str] = None,
    ) -> PeriodComparison:
        current = await self.cost_summary_privileged(current_start, current_end, project)
        previous = await self.cost_summary_privileged(previous_start, previous_end, project)
        return PeriodComparison(
            current=CostHours(cost=current.total_cost, hours=current.total_hours),
            previous=CostHours(cost=previous.total_cost, hours=previous.total_hours),
            change=PeriodChange(
                cost=current.total_cost - previous.total_cost,
                hours=current.total_hours - previous.total_hours,
                cost_percentage=percentage_change(current.total_cost, previous.total_cost),
                hours_percentage=percentage_change(current.total_hours, previous.total_hours),
            ),
        )
