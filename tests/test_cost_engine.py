from datetime import datetime, timedelta

import pytest

from timecost.services.cost_engine import hourly_rate, percentage_change, years_before

from conftest import T0, completed_record


SENSITIVE = ("hourly_rate", "monthly_salary", "avg_hourly_rate")


def _assert_no_compensation(payload):
    if isinstance(payload, dict):
        for key, value in payload.items():
            assert key not in SENSITIVE
            _assert_no_compensation(value)
    elif isinstance(payload, list):
        for item in payload:
            _assert_no_compensation(item)


def test_hourly_rate_uses_160_hour_month():
    assert hourly_rate(16000) == 100
    assert hourly_rate(0) == 0


def test_percentage_change_with_zero_previous():
    assert percentage_change(50, 0) == 0
    assert percentage_change(150, 100) == 50


def test_years_before_handles_leap_day():
    assert years_before(datetime(2024, 2, 29), 2) == datetime(2022, 2, 28)


@pytest.mark.asyncio
async def test_even_split_across_projects(costs, store, directory):
    directory.add("u1", 16000)
    await store.create(completed_record("u1", ["A", "B"], 60))

    summary = await costs.cost_summary_privileged(T0 - timedelta(days=1), T0 + timedelta(days=1))
    by_project = {p.project: p for p in summary.project_costs}
    assert by_project["A"].total_hours == pytest.approx(0.5)
    assert by_project["A"].total_cost == pytest.approx(50)
    assert by_project["B"].total_cost == pytest.approx(50)
    assert summary.total_cost == pytest.approx(100)
    assert summary.total_hours == pytest.approx(1)
    assert by_project["A"].developers[0].hourly_rate == 100
    assert by_project["A"].avg_hourly_rate == 100


@pytest.mark.asyncio
async def test_summary_series_and_performers(costs, store, directory):
    directory.add("u1", 16000)
    directory.add("u2", 32000)
    await store.create(completed_record("u1", ["A"], 120, start=T0))
    await store.create(completed_record("u2", ["A"], 60, start=T0 + timedelta(days=1)))
    await store.create(completed_record("u2", ["B"], 60, start=T0 + timedelta(days=30), is_overtime=True))

    summary = await costs.cost_summary(T0 - timedelta(days=1), T0 + timedelta(days=60))
    assert [d.date for d in summary.daily_costs] == ["2024-03-04", "2024-03-05", "2024-04-03"]
    assert [m.month for m in summary.monthly_costs] == ["2024-03", "2024-04"]
    assert summary.monthly_costs[0].cost == pytest.approx(400)
    assert [p.user_id for p in summary.top_performers] == ["u1", "u2"]
    assert summary.top_performers[1].project_count == 2
    assert summary.overtime_breakdown.overtime.cost == pytest.approx(200)
    assert summary.overtime_breakdown.regular.cost == pytest.approx(400)
    assert summary.overtime_breakdown.overtime_percentage == pytest.approx(200 / 600 * 100)
    a = next(p for p in summary.project_costs if p.project == "A")
    assert a.avg_cost_per_hour == pytest.approx(400 / 3)
    _assert_no_compensation(summary.model_dump())


@pytest.mark.asyncio
async def test_project_filter_and_top_performer_limit(costs, store, directory):
    for i in range(25):
        directory.add(f"u{i}", 16000)
        await store.create(completed_record(f"u{i}", ["A"], 60 + i))
    await store.create(completed_record("u0", ["B"], 60))

    summary = await costs.cost_summary(T0, T0 + timedelta(days=1), project="A")
    assert len(summary.top_performers) == 20
    assert summary.top_performers[0].user_id == "u24"
    assert {p.project for p in summary.project_costs} == {"A"}


@pytest.mark.asyncio
async def test_unresolvable_and_failing_users_are_skipped(costs, store, directory):
    directory.add("u1", 16000)
    directory.add("flaky", 16000)
    directory.broken.add("flaky")
    await store.create(completed_record("u1", ["A"], 60))
    await store.create(completed_record("ghost", ["A"], 60))
    await store.create(completed_record("flaky", ["A"], 60))

    summary = await costs.cost_summary(T0, T0 + timedelta(days=1))
    assert summary.total_cost == pytest.approx(100)
    assert [p.user_id for p in summary.top_performers] == ["u1"]


@pytest.mark.asyncio
async def test_empty_summary(costs):
    summary = await costs.cost_summary(T0, T0 + timedelta(days=1))
    assert summary.total_cost == 0
    assert summary.project_costs == []
    _assert_no_compensation(summary.model_dump())


@pytest.mark.asyncio
async def test_live_cost(costs, timer, directory, clock):
    directory.add("u1", 16000)
    directory.add("u2", 32000)
    await timer.start("u1", ["A"], "")
    await timer.start("u2", ["A", "B"], "")
    clock.advance(minutes=30)

    live = await costs.live_cost_privileged()
    assert live.total_burn_rate == pytest.approx(300)
    assert live.total_live_cost == pytest.approx(150)
    assert live.active_hours == pytest.approx(1)
    assert [d.user_id for d in live.active_developers] == ["u2", "u1"]
    assert live.active_developers[0].monthly_salary == 32000
    a = next(p for p in live.project_costs if p.project == "A")
    assert a.developers == 2
    assert a.burn_rate == pytest.approx(300)
    assert live.project_costs[0].project == "A"

    safe = await costs.live_cost()
    assert safe.total_live_cost == pytest.approx(150)
    _assert_no_compensation(safe.model_dump())


@pytest.mark.asyncio
async def test_live_cost_empty(costs, clock):
    live = await costs.live_cost()
    assert live.total_burn_rate == 0
    assert live.active_developers == []
    assert live.timestamp == clock.now
    _assert_no_compensation(live.model_dump())


@pytest.mark.asyncio
async def test_project_detail(costs, store, directory):
    directory.add("u1", 16000)
    await store.create(completed_record("u1", ["A", "B"], 120))

    detail = await costs.project_detail("A", T0, T0 + timedelta(days=1))
    assert detail.total_hours == pytest.approx(1)
    assert detail.total_cost == pytest.approx(100)
    assert detail.avg_cost_per_hour == pytest.approx(100)
    _assert_no_compensation(detail.model_dump())

    privileged = await costs.project_detail_privileged("A", T0, T0 + timedelta(days=1))
    assert privileged.avg_hourly_rate == 100
    assert await costs.project_detail("missing", T0, T0 + timedelta(days=1)) is None


@pytest.mark.asyncio
async def test_project_names_covers_two_years(costs, store, clock):
    clock.now = T0 + timedelta(days=1)
    await store.create(completed_record("u1", ["Zeta", "Alpha"], 10))
    await store.create(completed_record("u1", ["Old"], 10, start=T0 - timedelta(days=800)))
    assert await costs.project_names() == ["Alpha", "Zeta"]


@pytest.mark.asyncio
async def test_period_comparison(costs, store, directory):
    directory.add("u1", 16000)
    await store.create(completed_record("u1", ["A"], 60, start=T0 - timedelta(days=10)))
    await store.create(completed_record("u1", ["A"], 120, start=T0 + timedelta(days=1)))

    comparison = await costs.period_comparison(
        T0, T0 + timedelta(days=7), T0 - timedelta(days=14), T0,
    )
    assert comparison.current.cost == pytest.approx(200)
    assert comparison.previous.cost == pytest.approx(100)
    assert comparison.change.cost == pytest.approx(100)
    assert comparison.change.cost_percentage == pytest.approx(100)

    empty_previous = await costs.period_comparison(
        T0, T0 + timedelta(days=7), T0 - timedelta(days=100), T0 - timedelta(days=90),
    )
    assert empty_previous.change.cost_percentage == 0


@pytest.mark.asyncio
async def test_overtime_breakdown(costs, store, directory):
    directory.add("u1", 16000)
    await store.create(completed_record("u1", ["A"], 60, is_overtime=True))
    breakdown = await costs.overtime_breakdown(T0, T0 + timedelta(days=1))
    assert breakdown.overtime.hours == pytest.approx(1)
    assert breakdown.overtime_percentage == pytest.approx(100)
