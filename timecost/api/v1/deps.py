from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from timecost.db.audit import MongoAuditStore
from timecost.db.budgets import MongoBudgetStore
from timecost.db.day_ends import MongoDayEndStore
from timecost.db.events import MongoEventPublisher
from timecost.db.mongo import get_mongo_db
from timecost.db.time_records import MongoTimeRecordStore
from timecost.db.users import MongoUserDirectory
from timecost.services.audit_trail import AuditTrail
from timecost.services.budget_engine import BudgetEngine
from timecost.services.cost_engine import CostAggregationEngine
from timecost.services.forecast_engine import ForecastEngine
from timecost.services.timer_engine import TimerEngine


def get_audit_trail(db: AsyncIOMotorDatabase = Depends(get_mongo_db)) -> AuditTrail:
    return AuditTrail(MongoAuditStore(db))


def get_timer_engine(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> TimerEngine:
    return TimerEngine(
        MongoTimeRecordStore(db),
        audit,
        MongoEventPublisher(db),
        day_ends=MongoDayEndStore(db),
        background_events=True,
    )


def get_cost_engine(db: AsyncIOMotorDatabase = Depends(get_mongo_db)) -> CostAggregationEngine:
    return CostAggregationEngine(MongoTimeRecordStore(db), MongoUserDirectory(db))


def get_forecast_engine(costs: CostAggregationEngine = Depends(get_cost_engine)) -> ForecastEngine:
    return ForecastEngine(costs)


def get_budget_engine(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    costs: CostAggregationEngine = Depends(get_cost_engine),
) -> BudgetEngine:
    return BudgetEngine(MongoBudgetStore(db), costs)
