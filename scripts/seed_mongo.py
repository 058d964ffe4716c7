from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from bson import ObjectId

from timecost.core.config import settings
from timecost.core.security import create_jwt
from timecost.db.mongo import get_mongo_db, close_mongo_client
from timecost.db.mongo_indexes import ensure_indexes
from timecost.schemas.common import Permission


async def seed_users(db):
    now = datetime.utcnow()
    users = [
        {
            "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0a1"),
            "email": "admin@timecost.local",
            "first_name": "Admin",
            "last_name": "User",
            "monthly_salary": 160000.0,
            "position": "Engineering Manager",
            "permissions": [Permission.system_full_access.value],
            "created_at": now,
            "updated_at": now,
        },
        {
            "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0a2"),
            "email": "finance@timecost.local",
            "first_name": "Fiona",
            "last_name": "Finance",
            "monthly_salary": 80000.0,
            "position": "Controller",
            "permissions": [Permission.finance_full_access.value, Permission.time_entry_analytics.value],
            "created_at": now,
            "updated_at": now,
        },
        {
            "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0a3"),
            "email": "dev@timecost.local",
            "first_name": "Alice",
            "last_name": "Smith",
            "monthly_salary": 64000.0,
            "position": "Developer",
            "permissions": [Permission.time_entry_create.value, Permission.time_entry_read.value],
            "created_at": now,
            "updated_at": now,
        },
    ]
    for u in users:
        await db["users"].update_one({"email": u["email"]}, {"$setOnInsert": u}, upsert=True)
    return users


async def seed_time_entries(db, users):
    # A week of completed entries for the developer, two projects on alternating days
    dev_id = str(users[2]["_id"])
    today = datetime.utcnow().replace(hour=9, minute=0, second=0, microsecond=0)
    for i in range(1, 8):
        start = today - timedelta(days=i)
        end = start + timedelta(hours=8)
        projects = ["Apollo"] if i % 2 else ["Apollo", "Hermes"]
        doc = {
            "_id": ObjectId(f"6562a0f0a0a0a0a0a0a0a0e{i}"),
            "user_id": dev_id,
            "projects": projects,
            "tasks": [{"text": "Seeded work", "added_at": start, "duration_minutes": 480}],
            "start_time": start,
            "end_time": end,
            "is_active": False,
            "is_paused": False,
            "paused_duration_ms": 0,
            "last_paused_at": None,
            "duration_minutes": 480,
            "is_overtime": i == 1,
            "source": "manual",
            "version": 0,
            "created_at": end,
            "updated_at": end,
        }
        await db["time_entries"].update_one({"_id": doc["_id"]}, {"$setOnInsert": doc}, upsert=True)


async def seed_budgets(db, users):
    now = datetime.utcnow()
    budget = {
        "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0f1"),
        "project": "Apollo",
        "start_date": now - timedelta(days=14),
        "end_date": now + timedelta(days=16),
        "amount": 50000.0,
        "currency": settings.DEFAULT_CURRENCY,
        "alert_thresholds": {
            "warning": settings.BUDGET_WARNING_THRESHOLD,
            "critical": settings.BUDGET_CRITICAL_THRESHOLD,
        },
        "created_by": str(users[1]["_id"]),
        "created_at": now,
        "updated_at": now,
    }
    await db["budgets"].update_one({"_id": budget["_id"]}, {"$setOnInsert": budget}, upsert=True)


async def main():
    db = get_mongo_db()
    # Ensure indexes before inserting
    await ensure_indexes(db)

    users = await seed_users(db)
    await seed_time_entries(db, users)
    await seed_budgets(db, users)

    print("MongoDB seed completed.")
    for u in users:
        print(f"{u['email']}: {create_jwt({'sub': str(u['_id'])})}")
    close_mongo_client()


if __name__ == "__main__":
    asyncio.run(main())
