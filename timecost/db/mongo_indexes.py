from motor.motor_asyncio import AsyncIOMotorDatabase
from timecost.db.mongo import get_mongo_db


async def ensure_indexes(db: AsyncIOMotorDatabase | None = None) -> None:
    """Create required MongoDB indexes (idempotent)."""
    if db is None:
        db = get_mongo_db()

    users = db["users"]
    # Unique index on email
    await users.create_index([("email", 1)], unique=True, name="uniq_email")

    time_entries = db["time_entries"]
    # At most one running timer per user
    await time_entries.create_index(
        [("user_id", 1)],
        unique=True,
        partialFilterExpression={"is_active": True},
        name="uniq_active_timer_per_user",
    )
    await time_entries.create_index([("user_id", 1), ("start_time", -1)], name="idx_te_user_start")
    await time_entries.create_index([("is_active", 1), ("start_time", 1)], name="idx_te_active_start")
    await time_entries.create_index([("projects", 1), ("start_time", 1)], name="idx_te_projects_start")

    audit = db["time_entry_audit"]
    await audit.create_index([("user_id", 1), ("timestamp", -1)], name="idx_audit_user_ts")
    await audit.create_index([("entry_id", 1), ("timestamp", -1)], name="idx_audit_entry_ts")
    await audit.create_index([("action", 1), ("timestamp", -1)], name="idx_audit_action_ts")

    day_ends = db["day_ends"]
    await day_ends.create_index([("user_id", 1), ("ended_at", -1)], name="idx_day_end_user")

    budgets = db["budgets"]
    await budgets.create_index([("project", 1), ("start_date", -1)], name="idx_budget_project_start")
    await budgets.create_index([("start_date", 1), ("end_date", 1)], name="idx_budget_range")
    await budgets.create_index([("created_by", 1)], name="idx_budget_created_by")

    notifications = db["notifications"]
    await notifications.create_index([("user_id", 1), ("read", 1), ("created_at", -1)], name="idx_notif_user_read_created")
