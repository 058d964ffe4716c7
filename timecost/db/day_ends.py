from datetime import datetime, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from timecost.schemas.time_entry_schema import DayEnd
from timecost.utils.durations import start_of_day


class MongoDayEndStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["day_ends"]

    async def create(self, day_end: DayEnd) -> DayEnd:
        await self.collection.insert_one(day_end.model_dump())
        return day_end

    async def last_for_day(self, user_id: str, day: datetime) -> Optional[DayEnd]:
        start = start_of_day(day)
        doc = await self.collection.find_one(
            {"user_id": user_id, "ended_at": {"$gte": start, "$lt": start + timedelta(days=1)}},
            sort=[("ended_at", -1)],
        )
        if not doc:
            return None
        return DayEnd(user_id=doc["user_id"], ended_at=doc["ended_at"])
