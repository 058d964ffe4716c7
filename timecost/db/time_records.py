from datetime import datetime
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from timecost.core.exceptions import TimerConflictError
from timecost.db.codec import from_doc, to_object_id
from timecost.schemas.time_entry_schema import NewTimeRecord, TimeRecord, TimeRecordChanges


class MongoTimeRecordStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["time_entries"]

    async def _find_many(self, query: dict[str, Any]) -> list[TimeRecord]:
        cursor = self.collection.find(query).sort("start_time", 1)
        return [from_doc(TimeRecord, doc) async for doc in cursor]

    async def create(self, record: NewTimeRecord) -> TimeRecord:
        now = datetime.utcnow()
        doc = record.model_dump()
        doc.update({"version": 0, "created_at": now, "updated_at": now})
        try:
            res = await self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            # uniq_active_timer_per_user
            raise TimerConflictError("User already has an active timer") from exc
        doc["_id"] = res.inserted_id
        return from_doc(TimeRecord, doc)

    async def find_by_id(self, record_id: str) -> Optional[TimeRecord]:
        oid = to_object_id(record_id)
        if oid is None:
            return None
        return from_doc(TimeRecord, await self.collection.find_one({"_id": oid}))

    async def find_active_by_user(self, user_id: str) -> Optional[TimeRecord]:
        doc = await self.collection.find_one({"user_id": user_id, "is_active": True}, sort=[("start_time", -1)])
        return from_doc(TimeRecord, doc)

    async def find_all_active_by_user(self, user_id: str) -> list[TimeRecord]:
        return await self._find_many({"user_id": user_id, "is_active": True})

    async def find_by_user_and_date_range(self, user_id: str, start: datetime, end: datetime) -> list[TimeRecord]:
        return await self._find_many({"user_id": user_id, "start_time": {"$gte": start, "$lte": end}})

    async def find_completed_in_range(self, start: datetime, end: datetime, user_id: Optional[str] = None) -> list[TimeRecord]:
        query: dict[str, Any] = {"is_active": False, "start_time": {"$gte": start, "$lte": end}}
        if user_id:
            query["user_id"] = user_id
        return await self._find_many(query)

    async def find_all_active(self) -> list[TimeRecord]:
        return await self._find_many({"is_active": True})

    async def update(
        self,
        record_id: str,
        changes: TimeRecordChanges,
        *,
        expect_version: Optional[int] = None,
        expect_active: Optional[bool] = None,
        expect_paused: Optional[bool] = None,
    ) -> Optional[TimeRecord]:
        oid = to_object_id(record_id)
        if oid is None:
            return None
        query: dict[str, Any] = {"_id": oid}
        if expect_version is not None:
            query["version"] = expect_version
        if expect_active is not None:
            query["is_active"] = expect_active
        if expect_paused is not None:
            query["is_paused"] = expect_paused
        fields = changes.model_dump(exclude_unset=True)
        fields["updated_at"] = datetime.utcnow()
        doc = await self.collection.find_one_and_update(
            query,
            {"$set": fields, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return from_doc(TimeRecord, doc)

    async def delete(self, record_id: str) -> bool:
        oid = to_object_id(record_id)
        if oid is None:
            return False
        res = await self.collection.delete_one({"_id": oid})
        return res.deleted_count > 0
