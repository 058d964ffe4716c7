from datetime import datetime
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from timecost.db.codec import from_doc
from timecost.schemas.audit_schema import AuditAction, AuditEntry


class MongoAuditStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["time_entry_audit"]

    async def append(self, entry: AuditEntry) -> AuditEntry:
        doc = entry.model_dump(exclude={"id"})
        doc["action"] = entry.action.value
        res = await self.collection.insert_one(doc)
        return entry.model_copy(update={"id": str(res.inserted_id)})

    async def find(
        self,
        *,
        user_id: Optional[str] = None,
        entry_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AuditEntry]:
        query: dict[str, Any] = {}
        if user_id:
            query["user_id"] = user_id
        if entry_id:
            query["entry_id"] = entry_id
        if action is not None:
            query["action"] = action.value
        if start or end:
            query["timestamp"] = {}
            if start:
                query["timestamp"]["$gte"] = start
            if end:
                query["timestamp"]["$lte"] = end
        cursor = self.collection.find(query).sort("timestamp", -1)
        return [from_doc(AuditEntry, doc) async for doc in cursor]
