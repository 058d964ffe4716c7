from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from timecost.db.codec import from_doc, to_object_id
from timecost.schemas.budget_schema import Budget, BudgetChanges, NewBudget


class MongoBudgetStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["budgets"]

    async def _find_many(self, query: dict) -> list[Budget]:
        cursor = self.collection.find(query).sort("start_date", -1)
        return [from_doc(Budget, doc) async for doc in cursor]

    async def create(self, budget: NewBudget) -> Budget:
        now = datetime.utcnow()
        doc = budget.model_dump()
        doc.update({"created_at": now, "updated_at": now})
        res = await self.collection.insert_one(doc)
        doc["_id"] = res.inserted_id
        return from_doc(Budget, doc)

    async def find_by_id(self, budget_id: str) -> Optional[Budget]:
        oid = to_object_id(budget_id)
        if oid is None:
            return None
        return from_doc(Budget, await self.collection.find_one({"_id": oid}))

    async def find_all(self) -> list[Budget]:
        return await self._find_many({})

    async def find_by_project(self, project: Optional[str]) -> list[Budget]:
        return await self._find_many({"project": project})

    async def find_active(self, at: datetime) -> list[Budget]:
        return await self._find_many({"start_date": {"$lte": at}, "end_date": {"$gte": at}})

    async def update(self, budget_id: str, changes: BudgetChanges) -> Optional[Budget]:
        oid = to_object_id(budget_id)
        if oid is None:
            return None
        fields = changes.model_dump(exclude_unset=True)
        fields["updated_at"] = datetime.utcnow()
        doc = await self.collection.find_one_and_update(
            {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        return from_doc(Budget, doc)

    async def delete(self, budget_id: str) -> bool:
        oid = to_object_id(budget_id)
        if oid is None:
            return False
        res = await self.collection.delete_one({"_id": oid})
        return res.deleted_count > 0
