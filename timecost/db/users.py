from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from timecost.db.codec import to_object_id
from timecost.schemas.user_schema import UserProfile


class MongoUserDirectory:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["users"]

    async def resolve(self, user_id: str) -> Optional[UserProfile]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = await self.collection.find_one({"_id": oid})
        if not user:
            return None
        name = " ".join(p for p in (user.get("first_name"), user.get("last_name")) if p).strip()
        return UserProfile(
            id=str(user["_id"]),
            display_name=name or user.get("email", "") or "Unknown",
            email=user.get("email", ""),
            monthly_salary=float(user.get("monthly_salary") or 0.0),
            profile_image=user.get("profile_image"),
            position=user.get("position"),
        )
