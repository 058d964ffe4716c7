from datetime import datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase


class MongoEventPublisher:
    """Writes events to the notifications collection live dashboards read from."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db["notifications"]

    async def publish(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        await self.collection.insert_one({
            "user_id": user_id,
            "type": event_name,
            "payload": payload,
            "read": False,
            "created_at": datetime.utcnow(),
        })


class NullPublisher:
    async def publish(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        return None
