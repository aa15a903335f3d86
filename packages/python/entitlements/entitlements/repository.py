from typing import List, Optional

from db_core import MongoSettings, read_with_retry
from motor.motor_asyncio import AsyncIOMotorDatabase

from .models import Entitlement

USERS_COLLECTION = "users"


class EntitlementsRepository:
    """Entitlements live embedded in user documents; this repository owns that array."""

    def __init__(self, db: AsyncIOMotorDatabase, settings: Optional[MongoSettings] = None):
        self.collection = db[USERS_COLLECTION]
        self.settings = settings or MongoSettings()

    # ---------------------------------------------------------
    # GET
    # ---------------------------------------------------------
    async def get_for_user(self, user_id: str) -> List[Entitlement]:
        raw = await read_with_retry(
            lambda: self.collection.find_one({"_id": user_id}, {"entitlements": 1}),
            attempts=self.settings.read_retry_attempts,
            backoff_seconds=self.settings.read_retry_backoff_seconds,
            description="entitlements lookup",
        )
        if not raw:
            return []
        return [Entitlement.model_validate(item) for item in raw.get("entitlements") or []]

    async def get(self, user_id: str, course_id: str) -> Optional[Entitlement]:
        for entitlement in await self.get_for_user(user_id):
            if entitlement.course_id == course_id:
                return entitlement
        return None

    # ---------------------------------------------------------
    # GRANT (idempotent per course)
    # ---------------------------------------------------------
    async def grant(self, user_id: str, entitlement: Entitlement) -> bool:
        """
        Append the entitlement unless the user already holds one for the course.

        The existence check and the push are a single conditional update, so
        concurrent grants for the same course cannot produce duplicates.
        Returns True when this call added the entitlement.
        """

        result = await self.collection.update_one(
            {"_id": user_id, "entitlements.course_id": {"$ne": entitlement.course_id}},
            {"$push": {"entitlements": entitlement.to_document()}},
        )
        return result.modified_count == 1

    # ---------------------------------------------------------
    # TRANSACTION HISTORY
    # ---------------------------------------------------------
    async def attach_transaction(self, user_id: str, transaction_id: str) -> None:
        await self.collection.update_one(
            {"_id": user_id},
            {"$addToSet": {"transactions": transaction_id}},
        )

    async def holder_of_transaction(self, transaction_id: str) -> Optional[str]:
        raw = await self.collection.find_one({"transactions": transaction_id}, {"_id": 1})
        return str(raw["_id"]) if raw else None
