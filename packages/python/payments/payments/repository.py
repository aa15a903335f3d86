"""Async persistence for payment records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, List, Optional

from db_core import MongoSettings, ensure_utc, read_with_retry, utcnow
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from .models import PaymentRecord, PaymentStatus, Receipt

COLLECTION_NAME = "transactions"


def _doc_to_model(doc: dict) -> PaymentRecord:
    return PaymentRecord.model_validate(doc)


class PaymentRepository:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        settings: Optional[MongoSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.collection = db[COLLECTION_NAME]
        self.settings = settings or MongoSettings()
        self.clock = clock

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("order_id", ASCENDING)], unique=True)
        await self.collection.create_index(
            [("course_id", ASCENDING), ("purchaser_email", ASCENDING)],
            unique=True,
            partialFilterExpression={"status": PaymentStatus.PENDING.value},
            name="one_pending_checkout_per_purchaser",
        )
        await self.collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    # ---------------------------------------------------------
    # GET
    # ---------------------------------------------------------
    async def _find_one(self, query: dict, description: str) -> Optional[PaymentRecord]:
        doc = await read_with_retry(
            lambda: self.collection.find_one(query),
            attempts=self.settings.read_retry_attempts,
            backoff_seconds=self.settings.read_retry_backoff_seconds,
            description=description,
        )
        return _doc_to_model(doc) if doc else None

    async def get(self, record_id: str) -> Optional[PaymentRecord]:
        return await self._find_one({"_id": record_id}, "payment lookup")

    async def find_by_order_id(self, order_id: str) -> Optional[PaymentRecord]:
        return await self._find_one({"order_id": order_id}, "payment lookup by order")

    async def find_pending(self, course_id: str, purchaser_email: str) -> Optional[PaymentRecord]:
        return await self._find_one(
            {
                "course_id": course_id,
                "purchaser_email": purchaser_email,
                "status": PaymentStatus.PENDING.value,
            },
            "pending payment lookup",
        )

    async def list_for_user(self, user_id: str, transaction_ids: List[str]) -> List[PaymentRecord]:
        """Records owned by the user, either directly or through the user's transaction list."""

        query = {"$or": [{"user_id": user_id}, {"_id": {"$in": list(transaction_ids)}}]}
        cursor = self.collection.find(query).sort("created_at", DESCENDING)
        return [_doc_to_model(doc) async for doc in cursor]

    async def find_orphan_candidates(self, older_than: datetime) -> List[PaymentRecord]:
        """Pending records that already carry a payment id and have not moved since ``older_than``."""

        cursor = self.collection.find(
            {"status": PaymentStatus.PENDING.value, "payment_id": {"$ne": None}}
        )
        records = [_doc_to_model(doc) async for doc in cursor]
        return [record for record in records if record.updated_at <= ensure_utc(older_than)]

    # ---------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------
    async def insert(self, record: PaymentRecord) -> PaymentRecord:
        await self.collection.insert_one(record.model_dump(by_alias=True, mode="python"))
        return record

    async def attach_payment_id(self, order_id: str, payment_id: str) -> Optional[PaymentRecord]:
        """Stamp the payment id on a still-pending record; None when it is no longer pending."""

        doc = await self.collection.find_one_and_update(
            {"order_id": order_id, "status": PaymentStatus.PENDING.value},
            {"$set": {"payment_id": payment_id, "updated_at": self.clock()}},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_model(doc) if doc else None

    async def transition(
        self,
        order_id: str,
        *,
        to_status: PaymentStatus,
        fields: dict[str, Any],
    ) -> Optional[PaymentRecord]:
        """
        Compare-and-swap ``pending -> to_status``.

        Returns the updated record, or None when the record was not pending
        (another invocation already moved it).
        """

        doc = await self.collection.find_one_and_update(
            {"order_id": order_id, "status": PaymentStatus.PENDING.value},
            {"$set": {**fields, "status": to_status.value, "updated_at": self.clock()}},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_model(doc) if doc else None

    async def set_receipt(self, record_id: str, receipt: Receipt) -> None:
        await self.collection.update_one(
            {"_id": record_id},
            {"$set": {"receipt": receipt.model_dump(), "updated_at": self.clock()}},
        )
