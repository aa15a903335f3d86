"""Async persistence for user documents."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Tuple
from uuid import uuid4

from db_core import MongoSettings, read_with_retry, utcnow
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .models import User

COLLECTION_NAME = "users"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _doc_to_model(doc: dict) -> User:
    return User.model_validate(doc)


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase, settings: Optional[MongoSettings] = None):
        self.collection = db[COLLECTION_NAME]
        self.settings = settings or MongoSettings()

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        await self.collection.create_index(
            [("mobile_number", ASCENDING)],
            unique=True,
            partialFilterExpression={"mobile_number": {"$type": "string"}},
        )
        await self.collection.create_index([("transactions", ASCENDING)])

    # ---------------------------------------------------------
    # GET
    # ---------------------------------------------------------
    async def _find_one(self, query: dict, description: str) -> Optional[User]:
        doc = await read_with_retry(
            lambda: self.collection.find_one(query),
            attempts=self.settings.read_retry_attempts,
            backoff_seconds=self.settings.read_retry_backoff_seconds,
            description=description,
        )
        return _doc_to_model(doc) if doc else None

    async def get(self, user_id: str) -> Optional[User]:
        return await self._find_one({"_id": user_id}, "user lookup")

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._find_one({"email": normalize_email(email)}, "user lookup by email")

    async def find_by_mobile(self, mobile_number: str) -> Optional[User]:
        return await self._find_one({"mobile_number": mobile_number.strip()}, "user lookup by mobile")

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Look a user up by email when the identifier contains '@', else by mobile number."""

        identifier = identifier.strip()
        if "@" in identifier:
            return await self.find_by_email(identifier)
        return await self.find_by_mobile(identifier)

    # ---------------------------------------------------------
    # CREATE
    # ---------------------------------------------------------
    async def create(
        self,
        *,
        first_name: str,
        email: str,
        password_hash: str,
        last_name: str = "",
        mobile_number: Optional[str] = None,
        is_verified: bool = False,
    ) -> User:
        user = User(
            _id=uuid4().hex,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=normalize_email(email),
            mobile_number=mobile_number.strip() if mobile_number else None,
            password_hash=password_hash,
            is_verified=is_verified,
            created_at=utcnow(),
        )
        await self.collection.insert_one(user.model_dump(by_alias=True))
        return user

    async def get_or_create_by_email(
        self,
        email: str,
        *,
        first_name: str,
        password_hash: str,
        is_verified: bool = False,
    ) -> Tuple[User, bool]:
        """
        Return the user owning ``email``, inserting one when none exists.

        The unique email index decides races between concurrent callers; the
        second return value is True only for the caller whose insert won.
        """

        existing = await self.find_by_email(email)
        if existing is not None:
            return existing, False

        try:
            user = await self.create(
                first_name=first_name,
                email=email,
                password_hash=password_hash,
                is_verified=is_verified,
            )
        except DuplicateKeyError:
            existing = await self.find_by_email(email)
            if existing is None:
                raise
            return existing, False
        return user, True

    # ---------------------------------------------------------
    # UPDATE
    # ---------------------------------------------------------
    async def _set(self, user_id: str, fields: dict[str, Any]) -> Optional[User]:
        doc = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_model(doc) if doc else None

    async def set_otp(self, user_id: str, otp_hash: str, generated_at: datetime) -> None:
        await self._set(user_id, {"otp_hash": otp_hash, "otp_generated_at": generated_at})

    async def clear_otp(self, user_id: str) -> None:
        await self._set(user_id, {"otp_hash": None, "otp_generated_at": None})

    async def mark_verified(self, user_id: str) -> Optional[User]:
        return await self._set(
            user_id,
            {"is_verified": True, "otp_hash": None, "otp_generated_at": None},
        )

    async def set_password(self, user_id: str, password_hash: str) -> None:
        await self._set(user_id, {"password_hash": password_hash})

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> Optional[User]:
        if not fields:
            return await self.get(user_id)
        return await self._set(user_id, fields)
