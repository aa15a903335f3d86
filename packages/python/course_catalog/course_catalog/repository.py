"""Async persistence layer for the course catalog."""

from __future__ import annotations

import math
import re
from typing import Any, List, Optional
from uuid import uuid4

from db_core import MongoSettings, read_with_retry, utcnow
from motor.motor_asyncio import AsyncIOMotorDatabase

from .models import Course, CourseCreate, CoursePage, CoursePublic

COLLECTION_NAME = "courses"

SORT_OPTIONS = {
    "newest": ("created_at", -1),
    "oldest": ("created_at", 1),
    "name": ("name", 1),
    "price-low": ("price", 1),
    "price-high": ("price", -1),
}
DEFAULT_SORT = "newest"
MAX_PAGE_SIZE = 50


def _doc_to_model(doc: dict) -> Course:
    return Course.model_validate(doc)


class CourseRepository:
    def __init__(self, db: AsyncIOMotorDatabase, settings: Optional[MongoSettings] = None):
        self.collection = db[COLLECTION_NAME]
        self.settings = settings or MongoSettings()

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("created_at", -1)])
        await self.collection.create_index([("name", 1)])

    async def get(self, course_id: str) -> Optional[Course]:
        doc = await read_with_retry(
            lambda: self.collection.find_one({"_id": course_id}),
            attempts=self.settings.read_retry_attempts,
            backoff_seconds=self.settings.read_retry_backoff_seconds,
            description="course lookup",
        )
        return _doc_to_model(doc) if doc else None

    async def get_many(self, course_ids: List[str]) -> List[Course]:
        if not course_ids:
            return []
        cursor = self.collection.find({"_id": {"$in": list(course_ids)}})
        docs = [doc async for doc in cursor]
        by_id = {str(doc["_id"]): _doc_to_model(doc) for doc in docs}
        return [by_id[course_id] for course_id in course_ids if course_id in by_id]

    async def create(self, payload: CourseCreate) -> Course:
        course = Course(
            _id=uuid4().hex,
            created_at=utcnow(),
            **payload.model_dump(),
        )
        await self.collection.insert_one(course.model_dump(by_alias=True))
        return course

    async def list_public(
        self,
        *,
        search: str = "",
        sort: str = DEFAULT_SORT,
        page: int = 1,
        limit: int = 10,
    ) -> CoursePage:
        """Paginated catalog listing with case-insensitive name/description search."""

        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        query: dict[str, Any] = {}
        if search:
            pattern = re.escape(search.strip())
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]

        field, direction = SORT_OPTIONS.get(sort, SORT_OPTIONS[DEFAULT_SORT])
        total = await self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort(field, direction)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        items = [CoursePublic.from_course(_doc_to_model(doc)) async for doc in cursor]
        total_pages = math.ceil(total / limit) if total else 0
        return CoursePage(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
