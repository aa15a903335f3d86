"""Per-video watch progress, one document per (user, video)."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional
from uuid import uuid4

from db_core import utcnow
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from .models import Course, CourseProgress, VideoProgress

COLLECTION_NAME = "video_progress"
COMPLETION_THRESHOLD = 0.9


def _doc_to_model(doc: dict) -> VideoProgress:
    return VideoProgress.model_validate(doc)


class VideoProgressRepository:
    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.collection = db[COLLECTION_NAME]
        self.clock = clock

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", 1), ("video_id", 1)], unique=True)
        await self.collection.create_index([("user_id", 1), ("course_id", 1)])

    async def record(
        self,
        *,
        user_id: str,
        course_id: str,
        video_id: str,
        watch_time: float,
        total_duration: float,
        is_completed: bool = False,
    ) -> VideoProgress:
        """Upsert progress; watching 90% of a video counts as completing it."""

        now = self.clock()
        completed = is_completed or watch_time >= total_duration * COMPLETION_THRESHOLD
        updates: dict = {
            "course_id": course_id,
            "watch_time": watch_time,
            "total_duration": total_duration,
            "is_completed": completed,
            "last_watched_at": now,
        }
        if completed:
            updates["completed_at"] = now

        doc = await self.collection.find_one_and_update(
            {"user_id": user_id, "video_id": video_id},
            {
                "$set": updates,
                "$setOnInsert": {"_id": uuid4().hex},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_model(doc)

    async def get_for_video(self, user_id: str, video_id: str) -> Optional[VideoProgress]:
        doc = await self.collection.find_one({"user_id": user_id, "video_id": video_id})
        return _doc_to_model(doc) if doc else None

    async def list_for_course(self, user_id: str, course_id: str) -> List[VideoProgress]:
        cursor = self.collection.find({"user_id": user_id, "course_id": course_id})
        return [_doc_to_model(doc) async for doc in cursor]

    async def course_progress(self, user_id: str, course: Course) -> CourseProgress:
        total = len(course.videos)
        if total == 0:
            return CourseProgress(total_videos=0, completed_videos=0, progress_percentage=0)

        video_ids = {video.id for video in course.videos}
        records = await self.list_for_course(user_id, course.id)
        completed = sum(1 for p in records if p.is_completed and p.video_id in video_ids)
        return CourseProgress(
            total_videos=total,
            completed_videos=completed,
            progress_percentage=round(completed / total * 100),
        )
