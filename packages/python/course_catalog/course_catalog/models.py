"""Pydantic models describing courses, their videos and viewer progress."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from db_core import UtcDatetime, utcnow
from entitlements import AccessTier
from pydantic import BaseModel, ConfigDict, Field


class Currency(str, Enum):
    DOLLAR = "dollar"
    RUPEE = "rupee"


class MediaAsset(BaseModel):
    """Reference to a file held in object storage."""

    public_id: str
    url: str
    duration: Optional[float] = None
    format: Optional[str] = None


class CourseVideo(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    duration: float = Field(default=0, ge=0, description="Length in seconds")
    video: MediaAsset
    thumbnail: Optional[MediaAsset] = None


class Course(BaseModel):
    """Course document stored in the ``courses`` collection."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str = Field(alias="_id")
    name: str
    description: str
    price: float = Field(ge=0)
    currency: Currency
    access_tier: AccessTier
    thumbnail: Optional[MediaAsset] = None
    preview_video: Optional[MediaAsset] = None
    videos: List[CourseVideo] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)

    def find_video(self, video_id: str) -> Optional[CourseVideo]:
        return next((video for video in self.videos if video.id == video_id), None)


class CourseCreate(BaseModel):
    """Payload for adding a course to the catalog."""

    name: str
    description: str
    price: float = Field(ge=0)
    currency: Currency
    access_tier: AccessTier
    thumbnail: Optional[MediaAsset] = None
    preview_video: Optional[MediaAsset] = None
    videos: List[CourseVideo] = Field(default_factory=list)


class CoursePublic(BaseModel):
    """Catalog view of a course: no video assets besides the preview."""

    id: str
    name: str
    description: str
    price: float
    currency: Currency
    access_tier: AccessTier
    thumbnail: Optional[MediaAsset] = None
    preview_video: Optional[MediaAsset] = None
    video_count: int
    created_at: UtcDatetime

    @classmethod
    def from_course(cls, course: Course) -> "CoursePublic":
        return cls(
            id=course.id,
            name=course.name,
            description=course.description,
            price=course.price,
            currency=course.currency,
            access_tier=course.access_tier,
            thumbnail=course.thumbnail,
            preview_video=course.preview_video,
            video_count=len(course.videos),
            created_at=course.created_at,
        )


class VideoProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str
    course_id: str
    video_id: str
    watch_time: float = Field(ge=0)
    total_duration: float = Field(gt=0)
    is_completed: bool = False
    last_watched_at: UtcDatetime
    completed_at: Optional[UtcDatetime] = None

    @property
    def completion_percentage(self) -> int:
        return min(100, round(self.watch_time / self.total_duration * 100))


class CourseProgress(BaseModel):
    total_videos: int
    completed_videos: int
    progress_percentage: int


class CoursePage(BaseModel):
    items: List[CoursePublic]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool
