"""Course catalog with video progress tracking."""

from .models import (
    Course,
    CourseCreate,
    CoursePage,
    CourseProgress,
    CoursePublic,
    CourseVideo,
    Currency,
    MediaAsset,
    VideoProgress,
)
from .progress import VideoProgressRepository
from .repository import CourseRepository

__all__ = [
    "Course",
    "CourseCreate",
    "CoursePage",
    "CourseProgress",
    "CoursePublic",
    "CourseRepository",
    "CourseVideo",
    "Currency",
    "MediaAsset",
    "VideoProgress",
    "VideoProgressRepository",
]
