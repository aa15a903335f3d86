"""FastAPI router for entitlement-gated course content and watch progress."""

from __future__ import annotations

from typing import Optional

from accounts import User
from course_catalog import CoursePublic
from domain_errors import NotFound, ValidationError
from entitlements import access_status, check_access
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from .container import ServiceContainer
from .dependencies import get_container, get_current_user
from .responses import envelope

router = APIRouter(prefix="/api/v1", tags=["learning"])


class VideoProgressPayload(BaseModel):
    course_id: str
    video_id: str
    watch_time: float = Field(ge=0)
    total_duration: float = Field(gt=0)
    is_completed: bool = False


@router.get("/videos/{course_id}")
async def get_course_videos(
    course_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Videos of a course the user may watch, with access and progress details."""

    decision = await container.entitlements.require_course_access(user.id, course_id)
    course = await container.courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")

    progress = await container.progress.course_progress(user.id, course)
    return envelope(
        {
            "course": CoursePublic.from_course(course).model_dump(mode="json"),
            "videos": [video.model_dump(mode="json") for video in course.videos],
            "access": access_status(decision, now=container.clock()).model_dump(mode="json"),
            "progress": progress.model_dump(mode="json"),
        },
        "Videos fetched successfully",
    )


@router.post("/video-progress")
async def save_video_progress(
    payload: VideoProgressPayload,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    await container.entitlements.require_course_access(user.id, payload.course_id)
    course = await container.courses.get(payload.course_id)
    if course is None or course.find_video(payload.video_id) is None:
        raise NotFound("Video not found")

    progress = await container.progress.record(
        user_id=user.id,
        course_id=payload.course_id,
        video_id=payload.video_id,
        watch_time=payload.watch_time,
        total_duration=payload.total_duration,
        is_completed=payload.is_completed,
    )
    data = progress.model_dump(mode="json", by_alias=False)
    data["completion_percentage"] = progress.completion_percentage
    return envelope(data, "Progress saved")


@router.get("/video-progress")
async def get_video_progress(
    course_id: Optional[str] = Query(default=None),
    video_id: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Progress for one video, or the completion summary of a course."""

    if video_id:
        progress = await container.progress.get_for_video(user.id, video_id)
        if progress is None:
            return envelope(None, "No progress recorded")
        data = progress.model_dump(mode="json", by_alias=False)
        data["completion_percentage"] = progress.completion_percentage
        return envelope(data, "Progress fetched successfully")

    if not course_id:
        raise ValidationError("course_id or video_id is required")
    course = await container.courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    summary = await container.progress.course_progress(user.id, course)
    return envelope(summary, "Progress fetched successfully")


@router.get("/my-courses")
async def my_courses(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Courses the user holds an entitlement for, newest purchase first."""

    entitlements = sorted(user.entitlements, key=lambda item: item.purchase_date, reverse=True)
    courses = await container.courses.get_many([item.course_id for item in entitlements])
    by_id = {course.id: course for course in courses}
    now = container.clock()

    items = []
    for entitlement in entitlements:
        course = by_id.get(entitlement.course_id)
        if course is None:
            continue
        decision = check_access(user.entitlements, course.id, course.access_tier, now=now)
        progress = await container.progress.course_progress(user.id, course)
        items.append(
            {
                "course": CoursePublic.from_course(course).model_dump(mode="json"),
                "purchase_date": entitlement.purchase_date,
                "access": access_status(decision, now=now).model_dump(mode="json"),
                "progress": progress.model_dump(mode="json"),
            }
        )
    return envelope(items, "Courses fetched successfully")
