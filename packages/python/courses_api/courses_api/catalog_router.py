"""FastAPI router exposing the public course catalog."""

from __future__ import annotations

from accounts import User
from course_catalog import CoursePublic
from domain_errors import NotFound
from fastapi import APIRouter, Depends, Query

from .container import ServiceContainer
from .dependencies import get_container, get_current_user
from .responses import envelope

router = APIRouter(prefix="/api/v1/course", tags=["catalog"])


@router.get("")
async def list_courses(
    search: str = Query(default=""),
    sort: str = Query(default="newest"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    container: ServiceContainer = Depends(get_container),
):
    """Paginated catalog listing with search and sort."""

    result = await container.courses.list_public(search=search, sort=sort, page=page, limit=limit)
    return envelope(result, "Courses fetched successfully")


@router.get("/{course_id}")
async def get_course(course_id: str, container: ServiceContainer = Depends(get_container)):
    course = await container.courses.get(course_id)
    if course is None:
        raise NotFound("Course not found")
    return envelope(CoursePublic.from_course(course), "Course fetched successfully")


@router.get("/{course_id}/access")
async def get_course_access(
    course_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Access status of the current user for one course."""

    summary = await container.entitlements.course_access_status(user.id, course_id)
    return envelope(summary, "Access status fetched successfully")
