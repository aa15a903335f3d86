from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from db_core import utcnow
from domain_errors import AccessDenied, AccessExpired, NotFound

from .checker import access_status, check_access
from .models import AccessDecision, AccessSummary
from .repository import EntitlementsRepository


class CourseLookup(Protocol):
    async def get(self, course_id: str) -> Optional[Any]:
        """Return an object exposing ``id`` and ``access_tier``, or None."""


class EntitlementsService:
    def __init__(
        self,
        repo: EntitlementsRepository,
        courses: CourseLookup,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.courses = courses
        self.clock = clock

    # ---------------------------------------------------------
    # Decide access for a user and course
    # ---------------------------------------------------------
    async def check_course_access(self, user_id: str, course_id: str) -> AccessDecision:
        course = await self.courses.get(course_id)
        if course is None:
            raise NotFound("Course not found")

        entitlements = await self.repo.get_for_user(user_id)
        return check_access(entitlements, course.id, course.access_tier, now=self.clock())

    async def require_course_access(self, user_id: str, course_id: str) -> AccessDecision:
        """Like ``check_course_access`` but raises when access is not granted."""

        decision = await self.check_course_access(user_id, course_id)
        if decision.granted:
            return decision
        if decision.is_expired:
            raise AccessExpired()
        raise AccessDenied("You have not purchased this course")

    # ---------------------------------------------------------
    # Display status for listings and banners
    # ---------------------------------------------------------
    async def course_access_status(self, user_id: str, course_id: str) -> AccessSummary:
        decision = await self.check_course_access(user_id, course_id)
        return access_status(decision, now=self.clock())
