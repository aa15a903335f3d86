from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from accounts import (
    User,
    UserRepository,
    generate_secure_password,
    hash_password,
    validate_email,
)
from course_catalog import Course, CourseRepository
from db_core import utcnow
from domain_errors import AlreadyPurchased, InvalidRequest, NotFound
from entitlements import has_entitlement, is_payable
from loguru import logger
from notifications import Mailer, account_created_email, send_best_effort
from pymongo.errors import DuplicateKeyError

from .gateway import PaymentGateway, currency_code, to_minor_units
from .models import (
    CheckoutCourse,
    CheckoutMetadata,
    CheckoutResult,
    PaymentMetadata,
    PaymentRecord,
)
from .repository import PaymentRepository


class CheckoutInitiator:
    """Opens a gateway order for a course and records the pending payment."""

    def __init__(
        self,
        courses: CourseRepository,
        users: UserRepository,
        payments: PaymentRepository,
        gateway: PaymentGateway,
        mailer: Mailer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.courses = courses
        self.users = users
        self.payments = payments
        self.gateway = gateway
        self.mailer = mailer
        self.clock = clock

    # ---------------------------------------------------------
    # Purchaser resolution
    # ---------------------------------------------------------
    async def _resolve_guest(self, course: Course, guest_email: Optional[str]) -> tuple[User, bool]:
        email = validate_email(guest_email)

        existing = await self.users.find_by_email(email)
        if existing is not None:
            if has_entitlement(existing.entitlements, course.id):
                raise AlreadyPurchased("This email has already purchased this course")
            return existing, False

        password = generate_secure_password()
        user, created = await self.users.get_or_create_by_email(
            email,
            first_name=email.split("@", 1)[0],
            password_hash=hash_password(password),
        )
        if not created:
            # Lost the race against a concurrent checkout for the same email.
            if has_entitlement(user.entitlements, course.id):
                raise AlreadyPurchased("This email has already purchased this course")
            return user, False

        logger.info("Provisioned guest account {user_id} during checkout", user_id=user.id)
        subject, html = account_created_email(user.first_name, user.email, password)
        await send_best_effort(self.mailer, user.email, subject, html)
        return user, True

    # ---------------------------------------------------------
    # Public API
    # ---------------------------------------------------------
    async def initiate(
        self,
        course_id: str,
        *,
        user: Optional[User] = None,
        guest_email: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Start a purchase of ``course_id`` for a logged-in user or a guest email.

        Returns the gateway order handle the client needs to open the payment
        widget. A second call while a checkout for the same purchaser and course
        is still pending returns the existing order.
        """

        if not course_id:
            raise InvalidRequest("Course ID is required")
        course = await self.courses.get(course_id)
        if course is None:
            raise NotFound("Course not found")
        if not is_payable(course.access_tier):
            raise InvalidRequest("This course is free and does not require payment")

        is_guest = user is None
        is_new_user = False
        if user is not None:
            if has_entitlement(user.entitlements, course.id):
                raise AlreadyPurchased("You have already purchased this course")
            purchaser = user
        else:
            purchaser, is_new_user = await self._resolve_guest(course, guest_email)

        pending = await self.payments.find_pending(course.id, purchaser.email)
        if pending is not None:
            logger.debug(
                "Reusing pending order {order_id} for course {course_id}",
                order_id=pending.order_id,
                course_id=course.id,
            )
            return self._result(pending, course, purchaser.email, is_guest=is_guest, is_new_user=is_new_user)

        record_id = uuid4().hex
        amount = to_minor_units(course.price)
        currency = currency_code(course.currency)
        order = await self.gateway.create_order(
            amount=amount,
            currency=currency,
            receipt=record_id,
            notes={
                "course_id": course.id,
                "course_name": course.name,
                "user_email": purchaser.email,
                "user_id": purchaser.id if not is_guest else "guest",
                "access_tier": str(course.access_tier),
            },
        )

        now = self.clock()
        record = PaymentRecord(
            _id=record_id,
            order_id=order.id,
            user_id=None if is_guest else purchaser.id,
            purchaser_email=purchaser.email,
            course_id=course.id,
            amount=course.price,
            currency=course.currency,
            metadata=PaymentMetadata(
                checkout=CheckoutMetadata(
                    course_name=course.name,
                    access_tier=course.access_tier,
                    guest_email=purchaser.email if is_guest else None,
                    is_guest_checkout=is_guest,
                    is_new_user=is_new_user,
                    created_at=now,
                )
            ),
            created_at=now,
            updated_at=now,
        )
        try:
            await self.payments.insert(record)
        except DuplicateKeyError:
            # A concurrent checkout inserted its pending record first.
            pending = await self.payments.find_pending(course.id, purchaser.email)
            if pending is None:
                raise
            return self._result(pending, course, purchaser.email, is_guest=is_guest, is_new_user=is_new_user)

        logger.info(
            "Checkout opened order {order_id} for course {course_id}",
            order_id=order.id,
            course_id=course.id,
        )
        return self._result(record, course, purchaser.email, is_guest=is_guest, is_new_user=is_new_user)

    def _result(
        self,
        record: PaymentRecord,
        course: Course,
        purchaser_email: str,
        *,
        is_guest: bool,
        is_new_user: bool,
    ) -> CheckoutResult:
        return CheckoutResult(
            order_id=record.order_id,
            amount=to_minor_units(record.amount),
            currency=currency_code(record.currency),
            key_id=self.gateway.key_id,
            transaction_id=record.id,
            course=CheckoutCourse(
                id=course.id,
                name=course.name,
                price=course.price,
                currency=course.currency,
                access_tier=course.access_tier,
            ),
            purchaser_email=purchaser_email,
            is_logged_in=not is_guest,
            is_guest_checkout=is_guest,
            is_new_user=is_new_user,
        )
