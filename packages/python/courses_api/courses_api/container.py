"""Wiring of repositories and services for one application instance."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from accounts import AuthService, SessionIssuer, UserRepository
from course_catalog import CourseRepository, VideoProgressRepository
from db_core import utcnow
from entitlements import EntitlementsRepository, EntitlementsService
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from notifications import Mailer, ResendMailer
from payments import (
    CheckoutInitiator,
    CloudinaryStorage,
    ObjectStorage,
    PaymentGateway,
    PaymentRepository,
    PaymentVerifier,
    RazorpayGateway,
    WebhookProcessor,
)

from .config import AppSettings


@dataclass
class ServiceContainer:
    settings: AppSettings
    db: AsyncIOMotorDatabase
    clock: Callable[[], datetime]
    users: UserRepository
    courses: CourseRepository
    progress: VideoProgressRepository
    entitlements_repo: EntitlementsRepository
    entitlements: EntitlementsService
    payments: PaymentRepository
    sessions: SessionIssuer
    mailer: Mailer
    gateway: PaymentGateway
    storage: Optional[ObjectStorage]
    auth: AuthService
    checkout: CheckoutInitiator
    verifier: PaymentVerifier
    webhooks: WebhookProcessor

    @classmethod
    def build(
        cls,
        settings: AppSettings,
        db: AsyncIOMotorDatabase,
        *,
        gateway: Optional[PaymentGateway] = None,
        storage: Optional[ObjectStorage] = None,
        mailer: Optional[Mailer] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "ServiceContainer":
        """Build every service from explicit settings; collaborators may be swapped for fakes."""

        users = UserRepository(db, settings.mongo)
        courses = CourseRepository(db, settings.mongo)
        progress = VideoProgressRepository(db, clock=clock)
        entitlements_repo = EntitlementsRepository(db, settings.mongo)
        payments = PaymentRepository(db, settings.mongo, clock=clock)
        # PyJWT checks expiry against wall-clock time.
        sessions = SessionIssuer(settings.sessions)

        mailer = mailer or ResendMailer(settings.mail)
        gateway = gateway or RazorpayGateway(settings.payments)
        if storage is None and settings.storage.cloud_name:
            storage = CloudinaryStorage(settings.storage)
        if storage is None:
            logger.warning("Object storage not configured; receipts will not be uploaded")

        verifier = PaymentVerifier(
            settings.payments,
            courses=courses,
            users=users,
            entitlements=entitlements_repo,
            payments=payments,
            sessions=sessions,
            mailer=mailer,
            storage=storage,
            storage_settings=settings.storage,
            clock=clock,
        )
        return cls(
            settings=settings,
            db=db,
            clock=clock,
            users=users,
            courses=courses,
            progress=progress,
            entitlements_repo=entitlements_repo,
            entitlements=EntitlementsService(entitlements_repo, courses, clock=clock),
            payments=payments,
            sessions=sessions,
            mailer=mailer,
            gateway=gateway,
            storage=storage,
            auth=AuthService(users, sessions, mailer, clock=clock),
            checkout=CheckoutInitiator(courses, users, payments, gateway, mailer, clock=clock),
            verifier=verifier,
            webhooks=WebhookProcessor(settings.payments, verifier),
        )

    async def ensure_indexes(self) -> None:
        await self.users.ensure_indexes()
        await self.courses.ensure_indexes()
        await self.progress.ensure_indexes()
        await self.payments.ensure_indexes()
        logger.info("MongoDB indexes ensured")

    async def aclose(self) -> None:
        for client in (self.gateway, self.storage):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()
