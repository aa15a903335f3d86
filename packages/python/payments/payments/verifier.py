"""
Payment verification and settlement.

Settlement runs without a cross-document transaction:

1. the pending record is stamped with the gateway payment id,
2. the entitlement is granted (conditional push, no duplicates) and the record
   id is added to the user's transactions,
3. the record is moved ``pending -> success`` with a compare-and-swap.

Every step is safe to repeat, so duplicate callbacks and webhook redeliveries
converge on the same state. A crash between steps 2 and 3 leaves a pending
record that a user already references; ``recover_orphaned_settlements``
finishes those.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from accounts import (
    SessionIssuer,
    User,
    UserRepository,
    generate_secure_password,
    hash_password,
    validate_email,
)
from course_catalog import Course, CourseRepository
from db_core import utcnow
from domain_errors import InvalidRequest, InvalidSignature, NotFound, ValidationError
from entitlements import Entitlement, EntitlementsRepository, calculate_expiry_date
from loguru import logger
from notifications import Mailer, account_created_email, send_best_effort

from .config import PaymentSettings, StorageSettings
from .models import (
    FailedOutcome,
    PaymentRecord,
    PaymentStatus,
    Receipt,
    SettledOutcome,
    SettlementSource,
    VerificationResult,
)
from .receipts import build_receipt_html
from .repository import PaymentRepository
from .signatures import verify_payment_signature
from .storage import ObjectStorage

ORPHAN_GRACE_PERIOD = timedelta(minutes=10)


class PaymentVerifier:
    def __init__(
        self,
        settings: PaymentSettings,
        courses: CourseRepository,
        users: UserRepository,
        entitlements: EntitlementsRepository,
        payments: PaymentRepository,
        sessions: SessionIssuer,
        mailer: Mailer,
        storage: Optional[ObjectStorage] = None,
        storage_settings: Optional[StorageSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.courses = courses
        self.users = users
        self.entitlements = entitlements
        self.payments = payments
        self.sessions = sessions
        self.mailer = mailer
        self.storage = storage
        self.receipts_folder = (storage_settings or StorageSettings()).receipts_folder
        self.clock = clock

    # ---------------------------------------------------------
    # Client callback
    # ---------------------------------------------------------
    async def verify(
        self,
        order_id: Optional[str],
        payment_id: Optional[str],
        signature: Optional[str],
        *,
        guest_email: Optional[str] = None,
    ) -> VerificationResult:
        """Verify the checkout callback signature, then settle the order."""

        if not order_id or not payment_id or not signature:
            raise ValidationError("Missing payment verification details")

        if not verify_payment_signature(order_id, payment_id, signature, self.settings.key_secret):
            logger.warning("Rejected payment signature for order {order_id}", order_id=order_id)
            raise InvalidSignature()

        return await self._settle(order_id, payment_id, guest_email, SettlementSource.CLIENT)

    async def settle(
        self,
        order_id: str,
        payment_id: str,
        *,
        source: SettlementSource = SettlementSource.WEBHOOK,
    ) -> VerificationResult:
        """Settle an order already authenticated by other means (signed webhook)."""

        return await self._settle(order_id, payment_id, None, source)

    # ---------------------------------------------------------
    # Failure path
    # ---------------------------------------------------------
    async def mark_failed(
        self,
        order_id: str,
        reason: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> Optional[PaymentRecord]:
        """Move a pending record to failed; returns None when it was no longer pending."""

        outcome = FailedOutcome(
            failed_at=self.clock(),
            reason=reason or "Payment failed",
            error_code=error_code,
        )
        updated = await self.payments.transition(
            order_id,
            to_status=PaymentStatus.FAILED,
            fields={"metadata.outcome": outcome.model_dump()},
        )
        if updated is None:
            logger.info("Ignoring failure for order {order_id}: not pending", order_id=order_id)
        else:
            logger.info(
                "Order {order_id} marked failed ({error_code})",
                order_id=order_id,
                error_code=error_code,
            )
        return updated

    # ---------------------------------------------------------
    # Recovery sweep
    # ---------------------------------------------------------
    async def recover_orphaned_settlements(
        self, older_than: timedelta = ORPHAN_GRACE_PERIOD
    ) -> List[str]:
        """
        Settle pending records whose user was already updated.

        Only records that carry a payment id and appear in some user's
        transactions qualify; anything else is left for the client or webhook.
        Returns the order ids that were settled.
        """

        cutoff = self.clock() - older_than
        recovered: List[str] = []
        for record in await self.payments.find_orphan_candidates(cutoff):
            holder_id = await self.entitlements.holder_of_transaction(record.id)
            if holder_id is None:
                continue

            entitlement = await self.entitlements.get(holder_id, record.course_id)
            outcome = SettledOutcome(
                verified_at=self.clock(),
                expiry_date=entitlement.expiry_date if entitlement else None,
                source=SettlementSource.RECOVERY,
            )
            settled = await self.payments.transition(
                record.order_id,
                to_status=PaymentStatus.SUCCESS,
                fields={"user_id": holder_id, "metadata.outcome": outcome.model_dump()},
            )
            if settled is None:
                continue

            logger.info("Recovered settlement for order {order_id}", order_id=record.order_id)
            recovered.append(record.order_id)
            course = await self.courses.get(record.course_id)
            user = await self.users.get(holder_id)
            if course is not None and user is not None:
                await self._attach_receipt(settled, course, user)
        return recovered

    # ---------------------------------------------------------
    # Internals
    # ---------------------------------------------------------
    async def _settle(
        self,
        order_id: str,
        payment_id: str,
        guest_email: Optional[str],
        source: SettlementSource,
    ) -> VerificationResult:
        record = await self.payments.find_by_order_id(order_id)
        if record is None:
            raise NotFound("Transaction not found")
        if record.status != PaymentStatus.PENDING:
            return await self._replay(record)

        stamped = await self.payments.attach_payment_id(order_id, payment_id)
        if stamped is None:
            return await self._replay_current(order_id)

        course = await self.courses.get(stamped.course_id)
        if course is None:
            raise NotFound("Course not found")

        user, created = await self._resolve_purchaser(stamped, guest_email)

        now = self.clock()
        expiry_date = calculate_expiry_date(course.access_tier, now)
        granted = await self.entitlements.grant(
            user.id,
            Entitlement(course_id=course.id, purchase_date=now, expiry_date=expiry_date),
        )
        if not granted:
            existing = await self.entitlements.get(user.id, course.id)
            expiry_date = existing.expiry_date if existing else expiry_date
        await self.entitlements.attach_transaction(user.id, stamped.id)

        outcome = SettledOutcome(verified_at=now, expiry_date=expiry_date, source=source)
        settled = await self.payments.transition(
            order_id,
            to_status=PaymentStatus.SUCCESS,
            fields={
                "payment_id": payment_id,
                "user_id": user.id,
                "metadata.outcome": outcome.model_dump(),
            },
        )
        if settled is None:
            logger.info("Order {order_id} was settled concurrently", order_id=order_id)
            return await self._replay_current(order_id)

        logger.info(
            "Order {order_id} settled for user {user_id} via {source}",
            order_id=order_id,
            user_id=user.id,
            source=source.value,
        )
        receipt_url = await self._attach_receipt(settled, course, user)

        # Only accounts this purchase brought into existence are logged in; a guest
        # checkout against an existing account must sign in with its own credentials.
        provisioned_here = stamped.metadata.checkout.is_new_user and not user.is_verified
        session_token = None
        if created or provisioned_here:
            session_token = self.sessions.issue({"sub": user.id, "email": user.email})

        return VerificationResult(
            transaction_id=settled.id,
            order_id=settled.order_id,
            payment_id=settled.payment_id,
            course_id=settled.course_id,
            user_id=user.id,
            email=user.email,
            expiry_date=expiry_date,
            already_processed=False,
            is_new_user=created or stamped.metadata.checkout.is_new_user,
            session_token=session_token,
            receipt_url=receipt_url,
        )

    async def _replay_current(self, order_id: str) -> VerificationResult:
        record = await self.payments.find_by_order_id(order_id)
        if record is None:
            raise NotFound("Transaction not found")
        return await self._replay(record)

    async def _replay(self, record: PaymentRecord) -> VerificationResult:
        if record.status == PaymentStatus.FAILED:
            raise InvalidRequest("This payment has already failed")
        if record.status != PaymentStatus.SUCCESS:
            raise InvalidRequest("Payment is still being processed")

        user_id = record.user_id
        email = record.purchaser_email
        if user_id is None:
            user = await self.users.find_by_email(email)
            user_id = user.id if user else None
        settled = record.settled_outcome
        logger.debug("Order {order_id} already processed", order_id=record.order_id)
        return VerificationResult(
            transaction_id=record.id,
            order_id=record.order_id,
            payment_id=record.payment_id,
            course_id=record.course_id,
            user_id=user_id,
            email=email,
            expiry_date=settled.expiry_date if settled else None,
            already_processed=True,
            receipt_url=record.receipt.url if record.receipt else None,
        )

    async def _resolve_purchaser(
        self, record: PaymentRecord, guest_email: Optional[str]
    ) -> tuple[User, bool]:
        if record.user_id:
            user = await self.users.get(record.user_id)
            if user is not None:
                return user, False

        email = validate_email(
            record.metadata.checkout.guest_email or record.purchaser_email or guest_email
        )
        existing = await self.users.find_by_email(email)
        if existing is not None:
            return existing, False

        password = generate_secure_password()
        user, created = await self.users.get_or_create_by_email(
            email,
            first_name=email.split("@", 1)[0],
            password_hash=hash_password(password),
            is_verified=True,
        )
        if created:
            logger.info("Created account {user_id} while settling payment", user_id=user.id)
            subject, html = account_created_email(user.first_name, user.email, password)
            await send_best_effort(self.mailer, user.email, subject, html)
        return user, created

    async def _attach_receipt(self, record: PaymentRecord, course: Course, user: User) -> Optional[str]:
        """Render, upload and link the receipt; failures are logged and swallowed."""

        if self.storage is None:
            return None
        try:
            html = build_receipt_html(record, course, user, self.settings.company)
            asset = await self.storage.upload_raw(
                html.encode("utf-8"),
                public_id=f"receipt_{record.order_id}",
                folder=self.receipts_folder,
            )
            await self.payments.set_receipt(
                record.id,
                Receipt(public_id=asset.public_id, url=asset.url, generated_at=self.clock()),
            )
        except Exception as exc:
            logger.warning(
                "Receipt generation failed for order {order_id}: {error}",
                order_id=record.order_id,
                error=exc,
            )
            return None
        return asset.url
