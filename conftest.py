"""Shared fixtures: in-memory Mongo, fixed clock and recording fakes for outside services."""

from __future__ import annotations

import asyncio
import itertools
from datetime import UTC, datetime, timedelta
from typing import Optional

import mongomock
import pytest
from accounts import SessionSettings, hash_password
from course_catalog import Course, CourseVideo, MediaAsset
from courses_api import ApiSettings, AppSettings, ServiceContainer
from db_core import MongoSettings
from domain_errors import UpstreamFailure
from notifications import MailSettings
from payments import (
    GatewayOrder,
    PaymentSettings,
    StorageSettings,
    StoredAsset,
    compute_signature,
)

TEST_PASSWORD = "Secret#123"


class AsyncCursor:
    """Awaitable view over a mongomock cursor, mirroring the Motor cursor API we use."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs) -> "AsyncCursor":
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count: int) -> "AsyncCursor":
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count: int) -> "AsyncCursor":
        self._cursor = self._cursor.limit(count)
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._cursor)
        except StopIteration:
            raise StopAsyncIteration from None

    async def to_list(self, length: Optional[int] = None) -> list:
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncCollection:
    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs) -> AsyncCursor:
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            # Yield once so concurrent tasks interleave between operations.
            await asyncio.sleep(0)
            return method(*args, **kwargs)

        return call


class AsyncDatabase:
    def __init__(self, database):
        self._database = database

    def __getitem__(self, name: str) -> AsyncCollection:
        return AsyncCollection(self._database[name])

    async def command(self, *args, **kwargs):
        return self._database.command(*args, **kwargs)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeGateway:
    key_id = "rzp_test_key"

    def __init__(self):
        self.orders: list[dict] = []
        self.fail = False
        self._ids = itertools.count(1)

    async def create_order(self, *, amount, currency, receipt, notes=None) -> GatewayOrder:
        if self.fail:
            raise UpstreamFailure("Payment gateway unavailable")
        order = GatewayOrder(id=f"order_test_{next(self._ids)}", amount=amount, currency=currency, receipt=receipt)
        self.orders.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}})
        return order


class FakeStorage:
    def __init__(self):
        self.uploads: dict[str, bytes] = {}
        self.fail = False

    async def upload_raw(self, content: bytes, *, public_id: str, folder: str) -> StoredAsset:
        if self.fail:
            raise UpstreamFailure("Storage service unavailable")
        key = f"{folder}/{public_id}"
        self.uploads[key] = content
        return StoredAsset(public_id=key, url=f"https://files.test/{key}.html")

    async def delete(self, public_id: str) -> None:
        self.uploads.pop(public_id, None)


class RecordingMailer:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def last_to(self, address: str) -> Optional[dict]:
        matching = [mail for mail in self.sent if mail["to"] == address]
        return matching[-1] if matching else None


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 31, 10, 0, tzinfo=UTC))


@pytest.fixture
def db():
    return AsyncDatabase(mongomock.MongoClient(tz_aware=True)["course_platform_test"])


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        mongo=MongoSettings(db_name="course_platform_test", read_retry_backoff_seconds=0),
        payments=PaymentSettings(
            key_id="rzp_test_key",
            key_secret="test_key_secret",
            webhook_secret="test_webhook_secret",
            api_base_url="https://gateway.test/v1",
            timeout_seconds=2,
        ),
        storage=StorageSettings(cloud_name="demo", api_key="key", api_secret="secret"),
        sessions=SessionSettings(jwt_secret="test-jwt-secret-that-is-long-enough-for-hs256"),
        mail=MailSettings(resend_api_key="", from_address="test@example.com", enabled=False),
        api=ApiSettings(secure_cookies=False),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def container(settings, db, gateway, storage, mailer, clock) -> ServiceContainer:
    return ServiceContainer.build(
        settings,
        db,
        gateway=gateway,
        storage=storage,
        mailer=mailer,
        clock=clock,
    )


@pytest.fixture
def make_course(db, clock):
    counter = itertools.count(1)

    async def _make(**overrides) -> Course:
        index = next(counter)
        data = {
            "_id": f"course-{index}",
            "name": f"Course {index}",
            "description": "Learn things",
            "price": 499,
            "currency": "rupee",
            "access_tier": "monthly",
            "videos": [
                CourseVideo(
                    id=f"video-{index}-{n}",
                    title=f"Lesson {n}",
                    duration=600,
                    video=MediaAsset(public_id=f"videos/{index}-{n}", url=f"https://cdn.test/{index}-{n}.mp4"),
                ).model_dump()
                for n in (1, 2)
            ],
            "created_at": clock(),
        }
        data.update(overrides)
        course = Course.model_validate(data)
        await db["courses"].insert_one(course.model_dump(by_alias=True))
        return course

    return _make


@pytest.fixture
def make_user(container):
    counter = itertools.count(1)

    async def _make(email: Optional[str] = None, *, is_verified: bool = True, **overrides):
        index = next(counter)
        user = await container.users.create(
            first_name=overrides.pop("first_name", f"User{index}"),
            last_name=overrides.pop("last_name", "Tester"),
            email=email or f"user{index}@example.com",
            mobile_number=overrides.pop("mobile_number", None),
            password_hash=hash_password(overrides.pop("password", TEST_PASSWORD)),
            is_verified=is_verified,
        )
        return user

    return _make


@pytest.fixture
def sign_payment(settings):
    def _sign(order_id: str, payment_id: str) -> str:
        return compute_signature(settings.payments.key_secret, f"{order_id}|{payment_id}")

    return _sign


@pytest.fixture
def sign_webhook(settings):
    def _sign(body: bytes) -> str:
        return compute_signature(settings.payments.webhook_secret, body)

    return _sign
