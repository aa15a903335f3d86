"""Async MongoDB helpers built on top of Motor.

Only generic utilities live here; domain repositories receive the database
handle at construction and build their own queries on top."""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import AutoReconnect, NetworkTimeout, ServerSelectionTimeoutError

from .settings import MongoSettings

T = TypeVar("T")

TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout, ServerSelectionTimeoutError)


@lru_cache
def _cached_client(uri: str, server_selection_timeout_ms: int) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        uri,
        tz_aware=True,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
    )


def get_mongo_client(settings: MongoSettings | None = None) -> AsyncIOMotorClient:
    """Return a cached Motor client for the given settings."""

    settings = settings or MongoSettings()
    return _cached_client(settings.uri, settings.server_selection_timeout_ms)


def get_db(settings: MongoSettings | None = None) -> AsyncIOMotorDatabase:
    """Return the application database named by ``settings.db_name``."""

    settings = settings or MongoSettings()
    return get_mongo_client(settings)[settings.db_name]


async def ping(db: AsyncIOMotorDatabase) -> dict[str, Any]:
    """Run a simple ``ping`` command against the configured MongoDB server."""

    await db.command("ping")
    return {"ok": True}


async def read_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.2,
    description: str = "read",
) -> T:
    """
    Run an idempotent read, retrying transient connection errors.

    Never wrap writes with this helper: a retried write can apply twice.
    """

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except TRANSIENT_ERRORS as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "Mongo {description} failed (attempt {attempt}/{attempts}): {error}",
                description=description,
                attempt=attempt,
                attempts=attempts,
                error=exc,
            )
            await asyncio.sleep(backoff_seconds * attempt)
    raise RuntimeError("unreachable")  # pragma: no cover
