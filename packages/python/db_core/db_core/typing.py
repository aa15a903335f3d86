"""Lightweight typing helpers shared by Mongo-backed repositories."""

from datetime import UTC, datetime
from typing import Annotated, Any, Mapping

from pydantic import AfterValidator

MongoDocument = Mapping[str, Any]


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; BSON dates come back naive unless tz_aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
