"""Minimal MongoDB helpers shared across domain repositories.

Example usage in a domain repository:

    from db_core import MongoSettings, get_db

    db = get_db(MongoSettings())
    doc = await db["courses"].find_one({"_id": course_id})
"""

from .mongo import get_db, get_mongo_client, ping, read_with_retry
from .settings import MongoSettings
from .typing import MongoDocument, UtcDatetime, ensure_utc, utcnow

__all__ = [
    "MongoDocument",
    "MongoSettings",
    "UtcDatetime",
    "ensure_utc",
    "get_db",
    "get_mongo_client",
    "ping",
    "read_with_retry",
    "utcnow",
]
