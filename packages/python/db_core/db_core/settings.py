"""Configuration helpers for MongoDB connections used by db_core.

Applications build a ``MongoSettings`` instance at startup and hand it to
``get_db``; the environment-backed defaults below apply when nothing is passed.
"""

import os

from pydantic import BaseModel, Field


class MongoSettings(BaseModel):
    """Basic MongoDB configuration shared by the domain repositories."""

    uri: str = Field(
        default_factory=lambda: os.getenv("MONGO_URI", "mongodb://localhost:27017")
    )
    db_name: str = Field(
        default_factory=lambda: os.getenv("MONGO_DB_NAME", "course_platform")
    )
    server_selection_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"))
    )
    read_retry_attempts: int = Field(default=3, ge=1)
    read_retry_backoff_seconds: float = Field(default=0.2, ge=0.0)
