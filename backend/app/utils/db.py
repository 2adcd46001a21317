"""asyncpg connection helpers for runtime queries.

The ORM models in app.models.db describe the schema; request-path queries
are plain SQL over a short-lived asyncpg connection.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from app.config import settings
from app.utils.api_errors import UnknownError


class DatabaseNotConfigured(UnknownError):
    """DATABASE_URL is empty; persistence features degrade or fail fast."""

    code = "database_not_configured"


def pg_dsn() -> str:
    """Convert SQLAlchemy-style URL to plain PostgreSQL DSN for asyncpg."""
    if not settings.database_url:
        raise DatabaseNotConfigured("database connection is not configured")
    return settings.database_url.replace("postgresql+asyncpg://", "postgresql://")


def database_configured() -> bool:
    return bool(settings.database_url)


@asynccontextmanager
async def connect() -> AsyncIterator[asyncpg.Connection]:
    conn = await asyncpg.connect(dsn=pg_dsn())
    try:
        yield conn
    finally:
        await conn.close()
