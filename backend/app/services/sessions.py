"""Per-shop OAuth session storage.

Two backends selected by SESSION_BACKEND: an in-process dict (development
and tests) and Postgres via asyncpg. Writes are last-writer-wins upserts
keyed by shop. Expired sessions read as absent and are removed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

import structlog

from app.config import settings
from app.models.contracts import ShopSession
from app.utils import db

logger = structlog.get_logger()


def _is_expired(session: ShopSession) -> bool:
    if session.expires is None:
        return False
    expires = session.expires
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=UTC)
    return expires <= datetime.now(UTC)


class SessionStore(Protocol):
    async def store(self, session: ShopSession) -> None: ...

    async def load(self, shop: str) -> ShopSession | None: ...

    async def delete(self, shop: str) -> None: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, ShopSession] = {}

    async def store(self, session: ShopSession) -> None:
        self._sessions[session.shop] = session.model_copy()

    async def load(self, shop: str) -> ShopSession | None:
        session = self._sessions.get(shop)
        return session.model_copy() if session else None

    async def delete(self, shop: str) -> None:
        self._sessions.pop(shop, None)

    def clear(self) -> None:
        self._sessions.clear()


_UPSERT_SQL = """
INSERT INTO shopify_sessions
    (shop, access_token, storefront_token, scope, is_online, expires, custom_domain)
VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (shop) DO UPDATE SET
    access_token = EXCLUDED.access_token,
    storefront_token = EXCLUDED.storefront_token,
    scope = EXCLUDED.scope,
    is_online = EXCLUDED.is_online,
    expires = EXCLUDED.expires,
    custom_domain = EXCLUDED.custom_domain,
    updated_at = NOW()
"""


class PostgresSessionStore:
    async def store(self, session: ShopSession) -> None:
        async with db.connect() as conn:
            await conn.execute(
                _UPSERT_SQL,
                session.shop,
                session.access_token,
                session.storefront_token,
                session.scope,
                session.is_online,
                session.expires,
                session.custom_domain,
            )

    async def load(self, shop: str) -> ShopSession | None:
        async with db.connect() as conn:
            row = await conn.fetchrow(
                "SELECT shop, access_token, storefront_token, scope, is_online, expires, "
                "custom_domain FROM shopify_sessions WHERE shop = $1",
                shop,
            )
        return ShopSession(**dict(row)) if row else None

    async def delete(self, shop: str) -> None:
        async with db.connect() as conn:
            await conn.execute("DELETE FROM shopify_sessions WHERE shop = $1", shop)


_store: SessionStore | None = None


def get_store() -> SessionStore:
    """Lazy-init the backend named by SESSION_BACKEND."""
    global _store  # noqa: PLW0603
    if _store is None:
        if settings.session_backend == "postgres":
            _store = PostgresSessionStore()
        else:
            _store = InMemorySessionStore()
    return _store


def set_store(store: SessionStore | None) -> None:
    """Swap the backend (for testing); None re-selects from settings."""
    global _store  # noqa: PLW0603
    _store = store


async def store_session(session: ShopSession) -> None:
    await get_store().store(session)
    logger.info("shop_session_stored", shop=session.shop, scope=session.scope)


async def get_session(shop: str) -> ShopSession | None:
    store = get_store()
    session = await store.load(shop)
    if session is None:
        return None
    if _is_expired(session):
        logger.info("shop_session_expired", shop=shop)
        await store.delete(shop)
        return None
    return session


async def delete_session(shop: str) -> None:
    await get_store().delete(shop)
    logger.info("shop_session_deleted", shop=shop)


async def has_session(shop: str) -> bool:
    return await get_session(shop) is not None
