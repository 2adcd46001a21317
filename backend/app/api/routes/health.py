"""Liveness endpoint reporting the state of each backing service.

Every probe is bounded by a short timeout. A "disconnected" service is
reported but never turns the response into an error, so load balancers
keep routing to a degraded instance.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from fastapi import APIRouter

from app.config import settings
from app.utils import db, r2, redis_store

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

PROBE_TIMEOUT_SECONDS = 3.0

NOT_CONFIGURED = "not_configured"
CONNECTED = "connected"
DISCONNECTED = "disconnected"


async def _probe(name: str, check: Callable[[], Awaitable[bool | None]]) -> str:
    try:
        result = await asyncio.wait_for(check(), timeout=PROBE_TIMEOUT_SECONDS)
    except Exception as exc:
        logger.debug("health_probe_failed", service=name, error=str(exc))
        return DISCONNECTED
    return DISCONNECTED if result is False else CONNECTED


async def _check_postgres() -> str:
    if not db.database_configured():
        return NOT_CONFIGURED

    async def select_one() -> None:
        async with db.connect() as conn:
            await conn.fetchval("SELECT 1")

    return await _probe("postgres", select_one)


async def _check_redis() -> str:
    if not settings.redis_url:
        return NOT_CONFIGURED
    return await _probe("redis", redis_store.ping)


async def _check_r2() -> str:
    if not r2.r2_configured():
        return NOT_CONFIGURED
    return await _probe("r2", lambda: asyncio.to_thread(r2.head_bucket))


def _configured(value: str) -> str:
    return "configured" if value else NOT_CONFIGURED


@router.get("/health")
async def health_check() -> dict:
    """Run all probes concurrently. The status code is always 200."""
    postgres, redis, storage = await asyncio.gather(
        _check_postgres(), _check_redis(), _check_r2()
    )
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "services": {
            "postgres": postgres,
            "redis": redis,
            "r2": storage,
            "shopify": _configured(settings.shopify_api_key),
            "gemini": _configured(settings.google_ai_api_key),
        },
    }
