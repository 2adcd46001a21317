"""Redis-backed chat context and conversation history.

Keys expire after REDIS_CONTEXT_TTL_SECONDS. When REDIS_URL is unset every
operation is a no-op, and Redis failures are logged rather than raised so a
cache outage never breaks a chat turn.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
import structlog

from app.config import settings
from app.models.contracts import ConversationMessage

logger = structlog.get_logger()

MAX_HISTORY_MESSAGES = 50

_client: redis.Redis | None = None


def get_client() -> redis.Redis | None:
    """Lazy-init singleton client; None when Redis is not configured."""
    global _client  # noqa: PLW0603
    if not settings.redis_url:
        return None
    if _client is None:
        pool = redis.ConnectionPool.from_url(
            settings.redis_url, max_connections=20, decode_responses=True
        )
        _client = redis.Redis(connection_pool=pool)
    return _client


def reset_client() -> None:
    """Reset the singleton client (for testing)."""
    global _client  # noqa: PLW0603
    _client = None


def _context_key(session_id: str) -> str:
    return f"context:{session_id}"


def _conversation_key(session_id: str) -> str:
    return f"conversation:{session_id}"


async def set_context(session_id: str, context: dict[str, Any]) -> None:
    client = get_client()
    if client is None:
        return
    try:
        await client.set(
            _context_key(session_id),
            json.dumps(context, default=str),
            ex=settings.redis_context_ttl_seconds,
        )
    except redis.RedisError as exc:
        logger.warning("redis_set_context_failed", session_id=session_id, error=str(exc))


async def get_context(session_id: str) -> dict[str, Any] | None:
    client = get_client()
    if client is None:
        return None
    try:
        raw = await client.get(_context_key(session_id))
    except redis.RedisError as exc:
        logger.warning("redis_get_context_failed", session_id=session_id, error=str(exc))
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("redis_context_corrupt", session_id=session_id)
        return None


async def get_conversation(session_id: str) -> list[ConversationMessage]:
    client = get_client()
    if client is None:
        return []
    try:
        raw = await client.get(_conversation_key(session_id))
    except redis.RedisError as exc:
        logger.warning("redis_get_conversation_failed", session_id=session_id, error=str(exc))
        return []
    if not raw:
        return []
    try:
        return [ConversationMessage.model_validate(m) for m in json.loads(raw)]
    except (json.JSONDecodeError, ValueError):
        logger.warning("redis_conversation_corrupt", session_id=session_id)
        return []


async def append_conversation(session_id: str, *messages: ConversationMessage) -> None:
    """Append messages to the stored history, keeping the most recent ones."""
    client = get_client()
    if client is None:
        return
    history = await get_conversation(session_id)
    history.extend(messages)
    payload = json.dumps([m.model_dump() for m in history[-MAX_HISTORY_MESSAGES:]])
    try:
        await client.set(
            _conversation_key(session_id), payload, ex=settings.redis_context_ttl_seconds
        )
    except redis.RedisError as exc:
        logger.warning("redis_append_conversation_failed", session_id=session_id, error=str(exc))


async def ping() -> bool:
    client = get_client()
    if client is None:
        return False
    return bool(await client.ping())
