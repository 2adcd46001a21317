"""Shared request helpers for the Shopify-backed routes."""

from __future__ import annotations

from typing import Any

from fastapi import Request

from app.models.contracts import ShopSession
from app.services import sessions
from app.utils.api_errors import AuthError, ValidationError

SHOP_HEADER = "X-Shopify-Domain"


def resolve_shop(request: Request, body_shop: str | None = None) -> str:
    """Shop domain from the query string, the body, or the X-Shopify-Domain header."""
    shop = request.query_params.get("shop") or body_shop or request.headers.get(SHOP_HEADER)
    if not shop or not shop.strip():
        raise ValidationError("Shop parameter is required", code="missing_shop")
    return shop.strip().lower()


async def require_session(shop: str) -> ShopSession:
    session = await sessions.get_session(shop)
    if session is None:
        raise AuthError("Shop session not found. Please install the app first.")
    if not session.access_token:
        raise AuthError("Invalid session: access token missing")
    return session


async def read_json_object(
    request: Request, message: str = "Invalid request body"
) -> dict[str, Any]:
    """Parse the request body as a JSON object; anything else is a 400."""
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError(message, code="invalid_payload") from exc
    if not isinstance(payload, dict):
        raise ValidationError(message, code="invalid_payload")
    return payload
