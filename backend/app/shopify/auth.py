"""Shopify OAuth: install redirect URL and authorization-code exchange."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
import structlog

from app.config import settings
from app.models.contracts import ShopSession
from app.utils.api_errors import (
    UnknownError,
    UpstreamError,
    ValidationError,
    decode_http_error,
    normalize,
)
from app.utils.cors import is_valid_shop_domain
from app.utils.retry import with_timeout

logger = structlog.get_logger()

OAUTH_CALLBACK_PATH = "/api/shopify/auth/oauth"
DEFAULT_GRANTED_SCOPE = "read_products,read_content"


def credentials_configured() -> bool:
    return bool(settings.shopify_api_key and settings.shopify_api_secret)


def normalize_shop(shop: str | None) -> str:
    """Validate and lower-case a shop domain; raises ValidationError."""
    if not shop or not is_valid_shop_domain(shop):
        raise ValidationError(
            "The 'shop' parameter must be a valid .myshopify.com domain",
            code="invalid_shop",
        )
    return shop.strip().lower()


def build_install_url(shop: str, app_url: str) -> str:
    """Authorize URL the merchant is redirected to when installing the app."""
    if not credentials_configured():
        raise UnknownError("Shopify API credentials not configured", code="config_error")
    redirect_uri = f"{app_url.rstrip('/')}{OAUTH_CALLBACK_PATH}"
    query = urlencode(
        {
            "client_id": settings.shopify_api_key,
            "scope": settings.shopify_scopes,
            "redirect_uri": redirect_uri,
        }
    )
    return f"https://{shop}/admin/oauth/authorize?{query}"


def admin_app_url(shop: str) -> str:
    return f"https://{shop}/admin/apps/{settings.shopify_api_key}"


async def exchange_code(
    shop: str, code: str, *, http_client: httpx.AsyncClient | None = None
) -> ShopSession:
    """Trade an authorization code for an offline access token.

    The returned session expires after SESSION_LIFETIME_DAYS.
    """
    url = f"https://{shop}/admin/oauth/access_token"
    payload = {
        "client_id": settings.shopify_api_key,
        "client_secret": settings.shopify_api_secret,
        "code": code,
    }

    async def _post() -> httpx.Response:
        if http_client is not None:
            return await http_client.post(url, json=payload)
        async with httpx.AsyncClient(timeout=settings.shopify_timeout_seconds) as client:
            return await client.post(url, json=payload)

    try:
        response = await with_timeout(_post(), settings.shopify_timeout_seconds)
    except httpx.TransportError as exc:
        logger.error("shopify_oauth_exchange_unreachable", shop=shop, error=str(exc))
        raise UpstreamError(normalize(exc)) from exc
    try:
        body = response.json()
    except ValueError:
        body = None

    if response.status_code >= 400 or not isinstance(body, dict) or not body.get("access_token"):
        logger.error("shopify_oauth_exchange_failed", shop=shop, status=response.status_code)
        raise UpstreamError(
            decode_http_error(
                response.status_code if response.status_code >= 400 else 502,
                body,
                "Failed to exchange OAuth code for token",
            )
        )

    logger.info("shopify_oauth_exchange_succeeded", shop=shop)
    return ShopSession(
        shop=shop,
        access_token=body["access_token"],
        scope=body.get("scope") or DEFAULT_GRANTED_SCOPE,
        is_online=False,
        expires=datetime.now(UTC) + timedelta(days=settings.session_lifetime_days),
    )
