"""Shopify OAuth install and callback."""

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from app.config import settings
from app.services import analytics, sessions
from app.shopify.auth import admin_app_url, build_install_url, exchange_code, normalize_shop
from app.utils import db
from app.utils.api_errors import UpstreamError, ValidationError, to_service_error

logger = structlog.get_logger()

router = APIRouter(tags=["shopify-auth"])


@router.get("/auth/install")
async def install(request: Request, shop: str | None = None) -> RedirectResponse:
    """Redirect the merchant to Shopify's authorize screen."""
    shop_domain = normalize_shop(shop)
    app_url = settings.shopify_app_url or str(request.base_url)
    url = build_install_url(shop_domain, app_url)
    logger.info("shopify_oauth_install", shop=shop_domain)
    return RedirectResponse(url, status_code=302)


@router.get("/auth/oauth")
async def oauth_callback(
    shop: str | None = None, code: str | None = None, hmac: str | None = None
) -> RedirectResponse:
    """Exchange the code, store the session, return to the Shopify admin."""
    if not shop or not code or not hmac:
        raise ValidationError("Missing required OAuth parameters", code="missing_oauth_params")
    shop_domain = normalize_shop(shop)
    logger.info("shopify_oauth_callback", shop=shop_domain)

    try:
        session = await exchange_code(shop_domain, code)
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to exchange OAuth code for token") from exc
    await sessions.store_session(session)

    if db.database_configured():
        try:
            await analytics.register_store(shop_domain, session.access_token)
        except Exception:
            # Analytics setup never blocks installation
            logger.exception("store_register_failed", shop=shop_domain)

    return RedirectResponse(admin_app_url(shop_domain), status_code=302)
