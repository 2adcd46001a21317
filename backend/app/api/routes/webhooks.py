"""Shopify webhooks: app uninstall and order creation.

Signature verification belongs to the Shopify edge; a missing
X-Shopify-Hmac-Sha256 header is logged and the webhook still processed.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Request

from app.api.deps import read_json_object
from app.models.contracts import WebhookAck
from app.services import analytics, sessions
from app.utils.api_errors import ValidationError

logger = structlog.get_logger()

router = APIRouter(tags=["shopify-webhooks"])

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"


async def _read_payload(request: Request, topic: str) -> dict[str, Any]:
    if not request.headers.get(HMAC_HEADER):
        logger.warning("webhook_missing_hmac", topic=topic)
    return await read_json_object(request, "Invalid webhook payload")


def _require_shop(payload: dict[str, Any], request: Request, topic: str) -> str:
    shop = analytics.webhook_shop_domain(payload, request.headers.get(SHOP_DOMAIN_HEADER))
    if not shop:
        logger.warning("webhook_missing_shop", topic=topic)
        raise ValidationError("Missing shop domain", code="missing_shop")
    return shop


@router.post("/webhooks/app-uninstalled")
async def app_uninstalled(request: Request) -> WebhookAck:
    payload = await _read_payload(request, "app/uninstalled")
    shop = _require_shop(payload, request, "app/uninstalled")
    logger.info("webhook_app_uninstalled", shop=shop)
    await sessions.delete_session(shop)
    return WebhookAck()


@router.post("/webhooks/orders-create")
async def orders_create(request: Request) -> WebhookAck:
    payload = await _read_payload(request, "orders/create")
    shop = _require_shop(payload, request, "orders/create")
    record = analytics.order_record_from_webhook(payload)
    logger.info(
        "webhook_order_received",
        shop=shop,
        shopify_order_id=record.shopify_order_id,
        order_name=record.order_name,
    )
    await analytics.track_order(shop, record)
    return WebhookAck()
