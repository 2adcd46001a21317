"""Order lookup for the chatbot widget (by customer email or order name)."""

from typing import Any

import structlog
from fastapi import APIRouter, Query, Request

from app.api.deps import require_session, resolve_shop
from app.models.contracts import OrdersRequest
from app.shopify.client import ShopifyClient
from app.utils.api_errors import NotFoundError, UpstreamError, ValidationError, to_service_error

logger = structlog.get_logger()

router = APIRouter(tags=["shopify"])

ORDERS_LIMIT = 10


@router.get("/orders")
async def get_orders(
    request: Request,
    email: str | None = None,
    order_name: str | None = Query(default=None, alias="orderName"),
) -> dict[str, Any]:
    """Single order when ``orderName`` is given, else the customer's recent orders."""
    shop = resolve_shop(request)
    session = await require_session(shop)

    client = ShopifyClient.from_session(session)
    try:
        if order_name:
            order = await client.get_order_by_name(order_name)
            if order is None:
                raise NotFoundError("Order not found")
            return {"order": order}
        if email:
            return {"orders": await client.get_customer_orders(email, first=ORDERS_LIMIT)}
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to fetch orders") from exc
    raise ValidationError("Either 'email' or 'orderName' parameter is required")


@router.post("/orders")
async def post_orders(request: Request, body: OrdersRequest) -> dict[str, Any]:
    """Order and/or customer profile plus orders; missing pieces are omitted."""
    shop = resolve_shop(request, body.shop)
    session = await require_session(shop)

    client = ShopifyClient.from_session(session)
    result: dict[str, Any] = {}
    try:
        if body.order_name:
            order = await client.get_order_by_name(body.order_name)
            if order is not None:
                result["order"] = order
        if body.email:
            customer = await client.get_customer_by_email(body.email)
            if customer is not None:
                result["customer"] = customer
            result["orders"] = await client.get_customer_orders(body.email, first=ORDERS_LIMIT)
    except UpstreamError as exc:
        raise to_service_error(exc, fallback="Failed to fetch orders") from exc

    logger.info("shopify_orders_lookup", shop=shop, keys=sorted(result))
    return result
