"""Merchant analytics: try-on tracking, order tracking, dashboard."""

from typing import Any

from fastapi import APIRouter, Query, Request

from app.api.deps import read_json_object, resolve_shop
from app.models.contracts import TimeRange, TryOnEventInput
from app.services import analytics

router = APIRouter(tags=["analytics"])


@router.post("/track-try-on")
async def track_try_on(body: TryOnEventInput) -> dict[str, Any]:
    event = await analytics.track_try_on(body)
    return {"success": True, "event": event}


@router.get("/dashboard")
async def dashboard(
    request: Request,
    time_range: TimeRange = Query(default="30d", alias="timeRange"),
) -> dict[str, Any]:
    shop = resolve_shop(request)
    stats = await analytics.get_dashboard_stats(shop, time_range)
    top_products = await analytics.get_top_products(shop, time_range=time_range)
    plan = await analytics.get_store_plan(shop)
    return {
        "success": True,
        "stats": stats,
        "top_products": top_products,
        "plan": plan,
    }


@router.post("/orders")
async def track_order(request: Request) -> dict[str, Any]:
    """Manual order tracking with a webhook-shaped body plus ``shop_domain``."""
    payload = await read_json_object(request)
    if "shopify_order_id" in payload and "id" not in payload:
        payload = {**payload, "id": payload["shopify_order_id"]}
    shop = analytics.webhook_shop_domain(payload)
    if not shop:
        shop = resolve_shop(request)
    record = analytics.order_record_from_webhook(payload)
    order_id = await analytics.track_order(shop.lower(), record)
    return {"success": True, "order_id": order_id}


@router.get("/orders")
async def recent_orders(
    request: Request, limit: int = Query(default=50, ge=1, le=250)
) -> dict[str, Any]:
    shop = resolve_shop(request)
    orders = await analytics.list_orders(shop, limit)
    return {"success": True, "orders": orders, "count": len(orders)}
