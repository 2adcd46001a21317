"""Try-on and order analytics over Postgres.

Stores are created lazily on first event. Orders are upserted on
(shop_domain, shopify_order_id); each new order is matched against the same
customer's recent try-ons to record conversions. Conversion matching is
best-effort and never fails the order write.
"""

from __future__ import annotations

import json
from typing import Any

import asyncpg
import structlog

from app.config import settings
from app.models.contracts import (
    DashboardStats,
    OrderRecord,
    ProductAnalytics,
    TimeRange,
    TryOnEventInput,
)
from app.utils import db
from app.utils.api_errors import ValidationError

logger = structlog.get_logger()

PERIOD_DAYS: dict[str, int | None] = {"7d": 7, "30d": 30, "90d": 90, "all": None}
UNKNOWN_PRODUCT_NAME = "Unknown Product"


# === Webhook payload decoding ===


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def webhook_shop_domain(payload: dict[str, Any], header_shop: str | None = None) -> str | None:
    """Shop domain from an orders webhook body, falling back to the header."""
    return (
        _as_str(payload.get("shop_domain"))
        or _as_str(payload.get("domain"))
        or _as_str(payload.get("shop"))
        or _as_str(header_shop)
    )


def order_record_from_webhook(payload: dict[str, Any]) -> OrderRecord:
    """Build an OrderRecord from a Shopify orders/create payload.

    Raises ValidationError when the payload carries no order id.
    """
    order_id = _as_str(payload.get("id")) or _as_str(payload.get("order_id"))
    if not order_id:
        raise ValidationError("Missing order ID", code="missing_order_id")

    customer = payload.get("customer") or {}
    return OrderRecord(
        shopify_order_id=order_id,
        order_name=_as_str(payload.get("name")) or _as_str(payload.get("order_name")),
        order_number=_as_str(payload.get("order_number")),
        customer_email=_as_str(payload.get("email")) or _as_str(customer.get("email")),
        shopify_customer_id=_as_str(payload.get("customer_id")) or _as_str(customer.get("id")),
        total_price=_parse_price(payload.get("total_price") or payload.get("total") or "0"),
        currency_code=_as_str(payload.get("currency"))
        or _as_str(payload.get("currency_code"))
        or "USD",
        line_items=payload.get("line_items") or payload.get("lineItems") or [],
        order_status=_as_str(payload.get("financial_status"))
        or _as_str(payload.get("fulfillment_status"))
        or "pending",
    )


# === Writes ===

_STORE_UPSERT_SQL = """
INSERT INTO stores (shop_domain, shop_name, access_token)
VALUES ($1, $2, $3)
ON CONFLICT (shop_domain) DO UPDATE SET
    access_token = COALESCE(EXCLUDED.access_token, stores.access_token),
    updated_at = NOW()
RETURNING id, shop_domain, shop_name, plan_id, plan_name, plan_limits, plan_usage, is_active
"""

_INCREMENT_USAGE_SQL = """
UPDATE stores
SET plan_usage = jsonb_set(
        plan_usage, ARRAY[$2::text],
        to_jsonb(COALESCE((plan_usage ->> $2)::int, 0) + 1)
    ),
    updated_at = NOW()
WHERE id = $1
"""


async def get_or_create_store(
    conn: asyncpg.Connection,
    shop_domain: str,
    shop_name: str | None = None,
    access_token: str | None = None,
) -> asyncpg.Record:
    return await conn.fetchrow(_STORE_UPSERT_SQL, shop_domain, shop_name, access_token)


async def register_store(shop_domain: str, access_token: str | None = None) -> None:
    """Create or refresh the store row after OAuth."""
    shop_name = shop_domain.removesuffix(".myshopify.com")
    async with db.connect() as conn:
        await get_or_create_store(conn, shop_domain, shop_name, access_token)


async def track_try_on(event: TryOnEventInput) -> dict[str, Any]:
    if not event.shop_domain:
        raise ValidationError("shop_domain is required", code="missing_shop")

    async with db.connect() as conn:
        store = await get_or_create_store(conn, event.shop_domain)
        row = await conn.fetchrow(
            """
            INSERT INTO try_on_events (
                store_id, shop_domain, product_id, product_name, product_url,
                product_image_url, customer_id, customer_email, shopify_customer_id, metadata
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb)
            RETURNING id, shop_domain, product_id, event_type, created_at
            """,
            store["id"],
            event.shop_domain,
            event.product_id,
            event.product_name,
            event.product_url,
            event.product_image_url,
            event.customer_id,
            event.customer_email,
            event.shopify_customer_id,
            json.dumps(event.metadata) if event.metadata is not None else None,
        )
        await conn.execute(_INCREMENT_USAGE_SQL, store["id"], "try_ons")

    logger.info("try_on_tracked", shop=event.shop_domain, product_id=event.product_id)
    return dict(row)


_ORDER_UPSERT_SQL = """
INSERT INTO orders (
    store_id, shop_domain, shopify_order_id, order_name, order_number,
    customer_email, shopify_customer_id, total_price, currency_code,
    line_items, order_status
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11)
ON CONFLICT (shop_domain, shopify_order_id) DO UPDATE SET
    order_status = EXCLUDED.order_status,
    total_price = EXCLUDED.total_price,
    updated_at = NOW()
RETURNING id
"""

_MATCH_TRY_ONS_SQL = """
SELECT id, product_id, customer_email, shopify_customer_id
FROM try_on_events
WHERE shop_domain = $1
  AND created_at >= NOW() - make_interval(hours => $2)
  AND (
    ($3::text IS NOT NULL AND customer_email = $3)
    OR ($4::text IS NOT NULL AND shopify_customer_id = $4)
  )
"""

_INSERT_CONVERSION_SQL = """
INSERT INTO order_conversions (
    store_id, shop_domain, try_on_event_id, order_id, product_id,
    customer_email, shopify_customer_id
)
VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (try_on_event_id, order_id) DO NOTHING
"""


async def match_order_to_try_ons(
    conn: asyncpg.Connection,
    store_id: int,
    shop_domain: str,
    order_id: int,
    record: OrderRecord,
) -> int:
    """Link the order to the customer's try-ons within the conversion window."""
    if not record.customer_email and not record.shopify_customer_id:
        return 0
    try_ons = await conn.fetch(
        _MATCH_TRY_ONS_SQL,
        shop_domain,
        settings.conversion_window_hours,
        record.customer_email,
        record.shopify_customer_id,
    )
    for try_on in try_ons:
        await conn.execute(
            _INSERT_CONVERSION_SQL,
            store_id,
            shop_domain,
            try_on["id"],
            order_id,
            try_on["product_id"],
            try_on["customer_email"],
            try_on["shopify_customer_id"],
        )
    return len(try_ons)


async def track_order(shop_domain: str, record: OrderRecord) -> int:
    """Upsert an order and record conversions. Returns the order row id."""
    async with db.connect() as conn:
        store = await get_or_create_store(conn, shop_domain)
        order_id: int = await conn.fetchval(
            _ORDER_UPSERT_SQL,
            store["id"],
            shop_domain,
            record.shopify_order_id,
            record.order_name,
            record.order_number,
            record.customer_email,
            record.shopify_customer_id,
            record.total_price,
            record.currency_code,
            json.dumps(record.line_items),
            record.order_status,
        )
        await conn.execute(_INCREMENT_USAGE_SQL, store["id"], "orders")

        try:
            matched = await match_order_to_try_ons(
                conn, store["id"], shop_domain, order_id, record
            )
            logger.info("order_conversions_matched", shop=shop_domain, matched=matched)
        except asyncpg.PostgresError:
            logger.exception(
                "order_conversion_match_failed",
                shop=shop_domain,
                shopify_order_id=record.shopify_order_id,
            )

    logger.info("order_tracked", shop=shop_domain, shopify_order_id=record.shopify_order_id)
    return order_id


# === Reads ===


def _rate(numerator: int, denominator: int) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0.0


async def get_dashboard_stats(shop_domain: str, time_range: TimeRange = "30d") -> DashboardStats:
    days = PERIOD_DAYS[time_range]
    async with db.connect() as conn:
        row = await conn.fetchrow(
            """
            SELECT
              (SELECT COUNT(*) FROM try_on_events WHERE shop_domain = $1) AS total_try_ons,
              (SELECT COUNT(*) FROM try_on_events WHERE shop_domain = $1
                 AND ($2::int IS NULL OR created_at >= NOW() - make_interval(days => $2)))
                 AS period_try_ons,
              (SELECT COUNT(*) FROM orders WHERE shop_domain = $1) AS total_orders,
              (SELECT COUNT(*) FROM orders WHERE shop_domain = $1
                 AND ($2::int IS NULL OR created_at >= NOW() - make_interval(days => $2)))
                 AS period_orders,
              (SELECT COUNT(DISTINCT try_on_event_id) FROM order_conversions
                 WHERE shop_domain = $1) AS total_conversions,
              (SELECT COUNT(DISTINCT oc.try_on_event_id)
                 FROM order_conversions oc
                 JOIN try_on_events t ON oc.try_on_event_id = t.id
                 WHERE oc.shop_domain = $1
                   AND ($2::int IS NULL OR t.created_at >= NOW() - make_interval(days => $2)))
                 AS period_conversions
            """,
            shop_domain,
            days,
        )

    total_try_ons = int(row["total_try_ons"] or 0)
    period_try_ons = int(row["period_try_ons"] or 0)
    total_conversions = int(row["total_conversions"] or 0)
    period_conversions = int(row["period_conversions"] or 0)
    return DashboardStats(
        total_try_ons=total_try_ons,
        total_orders=int(row["total_orders"] or 0),
        total_conversions=total_conversions,
        conversion_rate=_rate(total_conversions, total_try_ons),
        try_ons_this_period=period_try_ons,
        orders_this_period=int(row["period_orders"] or 0),
        conversions_this_period=period_conversions,
        conversion_rate_this_period=_rate(period_conversions, period_try_ons),
    )


def product_analytics_from_row(row: Any) -> ProductAnalytics:
    try_on_count = int(row["try_on_count"] or 0)
    order_count = int(row["order_count"] or 0)
    return ProductAnalytics(
        product_id=row["product_id"],
        product_name=row["product_name"] or UNKNOWN_PRODUCT_NAME,
        product_image_url=row["product_image_url"],
        product_url=row["product_url"],
        try_on_count=try_on_count,
        order_count=order_count,
        conversion_rate=_rate(order_count, try_on_count),
    )


async def get_top_products(
    shop_domain: str, limit: int = 10, time_range: TimeRange = "30d"
) -> list[ProductAnalytics]:
    days = PERIOD_DAYS[time_range]
    async with db.connect() as conn:
        rows = await conn.fetch(
            """
            SELECT t.product_id, t.product_name, t.product_image_url, t.product_url,
                   COUNT(t.id) AS try_on_count,
                   COUNT(DISTINCT oc.order_id) AS order_count
            FROM try_on_events t
            LEFT JOIN order_conversions oc ON t.id = oc.try_on_event_id
            WHERE t.shop_domain = $1
              AND t.product_id IS NOT NULL
              AND ($2::int IS NULL OR t.created_at >= NOW() - make_interval(days => $2))
            GROUP BY t.product_id, t.product_name, t.product_image_url, t.product_url
            ORDER BY try_on_count DESC
            LIMIT $3
            """,
            shop_domain,
            days,
            limit,
        )
    return [product_analytics_from_row(row) for row in rows]


def _decode_jsonb(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


async def get_store_plan(shop_domain: str) -> dict[str, Any] | None:
    async with db.connect() as conn:
        row = await conn.fetchrow(
            "SELECT plan_id, plan_name, plan_limits, plan_usage FROM stores "
            "WHERE shop_domain = $1",
            shop_domain,
        )
    if row is None:
        return None
    return {
        "plan_id": row["plan_id"],
        "plan_name": row["plan_name"],
        "plan_limits": _decode_jsonb(row["plan_limits"]),
        "plan_usage": _decode_jsonb(row["plan_usage"]),
    }


async def list_orders(shop_domain: str, limit: int = 50) -> list[dict[str, Any]]:
    async with db.connect() as conn:
        rows = await conn.fetch(
            """
            SELECT shopify_order_id, order_name, order_number, customer_email,
                   shopify_customer_id, total_price, currency_code, line_items,
                   order_status, created_at
            FROM orders
            WHERE shop_domain = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            shop_domain,
            limit,
        )
    orders = []
    for row in rows:
        order = dict(row)
        order["line_items"] = _decode_jsonb(order["line_items"]) or []
        orders.append(order)
    return orders
