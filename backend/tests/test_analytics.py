"""Tests for try-on/order analytics: payload decoding, rates and endpoints.

SQL is exercised against a mocked asyncpg connection; endpoint tests patch
the service functions.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from app.models.contracts import DashboardStats, OrderRecord, ProductAnalytics, TryOnEventInput
from app.services import analytics
from app.services.analytics import (
    order_record_from_webhook,
    product_analytics_from_row,
    webhook_shop_domain,
)
from app.utils.api_errors import ValidationError

SHOP = "cool-store.myshopify.com"


def _mock_connect(conn):
    connect = MagicMock()
    connect.return_value.__aenter__ = AsyncMock(return_value=conn)
    connect.return_value.__aexit__ = AsyncMock(return_value=False)
    return connect


class TestOrderRecordFromWebhook:
    def test_minimal_payload(self):
        record = order_record_from_webhook(
            {"shop_domain": SHOP, "id": "123", "total_price": "19.99"}
        )
        assert record.shopify_order_id == "123"
        assert record.total_price == 19.99
        assert record.currency_code == "USD"

    def test_full_payload(self):
        record = order_record_from_webhook(
            {
                "id": 5551234,
                "name": "#1042",
                "order_number": 1042,
                "email": "jane@example.com",
                "customer": {"id": 77},
                "total_price": "120.50",
                "currency": "EUR",
                "financial_status": "paid",
                "line_items": [{"product_id": 9, "quantity": 1}],
            }
        )
        assert record.shopify_order_id == "5551234"
        assert record.order_name == "#1042"
        assert record.order_number == "1042"
        assert record.shopify_customer_id == "77"
        assert record.currency_code == "EUR"
        assert record.order_status == "paid"
        assert record.line_items == [{"product_id": 9, "quantity": 1}]

    def test_unparseable_price_is_zero(self):
        assert order_record_from_webhook({"id": "1", "total_price": "n/a"}).total_price == 0.0

    def test_missing_id(self):
        with pytest.raises(ValidationError):
            order_record_from_webhook({"shop_domain": SHOP})

    def test_shop_domain_fallbacks(self):
        assert webhook_shop_domain({"domain": SHOP}) == SHOP
        assert webhook_shop_domain({}, "header.myshopify.com") == "header.myshopify.com"
        assert webhook_shop_domain({}) is None


class TestProductAnalytics:
    def test_rate_is_percentage(self):
        row = {
            "product_id": "p1",
            "product_name": "Linen Shirt",
            "product_image_url": None,
            "product_url": None,
            "try_on_count": 8,
            "order_count": 2,
        }
        assert product_analytics_from_row(row).conversion_rate == 25.0

    def test_unknown_name_and_zero_try_ons(self):
        row = {
            "product_id": "p2",
            "product_name": None,
            "product_image_url": None,
            "product_url": None,
            "try_on_count": 0,
            "order_count": 0,
        }
        result = product_analytics_from_row(row)
        assert result.product_name == "Unknown Product"
        assert result.conversion_rate == 0.0


class TestTrackTryOn:
    @pytest.mark.asyncio
    async def test_requires_shop(self):
        with pytest.raises(ValidationError):
            await analytics.track_try_on(TryOnEventInput(product_id="p1"))

    @pytest.mark.asyncio
    async def test_inserts_event_and_counts_usage(self):
        conn = MagicMock()
        conn.fetchrow = AsyncMock(
            side_effect=[{"id": 1}, {"id": 10, "shop_domain": SHOP, "product_id": "p1"}]
        )
        conn.execute = AsyncMock()
        with patch.object(analytics.db, "connect", _mock_connect(conn)):
            event = await analytics.track_try_on(
                TryOnEventInput(shop_domain=SHOP, product_id="p1", metadata={"source": "pdp"})
            )
        assert event["id"] == 10
        insert_args = conn.fetchrow.call_args_list[1][0]
        assert insert_args[-1] == '{"source": "pdp"}'
        usage_args = conn.execute.call_args[0]
        assert usage_args[1:] == (1, "try_ons")


class TestTrackOrder:
    @pytest.mark.asyncio
    async def test_conversion_match_failure_does_not_fail_order(self):
        conn = MagicMock()
        conn.fetchrow = AsyncMock(return_value={"id": 1})
        conn.fetchval = AsyncMock(return_value=42)
        conn.execute = AsyncMock()
        conn.fetch = AsyncMock(side_effect=asyncpg.PostgresError("boom"))
        record = OrderRecord(shopify_order_id="123", customer_email="jane@example.com")
        with patch.object(analytics.db, "connect", _mock_connect(conn)):
            order_id = await analytics.track_order(SHOP, record)
        assert order_id == 42

    @pytest.mark.asyncio
    async def test_matches_try_ons(self):
        conn = MagicMock()
        conn.fetch = AsyncMock(
            return_value=[
                {"id": 7, "product_id": "p1", "customer_email": "j@x.com", "shopify_customer_id": None}
            ]
        )
        conn.execute = AsyncMock()
        record = OrderRecord(shopify_order_id="1", customer_email="j@x.com")
        matched = await analytics.match_order_to_try_ons(conn, 1, SHOP, 42, record)
        assert matched == 1
        args = conn.execute.call_args[0]
        assert "ON CONFLICT (try_on_event_id, order_id) DO NOTHING" in args[0]
        assert args[1:] == (1, SHOP, 7, 42, "p1", "j@x.com", None)

    @pytest.mark.asyncio
    async def test_anonymous_order_skips_matching(self):
        conn = MagicMock()
        conn.fetch = AsyncMock()
        matched = await analytics.match_order_to_try_ons(
            conn, 1, SHOP, 42, OrderRecord(shopify_order_id="1")
        )
        assert matched == 0
        conn.fetch.assert_not_awaited()


class TestAnalyticsEndpoints:
    @pytest.mark.asyncio
    async def test_dashboard(self, client):
        stats = DashboardStats(total_try_ons=10, total_conversions=2, conversion_rate=20.0)
        top = [ProductAnalytics(product_id="p1", try_on_count=10, order_count=2, conversion_rate=20.0)]
        with (
            patch.object(analytics, "get_dashboard_stats", AsyncMock(return_value=stats)) as get_stats,
            patch.object(analytics, "get_top_products", AsyncMock(return_value=top)),
            patch.object(analytics, "get_store_plan", AsyncMock(return_value=None)),
        ):
            resp = await client.get(
                "/api/analytics/dashboard", params={"shop": SHOP, "timeRange": "7d"}
            )
        assert resp.status_code == 200
        body = resp.json()
        assert body["stats"]["conversion_rate"] == 20.0
        assert body["top_products"][0]["product_id"] == "p1"
        assert body["plan"] is None
        assert get_stats.call_args[0] == (SHOP, "7d")

    @pytest.mark.asyncio
    async def test_dashboard_rejects_unknown_range(self, client):
        resp = await client.get("/api/analytics/dashboard", params={"shop": SHOP, "timeRange": "1y"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_dashboard_requires_shop(self, client):
        resp = await client.get("/api/analytics/dashboard")
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_track_try_on(self, client):
        with patch.object(
            analytics, "track_try_on", AsyncMock(return_value={"id": 1, "shop_domain": SHOP})
        ):
            resp = await client.post(
                "/api/analytics/track-try-on", json={"shop_domain": SHOP, "product_id": "p1"}
            )
        assert resp.status_code == 200
        assert resp.json()["event"]["id"] == 1

    @pytest.mark.asyncio
    async def test_manual_order_tracking(self, client):
        track = AsyncMock(return_value=5)
        with patch.object(analytics, "track_order", track):
            resp = await client.post(
                "/api/analytics/orders",
                json={"shop_domain": SHOP, "shopify_order_id": "999", "total_price": 10},
            )
        assert resp.status_code == 200
        assert resp.json()["order_id"] == 5
        assert track.call_args[0][1].shopify_order_id == "999"

    @pytest.mark.asyncio
    async def test_manual_order_requires_order_id(self, client):
        resp = await client.post("/api/analytics/orders", json={"shop_domain": SHOP})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_manual_order_malformed_body_is_400(self, client):
        resp = await client.post(
            "/api/analytics/orders",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "invalid_payload",
            "message": "Invalid request body",
            "retryable": False,
        }

    @pytest.mark.asyncio
    async def test_manual_order_non_object_body_is_400(self, client):
        resp = await client.post("/api/analytics/orders", json=["999"])
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_payload"

    @pytest.mark.asyncio
    async def test_recent_orders(self, client):
        orders = [{"shopify_order_id": "1", "line_items": []}]
        with patch.object(analytics, "list_orders", AsyncMock(return_value=orders)):
            resp = await client.get("/api/analytics/orders", params={"shop": SHOP, "limit": 5})
        assert resp.json() == {"success": True, "orders": orders, "count": 1}
