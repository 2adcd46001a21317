"""Tests for the Shopify Admin GraphQL client.

Shopify is replaced by an httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from app.config import settings
from app.shopify.client import ShopifyClient, customer_gid
from app.utils.api_errors import UpstreamError, ValidationError

SHOP = "cool-store.myshopify.com"


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "retry_base_delay_seconds", 0.0)


class _Shopify:
    """Queue of canned responses; records every request body."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        status, body = self.responses.pop(0)
        return httpx.Response(status, json=body)


def _client(shopify):
    http = httpx.AsyncClient(transport=httpx.MockTransport(shopify))
    return ShopifyClient(SHOP, "shpat_test", http_client=http)


def _page(titles, next_cursor=None):
    return {
        "data": {
            "products": {
                "edges": [{"node": {"id": f"gid://shopify/Product/{t}", "title": t}} for t in titles],
                "pageInfo": {"hasNextPage": next_cursor is not None, "endCursor": next_cursor},
            }
        }
    }


class TestConstruction:
    def test_rejects_invalid_shop(self):
        with pytest.raises(ValidationError):
            ShopifyClient("evil.example.com", "token")

    def test_endpoint_uses_api_version(self):
        client = ShopifyClient(SHOP, "token", api_version="2024-10")
        assert client.endpoint == f"https://{SHOP}/admin/api/2024-10/graphql.json"

    def test_customer_gid(self):
        assert customer_gid("42") == "gid://shopify/Customer/42"
        assert customer_gid("gid://shopify/Customer/42") == "gid://shopify/Customer/42"


class TestGraphql:
    @pytest.mark.asyncio
    async def test_returns_data(self):
        shopify = _Shopify((200, {"data": {"shop": {"name": "Cool"}}}))
        data = await _client(shopify).graphql("{ shop { name } }")
        assert data == {"shop": {"name": "Cool"}}

    @pytest.mark.asyncio
    async def test_http_error_decoded(self):
        shopify = _Shopify((401, {"errors": "[API] Invalid API key or access token"}))
        with pytest.raises(UpstreamError) as excinfo:
            await _client(shopify).graphql("{ shop { name } }")
        assert excinfo.value.status_code == 401
        assert len(shopify.requests) == 1

    @pytest.mark.asyncio
    async def test_throttled_is_retried(self):
        throttled = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
        shopify = _Shopify((200, throttled), (200, {"data": {"ok": True}}))
        data = await _client(shopify).graphql("{ ok }")
        assert data == {"ok": True}
        assert len(shopify.requests) == 2

    @pytest.mark.asyncio
    async def test_graphql_error_not_retried(self):
        shopify = _Shopify((200, {"errors": [{"message": "Field 'x' doesn't exist"}]}))
        with pytest.raises(UpstreamError) as excinfo:
            await _client(shopify).graphql("{ x }")
        assert excinfo.value.api_error.message == "Field 'x' doesn't exist"
        assert not excinfo.value.api_error.retryable
        assert len(shopify.requests) == 1

    @pytest.mark.asyncio
    async def test_server_unavailable_retried_then_raised(self, monkeypatch):
        monkeypatch.setattr(settings, "retry_max_retries", 2)
        shopify = _Shopify((503, None), (503, None), (503, None))
        with pytest.raises(UpstreamError) as excinfo:
            await _client(shopify).graphql("{ shop { name } }")
        assert excinfo.value.status_code == 503
        assert len(shopify.requests) == 3


    @pytest.mark.asyncio
    async def test_connection_failure_decoded(self, monkeypatch):
        monkeypatch.setattr(settings, "retry_max_retries", 1)
        attempts = []

        def refuse(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        client = ShopifyClient(SHOP, "shpat_test", http_client=http)
        with pytest.raises(UpstreamError) as excinfo:
            await client.graphql("{ shop { name } }")
        assert excinfo.value.api_error.code == "NETWORK_ERROR"
        assert excinfo.value.api_error.retryable
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
        assert len(attempts) == 2


class TestProducts:
    @pytest.mark.asyncio
    async def test_follows_pagination(self):
        shopify = _Shopify((200, _page(["a", "b"], "cursor-1")), (200, _page(["c"])))
        products = await _client(shopify).get_all_products()
        assert [p["title"] for p in products] == ["a", "b", "c"]
        assert shopify.requests[1]["variables"]["after"] == "cursor-1"


class TestOrders:
    @pytest.mark.asyncio
    async def test_order_by_name_strips_hash(self):
        order = {"id": "gid://shopify/Order/1", "name": "#1042"}
        shopify = _Shopify((200, {"data": {"orders": {"edges": [{"node": order}]}}}))
        result = await _client(shopify).get_order_by_name("#1042")
        assert result == order
        assert shopify.requests[0]["variables"]["query"] == "name:1042"

    @pytest.mark.asyncio
    async def test_order_by_name_missing(self):
        shopify = _Shopify((200, {"data": {"orders": {"edges": []}}}))
        assert await _client(shopify).get_order_by_name("9999") is None

    @pytest.mark.asyncio
    async def test_customer_orders_query_by_email(self):
        shopify = _Shopify((200, {"data": {"orders": {"edges": []}}}))
        await _client(shopify).get_customer_orders("jane@example.com")
        assert shopify.requests[0]["variables"]["query"] == "email:jane@example.com"


class TestPolicies:
    @pytest.mark.asyncio
    async def test_policy_bodies(self):
        shopify = _Shopify(
            (
                200,
                {
                    "data": {
                        "shop": {
                            "shippingPolicy": {"body": "Ships in 2 days"},
                            "refundPolicy": None,
                            "privacyPolicy": {"body": "We keep it safe"},
                            "termsOfService": None,
                        }
                    }
                },
            )
        )
        policies = await _client(shopify).get_shop_policies()
        assert policies.shipping_policy == "Ships in 2 days"
        assert policies.refund_policy is None
        assert policies.privacy_policy == "We keep it safe"
