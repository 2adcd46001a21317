"""Shopify Admin GraphQL client.

Every request goes through ``resilient_call`` (retry + timeout). Transport
failures, non-2xx responses and GraphQL ``errors`` payloads are decoded here
into ``UpstreamError``; callers never inspect raw responses.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from app.config import settings
from app.models.contracts import ApiError, ShopSession, StorePolicies
from app.shopify import queries
from app.utils.api_errors import UpstreamError, ValidationError, decode_http_error, normalize
from app.utils.cors import is_valid_shop_domain
from app.utils.retry import resilient_call

logger = structlog.get_logger()

PAGE_SIZE = 50
MAX_PAGES = 40


def customer_gid(customer_id: str) -> str:
    """Numeric Shopify customer ids become ``gid://shopify/Customer/{id}``."""
    if customer_id.startswith("gid://"):
        return customer_id
    return f"gid://shopify/Customer/{customer_id}"


def _edges(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", []) if edge.get("node")]


class ShopifyClient:
    """Thin async wrapper around one shop's Admin GraphQL endpoint."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        api_version: str | None = None,
    ) -> None:
        if not is_valid_shop_domain(shop):
            raise ValidationError(f"Invalid shop domain: {shop}", code="invalid_shop")
        self.shop = shop.strip().lower()
        self._access_token = access_token
        self._http_client = http_client
        self.api_version = api_version or settings.shopify_api_version

    @classmethod
    def from_session(cls, session: ShopSession, **kwargs: Any) -> ShopifyClient:
        return cls(session.shop, session.access_token, **kwargs)

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "X-Shopify-Access-Token": self._access_token,
            "Content-Type": "application/json",
        }
        timeout = settings.shopify_timeout_seconds
        if self._http_client is not None:
            return await self._http_client.post(
                self.endpoint, json=payload, headers=headers, timeout=timeout
            )
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=headers)

    async def _execute_once(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._post({"query": query, "variables": variables})
        except httpx.TransportError as exc:
            raise UpstreamError(normalize(exc)) from exc
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            raise UpstreamError(
                decode_http_error(response.status_code, body, response.reason_phrase)
            )
        if not isinstance(body, dict):
            raise UpstreamError(
                ApiError(message="Invalid response from Shopify", status_code=502)
            )

        errors = body.get("errors")
        if errors:
            # GraphQL errors arrive with HTTP 200; THROTTLED means rate limited
            api_error = decode_http_error(200, body)
            if api_error.code == "THROTTLED":
                api_error = api_error.model_copy(update={"status_code": 429, "retryable": True})
            else:
                api_error = api_error.model_copy(update={"status_code": None})
            raise UpstreamError(api_error)
        data: dict[str, Any] = body.get("data") or {}
        return data

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a query and return its ``data`` object."""
        return await resilient_call(lambda: self._execute_once(query, variables or {}))

    # --- Products ---

    async def get_products_page(
        self, first: int = PAGE_SIZE, after: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        """One page of products and the cursor for the next page (None at end)."""
        data = await self.graphql(queries.PRODUCTS, {"first": first, "after": after})
        connection = data.get("products") or {}
        page_info = connection.get("pageInfo") or {}
        cursor = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        return _edges(connection), cursor

    async def get_all_products(self) -> list[dict[str, Any]]:
        products: list[dict[str, Any]] = []
        cursor: str | None = None
        for _ in range(MAX_PAGES):
            page, cursor = await self.get_products_page(after=cursor)
            products.extend(page)
            if cursor is None:
                break
        else:
            logger.warning("shopify_products_page_limit", shop=self.shop, count=len(products))
        logger.info("shopify_products_fetched", shop=self.shop, count=len(products))
        return products

    async def get_product(self, id_or_handle: str) -> dict[str, Any] | None:
        if id_or_handle.startswith("gid://"):
            data = await self.graphql(queries.PRODUCT_BY_ID, {"id": id_or_handle})
            return data.get("product")
        data = await self.graphql(queries.PRODUCT_BY_HANDLE, {"handle": id_or_handle})
        return data.get("productByHandle")

    # --- Orders / customers ---

    async def get_customer_orders(self, email: str, first: int = 10) -> list[dict[str, Any]]:
        data = await self.graphql(
            queries.ORDERS_BY_QUERY, {"query": f"email:{email}", "first": first}
        )
        orders = _edges(data.get("orders"))
        logger.info("shopify_orders_fetched", shop=self.shop, count=len(orders))
        return orders

    async def get_order_by_name(self, order_name: str) -> dict[str, Any] | None:
        name = order_name.strip().lstrip("#")
        data = await self.graphql(queries.ORDERS_BY_QUERY, {"query": f"name:{name}", "first": 1})
        orders = _edges(data.get("orders"))
        return orders[0] if orders else None

    async def get_customer_by_email(self, email: str) -> dict[str, Any] | None:
        data = await self.graphql(queries.CUSTOMER_BY_EMAIL, {"query": f"email:{email}"})
        customers = _edges(data.get("customers"))
        return customers[0] if customers else None

    async def get_customer_by_id(self, customer_id: str) -> dict[str, Any] | None:
        data = await self.graphql(queries.CUSTOMER_BY_ID, {"id": customer_gid(customer_id)})
        return data.get("customer")

    async def get_customer_orders_by_id(
        self, customer_id: str, first: int = 10
    ) -> list[dict[str, Any]]:
        data = await self.graphql(
            queries.CUSTOMER_ORDERS_BY_ID, {"id": customer_gid(customer_id), "first": first}
        )
        customer = data.get("customer") or {}
        return _edges(customer.get("orders"))

    # --- Shop ---

    async def get_shop_policies(self) -> StorePolicies:
        data = await self.graphql(queries.SHOP_POLICIES)
        shop = data.get("shop") or {}

        def body(key: str) -> str | None:
            policy = shop.get(key)
            return policy.get("body") if policy else None

        return StorePolicies(
            shipping_policy=body("shippingPolicy"),
            refund_policy=body("refundPolicy"),
            privacy_policy=body("privacyPolicy"),
            terms_of_service=body("termsOfService"),
        )

    # --- Mutations ---

    async def update_customer_note(self, customer_id: str, note: str) -> dict[str, Any]:
        data = await self.graphql(
            queries.CUSTOMER_UPDATE_NOTE,
            {"input": {"id": customer_gid(customer_id), "note": note}},
        )
        result: dict[str, Any] = data.get("customerUpdate") or {}
        return result

    async def create_draft_order(self, draft_input: dict[str, Any]) -> dict[str, Any]:
        data = await self.graphql(queries.DRAFT_ORDER_CREATE, {"input": draft_input})
        result: dict[str, Any] = data.get("draftOrderCreate") or {}
        return result
