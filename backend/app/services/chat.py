"""Shopping assistant chat.

Builds a Gemini conversation from the widget's product context and history.
Order and policy questions pull live store data from Shopify when the shop
has a session. ``PRODUCT_RECOMMENDATION: {...}`` markers in the reply are
lifted out into structured recommendations.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import structlog
from google.genai import types

from app.config import settings
from app.models.contracts import (
    ChatRequest,
    ChatResponse,
    ConversationMessage,
    Product,
    QueryType,
)
from app.services import sessions
from app.shopify.client import ShopifyClient
from app.utils import redis_store
from app.utils.api_errors import ServiceError, UpstreamError
from app.utils.gemini import classify_error, extract_text, generate_content
from app.utils.query_classifier import classify

logger = structlog.get_logger()

SYSTEM_PROMPT = """You are the sales assistant for an online store that offers \
virtual try-on for fashion and sportswear. Help shoppers decide with confidence.

- Answer questions about fit, materials, sizing, styling and care.
- Suggest products that go well with what the shopper is viewing. Format every \
suggestion exactly as:
  PRODUCT_RECOMMENDATION: {"id": "product-id", "name": "Product Name", "price": 99, \
"reason": "Why this matches"}
- Ask a clarifying question when fit depends on the shopper's preferences.
- Keep replies to 2-4 sentences, be honest about limitations, and mention the \
virtual try-on when it helps.
- When store data (orders, policies) is provided, answer from it and do not \
invent order details.
"""

GREETING = (
    "Hi! I'm your shopping assistant. I can help you find the right product, "
    "check sizing, or answer questions about your order."
)

MAX_ORDERS_IN_CONTEXT = 5
_RECOMMENDATION = re.compile(r"PRODUCT_RECOMMENDATION:\s*(\{[^}]+\})")


def parse_recommendations(text: str) -> tuple[str, list[dict[str, Any]]]:
    """Split recommendation markers out of a reply.

    Markers whose JSON does not parse stay in the text.
    """
    recommendations: list[dict[str, Any]] = []
    cleaned = text
    for match in _RECOMMENDATION.finditer(text):
        try:
            recommendations.append(json.loads(match.group(1)))
        except json.JSONDecodeError:
            logger.debug("chat_recommendation_unparseable", raw=match.group(1)[:100])
            continue
        cleaned = cleaned.replace(match.group(0), "")
    return cleaned.strip(), recommendations


def _product_context(current: Product | None, products: list[Product]) -> str:
    sections: list[str] = []
    if current is not None:
        sections.append(
            "CURRENT PRODUCT CONTEXT:\n"
            f"The customer is viewing: {current.name}\n"
            f"Category: {current.category}\nType: {current.type}\n"
            f"Color: {current.color}\nPrice: ${current.price}\n"
            f"Description: {current.description}"
        )
    if products:
        lines = [
            f"- ID: {p.id}, Name: {p.name}, Category: {p.category}, "
            f"Type: {p.type}, Price: ${p.price}"
            for p in products
        ]
        sections.append("AVAILABLE PRODUCTS FOR RECOMMENDATIONS:\n" + "\n".join(lines))
    return "\n\n".join(sections)


def _summarize_order(order: dict[str, Any]) -> str:
    total = ((order.get("totalPriceSet") or {}).get("shopMoney")) or {}
    items = [
        f"{edge['node'].get('quantity', 1)}x {edge['node'].get('title', '')}"
        for edge in (order.get("lineItems") or {}).get("edges", [])
    ]
    tracking = [
        info.get("number")
        for fulfillment in order.get("fulfillments") or []
        for info in fulfillment.get("trackingInfo") or []
        if info.get("number")
    ]
    parts = [
        f"Order {order.get('name')}",
        f"placed {order.get('createdAt', 'unknown')}",
        f"payment {order.get('displayFinancialStatus', 'unknown')}",
        f"fulfillment {order.get('displayFulfillmentStatus', 'unknown')}",
        f"total {total.get('amount', '?')} {total.get('currencyCode', '')}".strip(),
    ]
    if items:
        parts.append("items: " + ", ".join(items))
    if tracking:
        parts.append("tracking: " + ", ".join(tracking))
    return "; ".join(parts)


async def fetch_store_context(shop: str, query: QueryType, email: str | None) -> str:
    """Live order/policy data for the prompt. Empty when unavailable."""
    if not (query.is_order or query.is_policy or query.is_account):
        return ""
    session = await sessions.get_session(shop)
    if session is None or not session.access_token:
        return ""

    client = ShopifyClient.from_session(session)
    sections: list[str] = []
    try:
        if query.is_order or query.is_account:
            orders: list[dict[str, Any]] = []
            if query.order_number:
                order = await client.get_order_by_name(query.order_number)
                orders = [order] if order else []
            elif email:
                orders = await client.get_customer_orders(email, first=MAX_ORDERS_IN_CONTEXT)
            if orders:
                sections.append(
                    "CUSTOMER ORDERS:\n" + "\n".join(_summarize_order(o) for o in orders)
                )
            elif query.order_number or email:
                sections.append("CUSTOMER ORDERS:\nNo matching orders were found.")

        if query.is_policy:
            policies = await client.get_shop_policies()
            policy_lines = [
                f"{label}:\n{body}"
                for label, body in (
                    ("Shipping policy", policies.shipping_policy),
                    ("Refund policy", policies.refund_policy),
                    ("Privacy policy", policies.privacy_policy),
                    ("Terms of service", policies.terms_of_service),
                )
                if body
            ]
            if policy_lines:
                sections.append("STORE POLICIES:\n" + "\n\n".join(policy_lines))
    except (UpstreamError, ServiceError, httpx.HTTPError) as exc:
        logger.warning("chat_store_context_failed", shop=shop, error=str(exc)[:200])
    return "\n\n".join(sections)


def build_contents(
    request: ChatRequest,
    history: list[ConversationMessage],
    store_context: str,
) -> list[types.Content]:
    context = "\n\n".join(
        part
        for part in (_product_context(request.current_product, request.all_products), store_context)
        if part
    )
    contents = [
        types.Content(role="user", parts=[types.Part(text=f"{SYSTEM_PROMPT}\n\n{context}".strip())]),
        types.Content(role="model", parts=[types.Part(text=GREETING)]),
    ]
    for msg in history:
        role = "user" if msg.role == "user" else "model"
        contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))
    contents.append(types.Content(role="user", parts=[types.Part(text=request.message)]))
    return contents


async def reply(request: ChatRequest) -> ChatResponse:
    query = classify(request.message)
    email = query.email or request.customer_email

    history = request.conversation_history
    if not history and request.session_id:
        history = await redis_store.get_conversation(request.session_id)

    store_context = ""
    if request.shop:
        store_context = await fetch_store_context(request.shop.strip().lower(), query, email)

    contents = build_contents(request, history, store_context)
    try:
        response = await generate_content(
            contents,
            model=settings.gemini_chat_model,
            timeout=settings.chat_timeout_seconds,
        )
    except Exception as exc:
        raise classify_error(exc, "Failed to process chat message") from exc

    message, recommendations = parse_recommendations(extract_text(response))
    logger.info(
        "chat_reply_generated",
        shop=request.shop,
        is_order=query.is_order,
        is_policy=query.is_policy,
        recommendations=len(recommendations),
    )

    if request.session_id:
        await redis_store.append_conversation(
            request.session_id,
            ConversationMessage(role="user", content=request.message),
            ConversationMessage(role="assistant", content=message),
        )
        if request.current_product is not None:
            await redis_store.set_context(
                request.session_id,
                {"current_product_id": request.current_product.id, "shop": request.shop},
            )

    return ChatResponse(message=message, recommendations=recommendations, query_type=query)
