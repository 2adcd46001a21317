"""Keyword/regex intent detection for chatbot messages.

Decides whether a message needs order, policy or account data from Shopify
before the chat model answers. Flags are independent; a message can be
several kinds at once.
"""

from __future__ import annotations

import re

from app.models.contracts import QueryType

ORDER_KEYWORDS = (
    "order",
    "orders",
    "ordered",
    "purchase",
    "purchased",
    "delivery",
    "delivered",
    "track",
    "tracking",
    "shipment",
    "shipped",
    "fulfill",
    "status",
    "when will",
    "where is",
    "my order",
    "order number",
    "order #",
)

POLICY_KEYWORDS = (
    "policy",
    "policies",
    "shipping",
    "return",
    "refund",
    "exchange",
    "warranty",
    "terms",
    "conditions",
    "privacy",
    "faq",
    "frequently asked",
    "how to return",
    "return policy",
    "refund policy",
    "shipping policy",
    "delivery policy",
)

ACCOUNT_KEYWORDS = (
    "account",
    "profile",
    "my info",
    "my information",
    "customer",
    "previous order",
    "past order",
    "order history",
    "purchase history",
    "what did i buy",
    "my purchases",
    "my size",
    "size i ordered",
)

# First match wins
_ORDER_NUMBER_PATTERNS = (
    re.compile(r"#(\d+)"),
    re.compile(r"order\s*#?(\d+)", re.IGNORECASE),
    re.compile(r"order\s+(\d+)", re.IGNORECASE),
    re.compile(r"number\s*#?(\d+)", re.IGNORECASE),
)

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def _contains_any(message: str, keywords: tuple[str, ...]) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in keywords)


def is_order_query(message: str) -> bool:
    return _contains_any(message, ORDER_KEYWORDS)


def is_policy_query(message: str) -> bool:
    return _contains_any(message, POLICY_KEYWORDS)


def is_account_query(message: str) -> bool:
    return _contains_any(message, ACCOUNT_KEYWORDS)


def extract_order_number(message: str) -> str | None:
    for pattern in _ORDER_NUMBER_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def extract_email(message: str) -> str | None:
    match = _EMAIL_PATTERN.search(message)
    return match.group(0) if match else None


def classify(message: str) -> QueryType:
    return QueryType(
        is_order=is_order_query(message),
        is_policy=is_policy_query(message),
        is_account=is_account_query(message),
        order_number=extract_order_number(message),
        email=extract_email(message),
    )
