"""Shopify product mapping and the cached per-shop product listing."""

from __future__ import annotations

import re
from typing import Any

import structlog

from app.config import settings
from app.models.contracts import Product, ShopSession
from app.shopify.client import ShopifyClient
from app.utils.cache import TTLCache

logger = structlog.get_logger()

_COLOR_WORD = re.compile(
    r"^(red|blue|green|black|white|yellow|orange|purple|pink|brown|gray|grey)", re.IGNORECASE
)

product_cache: TTLCache[list[Product]] = TTLCache(ttl=settings.product_cache_ttl_seconds)


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _pick_color(tags: list[str], variant_title: str | None) -> str:
    for tag in tags:
        if tag.lower().startswith("color:"):
            return tag[len("color:") :].strip()
    if variant_title:
        first = variant_title.split("/")[0].strip()
        if first:
            return first
    for tag in tags:
        if _COLOR_WORD.match(tag):
            return tag
    return ""


def map_product(node: dict[str, Any], shop: str | None = None) -> Product:
    """Convert a Shopify product node into the widget Product shape."""
    variants = [edge["node"] for edge in (node.get("variants") or {}).get("edges", [])]
    images = [edge["node"]["url"] for edge in (node.get("images") or {}).get("edges", [])]
    first_variant = variants[0] if variants else {}
    tags: list[str] = node.get("tags") or []

    if first_variant.get("price"):
        price = _to_float(first_variant["price"])
    else:
        min_price = ((node.get("priceRangeV2") or {}).get("minVariantPrice") or {}).get("amount")
        price = _to_float(min_price)

    handle = node.get("handle")
    url = node.get("onlineStoreUrl")
    if not url and handle and shop:
        url = f"https://{shop}/products/{handle}"

    return Product(
        id=node.get("id") or handle or "",
        name=node.get("title") or "",
        category=node.get("productType") or "Uncategorized",
        type=node.get("productType") or "",
        color=_pick_color(tags, first_variant.get("title")),
        price=price,
        images=images,
        description=node.get("description") or "",
        url=url,
        sizes=[v["title"] for v in variants if v.get("title")] or None,
        metadata={
            "platform": "shopify",
            "shopifyId": node.get("id"),
            "shopifyHandle": handle,
            "tags": tags,
            "vendor": node.get("vendor"),
        },
    )


async def list_products(session: ShopSession) -> tuple[list[Product], bool]:
    """All products for the shop and whether they came from the cache."""
    cached = product_cache.get(session.shop)
    if cached is not None:
        logger.debug("product_cache_hit", shop=session.shop, count=len(cached))
        return cached, True

    client = ShopifyClient.from_session(session)
    nodes = await client.get_all_products()
    products = [map_product(node, session.shop) for node in nodes]
    product_cache.set(session.shop, products)
    return products, False


async def get_product(session: ShopSession, id_or_handle: str) -> Product | None:
    client = ShopifyClient.from_session(session)
    node = await client.get_product(id_or_handle)
    return map_product(node, session.shop) if node else None
