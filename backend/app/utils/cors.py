"""CORS origin policy for the storefront widgets.

Widgets run on ``*.myshopify.com`` storefronts and, during development, on
localhost or a tunnel. Allowed origins are echoed back with credentials.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS, PATCH"
ALLOWED_HEADERS = ", ".join(
    [
        "Content-Type",
        "Authorization",
        "x-shopify-customer-id",
        "x-shopify-customer-username",
        "x-user-id",
        "x-shopify-shop",
        "x-shopify-access-token",
        "x-shopify-domain",
        "X-Request-ID",
    ]
)
MAX_AGE_SECONDS = 86400

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})
_HOST_SUFFIXES = (
    ".myshopify.com",
    ".ngrok.io",
    ".ngrok-free.app",
    ".ngrok.app",
    ".loca.lt",
    ".trycloudflare.com",
)
_SHOP_DOMAIN = re.compile(r"^[a-z0-9][a-z0-9\-]*\.myshopify\.com$")


def is_valid_shop_domain(shop: str | None) -> bool:
    """True for ``<name>.myshopify.com`` domains."""
    return bool(shop) and bool(_SHOP_DOMAIN.match(shop.strip().lower()))


def is_allowed_origin(origin: str | None) -> bool:
    if not origin:
        return False
    parts = urlsplit(origin)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    host = parts.hostname.lower()
    if host in _LOCAL_HOSTS:
        return True
    # Storefronts and tunnels must be https
    return parts.scheme == "https" and host.endswith(_HOST_SUFFIXES)


def cors_headers(origin: str | None) -> dict[str, str]:
    """Headers to attach to a response for ``origin``; empty when disallowed."""
    if origin is None or not is_allowed_origin(origin):
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Max-Age": str(MAX_AGE_SECONDS),
        "Vary": "Origin",
    }
