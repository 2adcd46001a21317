"""Error taxonomy and upstream error normalization.

Upstream failures are decoded once, at the HTTP client boundary, into an
``UpstreamError`` carrying an ``ApiError``. Everything else in the app only
sees that exception or the local ``ServiceError`` taxonomy.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from app.logging import sanitize_message
from app.models.contracts import ApiError

logger = structlog.get_logger()

RETRYABLE_STATUS_CODES = frozenset({429, 503, 504})
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class ServiceError(Exception):
    """Base class for errors raised by routes and services.

    Serialized by the app-level exception handler as ErrorResponse JSON.
    """

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    @property
    def retryable(self) -> bool:
        return is_retryable_error(self.status_code)


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"


class AuthError(ServiceError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class RateLimited(ServiceError):
    status_code = 429
    code = "rate_limited"


class UpstreamTimeout(ServiceError):
    status_code = 504
    code = "upstream_timeout"


class UnknownError(ServiceError):
    status_code = 500
    code = "unknown_error"


class UpstreamError(Exception):
    """A decoded upstream failure (Shopify, Gemini, OAuth token endpoint)."""

    def __init__(self, api_error: ApiError) -> None:
        super().__init__(api_error.message)
        self.api_error = api_error

    @property
    def status_code(self) -> int | None:
        return self.api_error.status_code


def is_retryable_error(status_code: int | None = None, message: str | None = None) -> bool:
    """Decide whether a failed upstream call is worth retrying.

    429, 503 and 504 are retryable; every other 4xx is not. Without a status,
    messages mentioning a network problem or a timeout are retryable.
    """
    if status_code is not None:
        if status_code in RETRYABLE_STATUS_CODES:
            return True
        if 400 <= status_code < 500:
            return False
    if message:
        lowered = message.lower()
        return "network" in lowered or "timeout" in lowered
    return False


def decode_http_error(status_code: int, body: Any = None, reason: str = "") -> ApiError:
    """Build an ApiError from an HTTP status and its (parsed) body.

    GraphQL-style bodies (``{"errors": [{"message", "extensions": {"code"}}]}``)
    supply the message and code; otherwise the reason phrase or a generic
    ``HTTP <status> error`` is used.
    """
    retryable = is_retryable_error(status_code)
    errors = body.get("errors") if isinstance(body, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        extensions = first.get("extensions") or {}
        return ApiError(
            message=first.get("message") or reason or f"HTTP {status_code} error",
            code=extensions.get("code") if isinstance(extensions, dict) else None,
            retryable=retryable,
            status_code=status_code,
        )
    return ApiError(
        message=reason or f"HTTP {status_code} error",
        retryable=retryable,
        status_code=status_code,
    )


def _decode_httpx_status_error(error: httpx.HTTPStatusError) -> ApiError:
    response = error.response
    try:
        body = response.json()
    except ValueError:
        body = None
    return decode_http_error(response.status_code, body, response.reason_phrase)


def normalize(error: BaseException) -> ApiError:
    """Map any failure to a single ApiError shape."""
    if isinstance(error, UpstreamError):
        return error.api_error
    if isinstance(error, httpx.HTTPStatusError):
        return _decode_httpx_status_error(error)
    if isinstance(error, httpx.TimeoutException):
        return ApiError(message=str(error) or "Request timeout", code="TIMEOUT", retryable=True)
    if isinstance(error, httpx.TransportError):
        return ApiError(
            message=str(error) or "Network error", code="NETWORK_ERROR", retryable=True
        )
    if isinstance(error, ServiceError):
        return ApiError(
            message=error.message or f"HTTP {error.status_code} error",
            code=error.code,
            retryable=is_retryable_error(error.status_code),
            status_code=error.status_code,
        )
    return ApiError(message=str(error) or UNKNOWN_ERROR_MESSAGE, retryable=False)


_RATE_LIMIT_MESSAGE = "Too many requests. Please try again shortly."
_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again."


def to_service_error(error: BaseException, *, fallback: str = "Failed to process request") -> ServiceError:
    """Convert an upstream failure to the ServiceError a route should raise.

    ServiceErrors pass through unchanged. Others are normalized and mapped:
    429 to RateLimited, other retryable failures to UpstreamTimeout, 404 to
    NotFoundError, the rest to UnknownError with a generic message.
    """
    if isinstance(error, ServiceError):
        return error
    api_error = normalize(error)
    logger.warning(
        "upstream_error_normalized",
        status_code=api_error.status_code,
        code=api_error.code,
        retryable=api_error.retryable,
        error=sanitize_message(api_error.message),
    )
    if api_error.status_code == 429 or api_error.code == "THROTTLED":
        return RateLimited(_RATE_LIMIT_MESSAGE)
    if api_error.retryable:
        return UpstreamTimeout(_UNAVAILABLE_MESSAGE)
    if api_error.status_code == 404:
        return NotFoundError(sanitize_message(api_error.message))
    return UnknownError(fallback)
