"""Tests for the error taxonomy and upstream error normalization."""

import httpx
import pytest

from app.models.contracts import ApiError
from app.utils.api_errors import (
    NotFoundError,
    RateLimited,
    UnknownError,
    UpstreamError,
    UpstreamTimeout,
    ValidationError,
    decode_http_error,
    is_retryable_error,
    normalize,
    to_service_error,
)


class TestIsRetryable:
    @pytest.mark.parametrize("status", [429, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_error(status)

    @pytest.mark.parametrize("status", [400, 401, 404])
    def test_client_errors_not_retryable(self, status):
        assert not is_retryable_error(status)

    def test_message_without_status(self):
        assert is_retryable_error(message="Network connection lost")
        assert is_retryable_error(message="read Timeout")
        assert not is_retryable_error(message="bad input")

    def test_client_status_wins_over_message(self):
        assert not is_retryable_error(400, "timeout")


class TestDecodeHttpError:
    def test_graphql_body(self):
        body = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
        err = decode_http_error(429, body)
        assert err.message == "Throttled"
        assert err.code == "THROTTLED"
        assert err.retryable
        assert err.status_code == 429

    def test_plain_body_uses_reason(self):
        err = decode_http_error(404, None, "Not Found")
        assert err.message == "Not Found"
        assert not err.retryable

    def test_generic_message(self):
        assert decode_http_error(500).message == "HTTP 500 error"


class TestNormalize:
    def test_upstream_error_passthrough(self):
        api_error = ApiError(message="boom", status_code=503, retryable=True)
        assert normalize(UpstreamError(api_error)) is api_error

    def test_httpx_status_error(self):
        request = httpx.Request("POST", "https://x.myshopify.com/admin/api/graphql.json")
        response = httpx.Response(503, request=request, json={"errors": "down"})
        exc = httpx.HTTPStatusError("503", request=request, response=response)
        err = normalize(exc)
        assert err.status_code == 503
        assert err.retryable

    def test_httpx_timeout(self):
        err = normalize(httpx.ReadTimeout("timed out"))
        assert err.code == "TIMEOUT"
        assert err.retryable

    def test_network_error(self):
        err = normalize(httpx.ConnectError("refused"))
        assert err.code == "NETWORK_ERROR"
        assert err.retryable

    def test_unknown_exception(self):
        err = normalize(RuntimeError(""))
        assert err.message == "Unknown error occurred"
        assert not err.retryable


class TestToServiceError:
    def _upstream(self, status, code=None):
        return UpstreamError(
            ApiError(
                message="upstream said no",
                code=code,
                status_code=status,
                retryable=is_retryable_error(status),
            )
        )

    def test_service_error_unchanged(self):
        original = ValidationError("bad")
        assert to_service_error(original) is original

    def test_rate_limit(self):
        err = to_service_error(self._upstream(429))
        assert isinstance(err, RateLimited)
        assert err.status_code == 429
        assert err.retryable

    def test_throttled_code(self):
        assert isinstance(to_service_error(self._upstream(None, "THROTTLED")), RateLimited)

    def test_unavailable_is_timeout(self):
        err = to_service_error(self._upstream(503))
        assert isinstance(err, UpstreamTimeout)
        assert err.status_code == 504

    def test_network_is_timeout(self):
        assert isinstance(to_service_error(httpx.ConnectError("down")), UpstreamTimeout)

    def test_not_found(self):
        assert isinstance(to_service_error(self._upstream(404)), NotFoundError)

    def test_other_failures_use_fallback(self):
        err = to_service_error(self._upstream(401), fallback="Failed to fetch orders")
        assert isinstance(err, UnknownError)
        assert err.message == "Failed to fetch orders"
        assert not err.retryable
