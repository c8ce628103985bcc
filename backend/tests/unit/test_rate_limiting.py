"""Tests for rate limiting behavior.

Security: Per-IP gate on the public verification endpoints.
"""

import json
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request as StarletteRequest

from app.core.rate_limiting import limiter, rate_limit_exceeded_handler


def _request(path: str = "/api/v1/auth/verification/resend") -> StarletteRequest:
    return StarletteRequest({"type": "http", "method": "POST", "path": path})


class TestRateLimitExceededHandler:
    """Tests for rate limit exceeded response format."""

    def test_rate_limit_returns_429_status(self):
        """Rate limit exceeded should return 429 status code."""
        exc = MagicMock()
        exc.detail = "10 per 1 minute"

        response = rate_limit_exceeded_handler(_request(), exc)

        assert response.status_code == 429

    def test_rate_limit_returns_error_envelope(self):
        """Rate limit response should use standard error envelope."""
        exc = MagicMock()
        exc.detail = "10 per 1 minute"

        response = rate_limit_exceeded_handler(_request(), exc)
        body = json.loads(response.body.decode())

        assert body["error"]["code"] == "RATE_LIMITED"
        assert "Rate limit exceeded" in body["error"]["message"]

    @pytest.mark.parametrize("detail", ["unexpected format", None])
    def test_retry_after_falls_back_to_60(self, detail):
        """Retry-After should fall back to 60 if parsing fails."""
        exc = MagicMock()
        exc.detail = detail

        response = rate_limit_exceeded_handler(_request(), exc)

        assert response.headers.get("Retry-After") == "60"

    @pytest.mark.parametrize(
        ("detail", "expected"),
        [("10 per 1 minute", "60"), ("5 per 2 hours", "7200"), ("3 per 30 seconds", "30")],
    )
    def test_retry_after_covers_limit_window(self, detail, expected):
        """Retry-After is the length of the violated window in seconds."""
        exc = MagicMock()
        exc.detail = detail

        response = rate_limit_exceeded_handler(_request(), exc)

        assert response.headers.get("Retry-After") == expected


class TestLimiterKey:
    """The limiter is keyed by client address."""

    def test_key_is_remote_address(self):
        """Two callers behind different IPs have separate buckets."""
        request = MagicMock()
        request.client.host = "203.0.113.5"
        assert limiter._key_func(request) == "203.0.113.5"


class TestVerificationEndpointsAreLimited:
    """Every public verification endpoint carries the limit decorator."""

    @pytest.mark.parametrize(
        "endpoint",
        [
            "register",
            "resend_verification",
            "verify",
            "forgot_password",
            "forgot_password_complete",
        ],
    )
    def test_endpoint_is_registered_with_limiter(self, endpoint):
        """slowapi records decorated routes by qualified name."""
        assert f"app.api.v1.verification.{endpoint}" in limiter._route_limits
