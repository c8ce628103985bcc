"""Per-IP request limits for the public verification endpoints.

Security: register, resend, verify and both forgot-password steps are
reachable without authentication. The limiter caps requests per client
address; the per-email issuance cooldown is enforced separately by
TokenLifecycleService and OtpWorker.

Usage in routers:
    from app.core.rate_limiting import limiter

    @router.post("/verification/resend")
    @limiter.limit(settings.rate_limit_verification)
    async def resend_verification(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.responses import ErrorResponse

_DEFAULT_RETRY_AFTER = 60

_WINDOW_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
}

# In-memory storage; a multi-instance deployment sets RATELIMIT_STORAGE_URL.
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)


def _retry_after_seconds(detail: str | None) -> int:
    """Window length of a slowapi limit string such as ``10 per 1 minute``."""
    try:
        parts = detail.split()
        amount = int(parts[-2])
        unit = parts[-1].rstrip("s")
        return amount * _WINDOW_SECONDS[unit]
    except (AttributeError, IndexError, KeyError, ValueError):
        return _DEFAULT_RETRY_AFTER


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Reply 429 RATE_LIMITED with a Retry-After covering the limit window."""
    return JSONResponse(
        status_code=429,
        content=ErrorResponse.build(
            "RATE_LIMITED",
            f"Rate limit exceeded: {exc.detail}",
        ),
        headers={"Retry-After": str(_retry_after_seconds(exc.detail))},
    )
