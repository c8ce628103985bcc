"""Errors the onboarding engine surfaces to its callers.

Each class fixes an HTTP status and a machine-readable code; the handlers in
app.main render them into the standard error envelope. Identity directory
failures arrive as app.providers.errors exceptions and are normalized here
by ``directory_errors``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from app.providers.errors import (
    DirectoryError,
    DirectoryPolicyError,
    IdentityConflictError,
    IdentityNotFoundError,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base class for errors rendered as ``{"error": {...}}`` responses.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Input rejected before any state changed (400).

    The code narrows the reason, e.g. PASSWORD_MISMATCH or INVALID_GROUP.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        *,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class InvalidPaginationError(ValidationError):
    """Page/size outside the accepted range (400)."""

    def __init__(
        self,
        message: str = "Invalid pagination parameters. Page must be >= 0 and size > 0.",
    ) -> None:
        super().__init__(message, code="INVALID_PAGINATION")


class UnauthorizedError(APIError):
    """No usable administrator credentials (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Authenticated, but outside the administrators group (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """Lobby row, profile or directory identity missing (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Username or email already taken (409).

    The code distinguishes USERNAME_EXISTS from EMAIL_EXISTS.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InvalidStateError(APIError):
    """Request is well-formed but the identity is in the wrong state (422).

    E.g. reissuing an invitation for an identity that already verified.
    """

    def __init__(self, message: str, *, code: str = "INVALID_STATE_TRANSITION") -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=422,
        )


class InvalidTokenError(APIError):
    """Verification token or one-time code absent or mismatched (400).

    Not retryable with the same value: the caller must request a new one.
    The message never says which of (token, email) failed to match.
    """

    def __init__(self, message: str = "Invalid verification token or code") -> None:
        super().__init__(
            code="INVALID_TOKEN",
            message=message,
            status_code=400,
        )


class TokenExpiredError(APIError):
    """Verification token or one-time code existed but is past its expiry (400).

    The expired row has already been deleted when this is raised, so a
    second attempt with the same value yields InvalidTokenError.
    """

    def __init__(
        self, message: str = "Verification token or code has expired"
    ) -> None:
        super().__init__(
            code="TOKEN_EXPIRED",
            message=message,
            status_code=400,
        )


class TooManyRequestsError(APIError):
    """Issuance cooldown violated (429).

    Attributes:
        retry_after_seconds: Seconds until the cooldown window closes.
    """

    def __init__(
        self,
        retry_after_seconds: int,
        message: str = "Please wait before requesting another code or link",
    ) -> None:
        self.retry_after_seconds = max(retry_after_seconds, 1)
        super().__init__(
            code="TOO_MANY_REQUESTS",
            message=message,
            status_code=429,
            details=[{"retry_after_seconds": self.retry_after_seconds}],
        )


class PendingRegistrationNotFoundError(APIError):
    """SELF_REG token validated but its staging row is gone (404).

    The token itself was genuine; the registration was reaped or already
    promoted, so the client prompts the user to register again.
    """

    def __init__(self) -> None:
        super().__init__(
            code="PENDING_REGISTRATION_NOT_FOUND",
            message="No pending registration found. Please register again.",
            status_code=404,
        )


class DirectoryFailure(Enum):
    """Normalized reasons an identity directory call can fail."""

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    UNAVAILABLE = "UNAVAILABLE"


_DIRECTORY_FAILURE_STATUS: dict[DirectoryFailure, int] = {
    DirectoryFailure.NOT_FOUND: 404,
    DirectoryFailure.CONFLICT: 409,
    DirectoryFailure.POLICY_VIOLATION: 400,
    DirectoryFailure.UNAVAILABLE: 503,
}


class IdentityDirectoryError(APIError):
    """Identity directory call failed (status depends on reason).

    The original collaborator exception is chained via ``raise ... from``
    so logs keep the cause while callers only see the normalized reason.

    Attributes:
        reason: Normalized failure reason.
    """

    def __init__(self, reason: DirectoryFailure, message: str) -> None:
        self.reason = reason
        super().__init__(
            code=f"IDENTITY_{reason.value}",
            message=message,
            status_code=_DIRECTORY_FAILURE_STATUS[reason],
        )

    @property
    def retryable(self) -> bool:
        """Whether re-submitting the same request may succeed."""
        return self.reason is DirectoryFailure.UNAVAILABLE


class IdentitySyncError(APIError):
    """Directory write succeeded but the matching local write failed (500).

    This is the one failure the engine cannot self-heal; it is logged with
    the identity id and operation for manual reconciliation.

    Attributes:
        identity_id: Directory identity the divergence concerns.
        operation: Name of the finalize step that diverged.
    """

    def __init__(self, identity_id: str, operation: str) -> None:
        self.identity_id = identity_id
        self.operation = operation
        super().__init__(
            code="IDENTITY_SYNC_FAILED",
            message="An error occurred while syncing user data.",
            status_code=500,
        )


def wrap_directory_error(error: DirectoryError) -> IdentityDirectoryError:
    """Normalize a collaborator exception to an IdentityDirectoryError.

    Returns the error instance (does not raise). Callers raise it with
    ``raise wrap_directory_error(e) from e`` to keep the original cause.
    Authentication failures map to UNAVAILABLE: the end user cannot fix
    a rejected service account.
    """
    if isinstance(error, IdentityNotFoundError):
        return IdentityDirectoryError(
            DirectoryFailure.NOT_FOUND, "User not found in the identity directory"
        )
    if isinstance(error, IdentityConflictError):
        return IdentityDirectoryError(
            DirectoryFailure.CONFLICT,
            "An account already exists with this username or email",
        )
    if isinstance(error, DirectoryPolicyError):
        return IdentityDirectoryError(
            DirectoryFailure.POLICY_VIOLATION,
            f"The identity directory rejected the request: {error}",
        )
    return IdentityDirectoryError(
        DirectoryFailure.UNAVAILABLE,
        "The identity directory is temporarily unavailable. Please try again.",
    )


@contextmanager
def directory_errors(operation: str) -> Iterator[None]:
    """Translate collaborator exceptions raised inside the block.

    Usage:
        with directory_errors("verify_email"):
            await directory.verify_email(email)
    """
    try:
        yield
    except DirectoryError as e:
        logger.warning(
            "Identity directory call %s failed: %s", operation, type(e).__name__
        )
        raise wrap_directory_error(e) from e
