"""Collaborator error taxonomy.

Error classes raised by the identity directory and notification adapters.
Adapters map transport and HTTP failures onto these classes; services
never see httpx exceptions.
"""


__all__ = [
    "ProviderError",
    "DirectoryError",
    "IdentityNotFoundError",
    "IdentityConflictError",
    "DirectoryPolicyError",
    "DirectoryAuthenticationError",
    "DirectoryUnavailableError",
]


class ProviderError(Exception):
    """Base class for all collaborator errors.

    All adapter-specific exceptions should inherit from this class,
    allowing callers to catch all collaborator errors with a single handler.
    """

    pass


class DirectoryError(ProviderError):
    """Identity directory call failed for a reason not covered below."""

    pass


class IdentityNotFoundError(DirectoryError):
    """User or group does not exist in the directory.

    WHY SEPARATE:
    - Finalize paths translate it to a user-facing "not found"
    - Lookups by email return None instead of raising
    """

    pass


class IdentityConflictError(DirectoryError):
    """Username or email already taken in the directory.

    WHY NOT RETRYABLE:
    - Same request will conflict again
    """

    pass


class DirectoryPolicyError(DirectoryError):
    """Directory rejected the payload (password policy, malformed field).

    WHY SEPARATE:
    - Requires the user to change input, not to retry
    """

    pass


class DirectoryAuthenticationError(DirectoryError):
    """Service-account credentials rejected.

    WHY NOT RETRYABLE:
    - Requires operator intervention (new client secret)
    - Surfaced to callers as "unavailable" since the user cannot fix it
    """

    pass


class DirectoryUnavailableError(DirectoryError):
    """Temporary failure (network, timeout, 5xx).

    WHY SEPARATE:
    - Safe to retry: finalize paths leave the token live
    - Includes: connection errors, timeouts, 5xx responses
    """

    pass

