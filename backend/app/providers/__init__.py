"""Collaborator abstraction layer.

Exports:
    Error classes for collaborator error handling
    ProviderConfig for configuration
    Factory functions for collaborator instances
"""

from app.providers.config import ProviderConfig
from app.providers.errors import (
    DirectoryAuthenticationError,
    DirectoryError,
    DirectoryPolicyError,
    DirectoryUnavailableError,
    IdentityConflictError,
    IdentityNotFoundError,
    ProviderError,
)
from app.providers.factory import (
    close_providers,
    get_identity_directory,
    get_notification_dispatcher,
    reset_providers,
)

__all__ = [
    # Config
    "ProviderConfig",
    # Errors
    "ProviderError",
    "DirectoryError",
    "IdentityNotFoundError",
    "IdentityConflictError",
    "DirectoryPolicyError",
    "DirectoryAuthenticationError",
    "DirectoryUnavailableError",
    # Factory
    "close_providers",
    "get_identity_directory",
    "get_notification_dispatcher",
    "reset_providers",
]
