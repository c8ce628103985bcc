"""Collaborator factory functions.

Singleton pattern for identity directory and notification dispatcher
instances.
"""

from app.providers.config import ProviderConfig
from app.providers.identity.base import IdentityDirectory
from app.providers.identity.keycloak_adapter import KeycloakIdentityDirectory
from app.providers.identity.mock_adapter import MockIdentityDirectory
from app.providers.notifications.base import NotificationDispatcher
from app.providers.notifications.mock_adapter import MockNotificationDispatcher
from app.providers.notifications.novu_adapter import NovuNotificationDispatcher

_identity_directory: IdentityDirectory | None = None
_notification_dispatcher: NotificationDispatcher | None = None


def get_identity_directory(config: ProviderConfig | None = None) -> IdentityDirectory:
    """Get or create the identity directory singleton.

    WHY SINGLETON:
    - Reuses HTTP connections and the service-account token
    - One group path cache per process

    WHY OPTIONAL CONFIG:
    - First call sets the config (app startup)
    - Subsequent calls reuse (business logic)

    Args:
        config: Optional provider configuration. If None and no directory
            exists, loads from environment.

    Returns:
        IdentityDirectory instance.

    Raises:
        ValueError: If the configured provider is unknown.
    """
    global _identity_directory

    if _identity_directory is None:
        if config is None:
            config = ProviderConfig.from_env()

        if config.identity_provider == "keycloak":
            _identity_directory = KeycloakIdentityDirectory(config)
        elif config.identity_provider == "mock":
            _identity_directory = MockIdentityDirectory()
        else:
            raise ValueError(f"Unknown identity provider: {config.identity_provider}")

    return _identity_directory


def get_notification_dispatcher(
    config: ProviderConfig | None = None,
) -> NotificationDispatcher:
    """Get or create the notification dispatcher singleton.

    Args:
        config: Optional provider configuration. If None and no dispatcher
            exists, loads from environment.

    Returns:
        NotificationDispatcher instance.

    Raises:
        ValueError: If the configured provider is unknown.
    """
    global _notification_dispatcher

    if _notification_dispatcher is None:
        if config is None:
            config = ProviderConfig.from_env()

        if config.notification_provider == "novu":
            _notification_dispatcher = NovuNotificationDispatcher(config)
        elif config.notification_provider == "mock":
            _notification_dispatcher = MockNotificationDispatcher()
        else:
            raise ValueError(
                f"Unknown notification provider: {config.notification_provider}"
            )

    return _notification_dispatcher


def reset_providers() -> None:
    """Reset collaborator singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _identity_directory, _notification_dispatcher
    _identity_directory = None
    _notification_dispatcher = None


async def close_providers() -> None:
    """Close collaborator HTTP clients and drop the singletons.

    Called from the application lifespan on shutdown.
    """
    for provider in (_identity_directory, _notification_dispatcher):
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            await aclose()
    reset_providers()
