"""Collaborator configuration management.

Centralized configuration for the identity directory and notification
dispatcher adapters.
"""

import os
from dataclasses import dataclass


@dataclass
class ProviderConfig:
    """Centralized collaborator configuration.

    Attributes:
        identity_provider: Which directory adapter to use ("keycloak", "mock").
        keycloak_server_url: Base URL of the Keycloak server.
        keycloak_realm: Realm holding forum identities.
        keycloak_client_id: Service-account client id.
        keycloak_client_secret: Service-account client secret.
        keycloak_timeout_seconds: Bound on every directory HTTP call.
        group_cache_ttl_seconds: Lifetime of cached group path → id entries.
        notification_provider: Which dispatcher to use ("novu", "mock").
        novu_api_key: Novu API key.
        novu_base_url: Novu API base URL.
        novu_timeout_seconds: Bound on every Novu HTTP call.
    """

    # Provider selection
    identity_provider: str = "keycloak"
    notification_provider: str = "novu"

    # Keycloak (loaded from environment)
    keycloak_server_url: str = "http://localhost:8080"
    keycloak_realm: str = "forum"
    keycloak_client_id: str = "forum-backend"
    keycloak_client_secret: str | None = None
    keycloak_timeout_seconds: float = 10.0
    group_cache_ttl_seconds: int = 300

    # Novu
    novu_api_key: str | None = None
    novu_base_url: str = "https://api.novu.co"
    novu_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load configuration from environment variables.

        Returns:
            ProviderConfig instance with values from environment.
        """
        return cls(
            identity_provider=os.getenv("IDENTITY_PROVIDER", "keycloak"),
            notification_provider=os.getenv("NOTIFICATION_PROVIDER", "novu"),
            keycloak_server_url=os.getenv(
                "KEYCLOAK_SERVER_URL", "http://localhost:8080"
            ).rstrip("/"),
            keycloak_realm=os.getenv("KEYCLOAK_REALM", "forum"),
            keycloak_client_id=os.getenv("KEYCLOAK_CLIENT_ID", "forum-backend"),
            keycloak_client_secret=os.getenv("KEYCLOAK_CLIENT_SECRET"),
            keycloak_timeout_seconds=float(
                os.getenv("KEYCLOAK_TIMEOUT_SECONDS", "10")
            ),
            group_cache_ttl_seconds=int(os.getenv("GROUP_CACHE_TTL_SECONDS", "300")),
            novu_api_key=os.getenv("NOVU_API_KEY"),
            novu_base_url=os.getenv("NOVU_BASE_URL", "https://api.novu.co").rstrip(
                "/"
            ),
            novu_timeout_seconds=float(os.getenv("NOVU_TIMEOUT_SECONDS", "10")),
        )
