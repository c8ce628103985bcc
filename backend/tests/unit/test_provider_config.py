"""Tests for ProviderConfig."""

import os
from unittest.mock import patch

from app.providers.config import ProviderConfig


class TestProviderConfigDefaults:
    """Test default values for ProviderConfig."""

    def test_default_providers(self):
        """Production collaborators are Keycloak and Novu."""
        config = ProviderConfig()
        assert config.identity_provider == "keycloak"
        assert config.notification_provider == "novu"

    def test_default_timeouts_are_bounded(self):
        """Every collaborator call is time-bounded."""
        config = ProviderConfig()
        assert config.keycloak_timeout_seconds == 10.0
        assert config.novu_timeout_seconds == 10.0

    def test_default_group_cache_ttl(self):
        """Group ids are cached for five minutes."""
        assert ProviderConfig().group_cache_ttl_seconds == 300


class TestProviderConfigFromEnv:
    """Test loading ProviderConfig from environment variables."""

    def test_reads_keycloak_settings(self):
        """Keycloak settings come from KEYCLOAK_* variables."""
        env = {
            "KEYCLOAK_SERVER_URL": "https://sso.example.com/",
            "KEYCLOAK_REALM": "community",
            "KEYCLOAK_CLIENT_ID": "backend",
            "KEYCLOAK_CLIENT_SECRET": "s3cret",
            "KEYCLOAK_TIMEOUT_SECONDS": "2.5",
        }
        with patch.dict(os.environ, env, clear=False):
            config = ProviderConfig.from_env()

        assert config.keycloak_server_url == "https://sso.example.com"
        assert config.keycloak_realm == "community"
        assert config.keycloak_client_id == "backend"
        assert config.keycloak_client_secret == "s3cret"
        assert config.keycloak_timeout_seconds == 2.5

    def test_reads_provider_selection(self):
        """IDENTITY_PROVIDER and NOTIFICATION_PROVIDER select adapters."""
        env = {"IDENTITY_PROVIDER": "mock", "NOTIFICATION_PROVIDER": "mock"}
        with patch.dict(os.environ, env, clear=False):
            config = ProviderConfig.from_env()

        assert config.identity_provider == "mock"
        assert config.notification_provider == "mock"

    def test_missing_secrets_are_none(self):
        """Unset secrets load as None."""
        with patch.dict(os.environ, {}, clear=True):
            config = ProviderConfig.from_env()

        assert config.keycloak_client_secret is None
        assert config.novu_api_key is None
