"""Application configuration loaded from environment variables.

Settings for database, API, token/OTP lifetimes, at-rest encryption, and the
scheduled cleanup sweep. Uses pydantic-settings for validation and .env file
support. Identity directory and notification credentials live in
app.providers.config.ProviderConfig.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "forum_dev_password"  # nosec B105


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "forum_onboarding"
    database_user: str = "forum_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Frontend URL (verification links point here)
    frontend_url: str = "http://localhost:3000"

    # At-rest encryption for staged self-registration passwords (Fernet key,
    # urlsafe base64 of 32 bytes). Required in production.
    encryption_key: SecretStr = SecretStr("")

    # Admin authentication
    # Local mode: DEFAULT_ADMIN_ID stands in for the calling admin
    # Hosted mode: auth_enabled=True, a directory-issued bearer token is required
    auth_enabled: bool = False
    default_admin_id: uuid.UUID | None = None
    auth_audience: str = "account"
    auth_admin_group: str = "/administrators"

    # Verification tokens
    self_reg_token_ttl_hours: int = 24
    invited_token_ttl_hours: int = 24
    app_user_token_ttl_hours: int = 1
    verification_cooldown_seconds: int = 60

    # One-time codes
    otp_ttl_minutes: int = 10
    otp_cooldown_seconds: int = 60

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_verification: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    # Cleanup sweep (daily, server local time)
    cleanup_enabled: bool = True
    cleanup_hour: int = 3
    cleanup_minute: int = 0

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - Token and OTP lifetimes must be positive (all environments)
        - Cleanup schedule must be a valid wall-clock time (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - ENCRYPTION_KEY must be set in production
        """
        lifetimes = {
            "SELF_REG_TOKEN_TTL_HOURS": self.self_reg_token_ttl_hours,
            "INVITED_TOKEN_TTL_HOURS": self.invited_token_ttl_hours,
            "APP_USER_TOKEN_TTL_HOURS": self.app_user_token_ttl_hours,
            "OTP_TTL_MINUTES": self.otp_ttl_minutes,
        }
        for name, value in lifetimes.items():
            if value <= 0:
                msg = f"{name} must be positive. Got: {value}"
                raise ValueError(msg)

        if not 0 <= self.cleanup_hour <= 23 or not 0 <= self.cleanup_minute <= 59:
            msg = (
                "CLEANUP_HOUR must be 0-23 and CLEANUP_MINUTE 0-59. "
                f"Got: {self.cleanup_hour}:{self.cleanup_minute}"
            )
            raise ValueError(msg)

        # CORS wildcard with credentials is invalid (all environments)
        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if not self.encryption_key.get_secret_value():
                msg = (
                    "ENCRYPTION_KEY must be set in production. "
                    'Generate with: python -c "from cryptography.fernet import '
                    'Fernet; print(Fernet.generate_key().decode())"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
