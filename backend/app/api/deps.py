"""Shared dependencies for API endpoints.

Local mode uses DEFAULT_ADMIN_ID; hosted mode validates a bearer token
issued by the identity directory.
Collaborators resolve to the factory singletons, which tests replace.
"""

import asyncio
import uuid
from typing import Annotated, Any

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import ForbiddenError, UnauthorizedError
from app.providers.config import ProviderConfig
from app.providers.factory import get_identity_directory, get_notification_dispatcher
from app.providers.identity.base import IdentityDirectory
from app.providers.notifications.base import NotificationDispatcher

_FORBIDDEN_MESSAGE = "Administrator access required"

_jwks_client: jwt.PyJWKClient | None = None


def _get_jwks_client() -> jwt.PyJWKClient:
    """Lazily build the realm JWKS client (keys are cached by PyJWT)."""
    global _jwks_client

    if _jwks_client is None:
        config = ProviderConfig.from_env()
        _jwks_client = jwt.PyJWKClient(
            f"{config.keycloak_server_url}/realms/{config.keycloak_realm}"
            "/protocol/openid-connect/certs"
        )
    return _jwks_client


def _decode_bearer(token: str) -> dict[str, Any]:
    """Verify a bearer token. Blocking: the JWKS lookup may hit the network."""
    config = ProviderConfig.from_env()
    signing_key = _get_jwks_client().get_signing_key_from_jwt(token)
    payload: dict[str, Any] = jwt.decode(
        token,
        signing_key.key,
        algorithms=["RS256"],
        audience=settings.auth_audience,
        issuer=f"{config.keycloak_server_url}/realms/{config.keycloak_realm}",
    )
    return payload


async def get_current_admin_id(request: Request) -> uuid.UUID:
    """Get the acting administrator's directory id.

    Validation steps (hosted mode):
    1. Read the bearer token from the Authorization header
    2. Verify the RS256 signature against the realm JWKS
    3. Verify exp, aud, iss claims
    4. Require the administrators group in the groups claim
    5. Extract sub as UUID

    Returns:
        UUID of the current administrator.

    Raises:
        UnauthorizedError: Any authentication failure. The message is always
            the same generic one.
        ForbiddenError: The token lacks the administrators group.
    """
    if not settings.auth_enabled:
        # Local mode: act as DEFAULT_ADMIN_ID from environment
        if settings.default_admin_id is None:
            raise UnauthorizedError()
        return settings.default_admin_id

    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError()

    try:
        payload = await asyncio.to_thread(_decode_bearer, token)
        admin_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        raise UnauthorizedError() from exc

    if settings.auth_admin_group not in (payload.get("groups") or []):
        raise ForbiddenError(_FORBIDDEN_MESSAGE)

    return admin_id


def get_directory() -> IdentityDirectory:
    """Identity directory singleton."""
    return get_identity_directory()


def get_dispatcher() -> NotificationDispatcher:
    """Notification dispatcher singleton."""
    return get_notification_dispatcher()


# Reusable type aliases for dependency injection
CurrentAdminId = Annotated[uuid.UUID, Depends(get_current_admin_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Directory = Annotated[IdentityDirectory, Depends(get_directory)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
