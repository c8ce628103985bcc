"""Keycloak adapter for the identity directory.

Talks to the Keycloak admin REST API with a service-account (client
credentials) token. Every request carries the configured timeout; transport
failures and 5xx responses surface as DirectoryUnavailableError so finalize
paths can leave their token live for a retry.
"""

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from app.providers.errors import (
    DirectoryAuthenticationError,
    DirectoryError,
    DirectoryPolicyError,
    DirectoryUnavailableError,
    IdentityConflictError,
    IdentityNotFoundError,
)
from app.providers.identity.base import (
    SYNCED_LOCALLY_ATTRIBUTE,
    VERIFY_EMAIL_ACTION,
    IdentityDirectory,
    IdentityRecord,
    NewIdentity,
)
from app.providers.identity.group_cache import GroupPathCache

if TYPE_CHECKING:
    from app.providers.config import ProviderConfig

logger = structlog.get_logger()

# Refresh the service-account token this long before it actually expires
_TOKEN_REFRESH_MARGIN_SECONDS = 30


def _classify_directory_error(error: httpx.HTTPError) -> DirectoryError:
    """Map httpx exceptions to the directory error taxonomy.

    Returns a DirectoryError subclass instance (does not raise).
    The caller is responsible for raising via
    ``raise _classify_directory_error(e) from e``.
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        detail = _error_detail(error.response)
        if status in (401, 403):
            return DirectoryAuthenticationError(detail)
        if status == 404:
            return IdentityNotFoundError(detail)
        if status == 409:
            return IdentityConflictError(detail)
        if status == 400:
            return DirectoryPolicyError(detail)
        if status >= 500:
            return DirectoryUnavailableError(detail)
        return DirectoryError(detail)

    # Timeouts, connection resets, DNS failures
    return DirectoryUnavailableError(str(error) or type(error).__name__)


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error text from a Keycloak error body."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("errorMessage", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def _to_record(rep: dict[str, Any]) -> IdentityRecord:
    """Convert a Keycloak UserRepresentation to an IdentityRecord."""
    created_ms = rep.get("createdTimestamp")
    attributes = {
        key: values[0]
        for key, values in (rep.get("attributes") or {}).items()
        if values
    }
    return IdentityRecord(
        id=rep["id"],
        username=rep.get("username", ""),
        email=(rep.get("email") or "").lower(),
        first_name=rep.get("firstName"),
        last_name=rep.get("lastName"),
        enabled=bool(rep.get("enabled", True)),
        email_verified=bool(rep.get("emailVerified", False)),
        created_at=(
            datetime.fromtimestamp(created_ms / 1000, tz=UTC)
            if created_ms is not None
            else None
        ),
        attributes=attributes,
        required_actions=list(rep.get("requiredActions") or []),
    )


class KeycloakIdentityDirectory(IdentityDirectory):
    """Keycloak admin REST adapter.

    Attributes:
        config: Provider configuration.
        group_cache: Group path → id cache owned by this adapter.
    """

    @property
    def provider_name(self) -> str:
        """Return 'keycloak'."""
        return "keycloak"

    def __init__(
        self,
        config: "ProviderConfig",
        *,
        client: httpx.AsyncClient | None = None,
        group_cache: GroupPathCache | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            config: Provider configuration with Keycloak settings.
            client: Optional preconfigured httpx client (tests pass one
                backed by httpx.MockTransport).
            group_cache: Optional cache; a new one honoring
                config.group_cache_ttl_seconds is created otherwise.
        """
        self.config = config
        self._client = client or httpx.AsyncClient(
            timeout=config.keycloak_timeout_seconds
        )
        self.group_cache = group_cache or GroupPathCache(
            ttl_seconds=config.group_cache_ttl_seconds
        )
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._admin_base = (
            f"{config.keycloak_server_url}/admin/realms/{config.keycloak_realm}"
        )
        self._token_url = (
            f"{config.keycloak_server_url}/realms/{config.keycloak_realm}"
            "/protocol/openid-connect/token"
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # -----------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------

    async def _get_access_token(self) -> str:
        """Return a cached service-account token, fetching a new one if due."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        try:
            resp = await self._client.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.keycloak_client_id,
                    "client_secret": self.config.keycloak_client_secret or "",
                },
                timeout=self.config.keycloak_timeout_seconds,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "directory_token_failed",
                provider="keycloak",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_directory_error(e) from e

        body = resp.json()
        self._access_token = body["access_token"]
        expires_in = int(body.get("expires_in", 60))
        self._token_expires_at = time.monotonic() + max(
            expires_in - _TOKEN_REFRESH_MARGIN_SECONDS, 0
        )
        return self._access_token

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an authenticated admin API request.

        Raises:
            DirectoryError: Classified failure (see _classify_directory_error).
        """
        token = await self._get_access_token()
        try:
            resp = await self._client.request(
                method,
                f"{self._admin_base}{path}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.config.keycloak_timeout_seconds,
                **kwargs,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            status = (
                e.response.status_code
                if isinstance(e, httpx.HTTPStatusError)
                else None
            )
            if status == 401:
                # Token revoked or realm keys rotated; fetch a fresh one next time
                self._access_token = None
            logger.warning(
                "directory_request_failed",
                provider="keycloak",
                method=method,
                path=path,
                status=status,
                error_type=type(e).__name__,
            )
            raise _classify_directory_error(e) from e
        return resp

    async def _get_user_rep(self, user_id: str) -> dict[str, Any]:
        resp = await self._request("GET", f"/users/{user_id}")
        rep: dict[str, Any] = resp.json()
        return rep

    async def _resolve_group_id(self, group_path: str) -> str:
        """Resolve a group path to its id through the cache."""
        cached = self.group_cache.get(group_path)
        if cached is not None:
            return cached

        resp = await self._request("GET", f"/group-by-path/{group_path.lstrip('/')}")
        group_id: str = resp.json()["id"]
        self.group_cache.put(group_path, group_id)
        return group_id

    async def _search_one(self, **params: str) -> IdentityRecord | None:
        resp = await self._request("GET", "/users", params={**params, "exact": "true"})
        field, value = next(iter(params.items()))
        for rep in resp.json():
            if str(rep.get(field, "")).lower() == value.lower():
                return _to_record(rep)
        return None

    # -----------------------------------------------------------------
    # IdentityDirectory
    # -----------------------------------------------------------------

    async def create_identity(self, identity: NewIdentity) -> str:
        """Create a user and return the id from the Location header."""
        logger.info(
            "directory_create_identity",
            provider="keycloak",
            username=identity.username,
        )
        resp = await self._request(
            "POST",
            "/users",
            json={
                "username": identity.username,
                "email": identity.email,
                "firstName": identity.first_name,
                "lastName": identity.last_name,
                "enabled": True,
                "emailVerified": identity.email_verified,
                "requiredActions": identity.required_actions,
                "credentials": [
                    {
                        "type": "password",
                        "value": identity.password,
                        "temporary": identity.temporary_password,
                    }
                ],
            },
        )
        location = resp.headers.get("Location", "")
        user_id = location.rstrip("/").rsplit("/", 1)[-1]
        if not user_id:
            msg = "Directory did not return the created user's location"
            raise DirectoryError(msg)
        return user_id

    async def find_by_id(self, user_id: str) -> IdentityRecord | None:
        """Fetch a user by id; 404 maps to None."""
        try:
            rep = await self._get_user_rep(user_id)
        except IdentityNotFoundError:
            return None
        return _to_record(rep)

    async def find_by_email(self, email: str) -> IdentityRecord | None:
        """Exact, case-insensitive email lookup."""
        return await self._search_one(email=email)

    async def find_by_username(self, username: str) -> IdentityRecord | None:
        """Exact, case-insensitive username lookup."""
        return await self._search_one(username=username)

    async def verify_email(self, email: str) -> None:
        """Set emailVerified and drop the VERIFY_EMAIL required action."""
        record = await self.find_by_email(email)
        if record is None:
            msg = "No directory user holds this email"
            raise IdentityNotFoundError(msg)

        rep = await self._get_user_rep(record.id)
        rep["emailVerified"] = True
        rep["requiredActions"] = [
            action
            for action in rep.get("requiredActions") or []
            if action != VERIFY_EMAIL_ACTION
        ]
        await self._request("PUT", f"/users/{record.id}", json=rep)

    async def update_identity(
        self,
        user_id: str,
        *,
        email: str | None = None,
        email_verified: bool | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        enabled: bool | None = None,
    ) -> None:
        """Read-modify-write the user representation."""
        rep = await self._get_user_rep(user_id)
        changes = {
            "email": email,
            "emailVerified": email_verified,
            "firstName": first_name,
            "lastName": last_name,
            "enabled": enabled,
        }
        rep.update({key: value for key, value in changes.items() if value is not None})
        await self._request("PUT", f"/users/{user_id}", json=rep)

    async def reset_password(
        self, user_id: str, password: str, *, temporary: bool
    ) -> None:
        """Replace the password credential."""
        await self._request(
            "PUT",
            f"/users/{user_id}/reset-password",
            json={"type": "password", "value": password, "temporary": temporary},
        )

    async def assign_to_group(self, user_id: str, group_path: str) -> None:
        """Leave every current group, then join the target group."""
        target_id = await self._resolve_group_id(group_path)

        resp = await self._request("GET", f"/users/{user_id}/groups")
        for group in resp.json():
            if group["id"] != target_id:
                await self._request("DELETE", f"/users/{user_id}/groups/{group['id']}")

        try:
            await self._request("PUT", f"/users/{user_id}/groups/{target_id}")
        except IdentityNotFoundError:
            # Group recreated under a new id since it was cached
            self.group_cache.invalidate(group_path)
            raise

    async def get_groups_of(self, user_id: str) -> list[str]:
        """Group paths of the user."""
        resp = await self._request("GET", f"/users/{user_id}/groups")
        return [group["path"] for group in resp.json()]

    async def delete_identity(self, user_id: str) -> None:
        """Delete the user."""
        logger.info("directory_delete_identity", provider="keycloak", user_id=user_id)
        await self._request("DELETE", f"/users/{user_id}")

    async def set_synced_locally(self, user_id: str, synced: bool) -> None:
        """Write the is_synced_locally attribute."""
        rep = await self._get_user_rep(user_id)
        attributes = dict(rep.get("attributes") or {})
        attributes[SYNCED_LOCALLY_ATTRIBUTE] = ["true" if synced else "false"]
        rep["attributes"] = attributes
        await self._request("PUT", f"/users/{user_id}", json=rep)
