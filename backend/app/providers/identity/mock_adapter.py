"""Mock identity directory for testing.

In-memory directory that enables unit testing without a Keycloak server.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from app.providers.errors import IdentityConflictError, IdentityNotFoundError
from app.providers.identity.base import (
    SYNCED_LOCALLY_ATTRIBUTE,
    VERIFY_EMAIL_ACTION,
    IdentityDirectory,
    IdentityRecord,
    NewIdentity,
)


class MockIdentityDirectory(IdentityDirectory):
    """In-memory directory for tests.

    Attributes:
        users: Identity records keyed by id.
        passwords: Current password per user id, with its temporary flag.
        groups: Group paths per user id.
        calls: Record of all method invocations for test assertions.
    """

    @property
    def provider_name(self) -> str:
        """Return 'mock' for testing."""
        return "mock"

    def __init__(self) -> None:
        self.users: dict[str, IdentityRecord] = {}
        self.passwords: dict[str, tuple[str, bool]] = {}
        self.groups: dict[str, list[str]] = {}
        self.calls: list[dict[str, Any]] = []
        self._failures: dict[str, Exception] = {}

    # -----------------------------------------------------------------
    # Test helpers
    # -----------------------------------------------------------------

    def fail_on(self, method: str, error: Exception) -> None:
        """Make every later call to ``method`` raise ``error``."""
        self._failures[method] = error

    def clear_failures(self) -> None:
        """Stop simulating failures."""
        self._failures.clear()

    def add_user(
        self,
        *,
        email: str,
        username: str | None = None,
        first_name: str = "Test",
        last_name: str = "User",
        email_verified: bool = True,
        groups: list[str] | None = None,
        synced_locally: bool = True,
        user_id: str | None = None,
    ) -> IdentityRecord:
        """Seed a user directly (bypasses ``calls``)."""
        record = IdentityRecord(
            id=user_id or str(uuid.uuid4()),
            username=username or email.split("@")[0],
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            email_verified=email_verified,
            created_at=datetime.now(UTC),
            attributes={
                SYNCED_LOCALLY_ATTRIBUTE: "true" if synced_locally else "false"
            },
        )
        self.users[record.id] = record
        self.groups[record.id] = list(groups or [])
        return record

    def called(self, method: str) -> list[dict[str, Any]]:
        """Recorded invocations of one method."""
        return [call for call in self.calls if call["method"] == method]

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        if method in self._failures:
            raise self._failures[method]

    def _require(self, user_id: str) -> IdentityRecord:
        record = self.users.get(user_id)
        if record is None:
            msg = f"User {user_id} not found"
            raise IdentityNotFoundError(msg)
        return record

    # -----------------------------------------------------------------
    # IdentityDirectory
    # -----------------------------------------------------------------

    async def create_identity(self, identity: NewIdentity) -> str:
        """Create a user; duplicate username or email raises a conflict."""
        self._record("create_identity", identity=identity)
        for existing in self.users.values():
            if existing.username == identity.username or existing.email == identity.email:
                msg = "User exists with same username or email"
                raise IdentityConflictError(msg)

        user_id = str(uuid.uuid4())
        self.users[user_id] = IdentityRecord(
            id=user_id,
            username=identity.username,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            email_verified=identity.email_verified,
            created_at=datetime.now(UTC),
            required_actions=list(identity.required_actions),
        )
        self.passwords[user_id] = (identity.password, identity.temporary_password)
        self.groups[user_id] = []
        return user_id

    async def find_by_id(self, user_id: str) -> IdentityRecord | None:
        """Fetch by id."""
        self._record("find_by_id", user_id=user_id)
        return self.users.get(user_id)

    async def find_by_email(self, email: str) -> IdentityRecord | None:
        """Fetch by email, case-insensitive."""
        self._record("find_by_email", email=email)
        return next(
            (u for u in self.users.values() if u.email == email.lower()), None
        )

    async def find_by_username(self, username: str) -> IdentityRecord | None:
        """Fetch by username, case-insensitive."""
        self._record("find_by_username", username=username)
        return next(
            (u for u in self.users.values() if u.username.lower() == username.lower()),
            None,
        )

    async def verify_email(self, email: str) -> None:
        """Mark verified and clear VERIFY_EMAIL."""
        self._record("verify_email", email=email)
        record = next((u for u in self.users.values() if u.email == email), None)
        if record is None:
            msg = "No directory user holds this email"
            raise IdentityNotFoundError(msg)
        record.email_verified = True
        record.required_actions = [
            a for a in record.required_actions if a != VERIFY_EMAIL_ACTION
        ]

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
        """Apply non-None fields."""
        self._record(
            "update_identity",
            user_id=user_id,
            email=email,
            email_verified=email_verified,
            first_name=first_name,
            last_name=last_name,
            enabled=enabled,
        )
        record = self._require(user_id)
        if email is not None:
            record.email = email
        if email_verified is not None:
            record.email_verified = email_verified
        if first_name is not None:
            record.first_name = first_name
        if last_name is not None:
            record.last_name = last_name
        if enabled is not None:
            record.enabled = enabled

    async def reset_password(
        self, user_id: str, password: str, *, temporary: bool
    ) -> None:
        """Store the new password."""
        self._record("reset_password", user_id=user_id, temporary=temporary)
        self._require(user_id)
        self.passwords[user_id] = (password, temporary)

    async def assign_to_group(self, user_id: str, group_path: str) -> None:
        """Replace all groups with the target group."""
        self._record("assign_to_group", user_id=user_id, group_path=group_path)
        self._require(user_id)
        self.groups[user_id] = [group_path]

    async def get_groups_of(self, user_id: str) -> list[str]:
        """Current group paths."""
        self._record("get_groups_of", user_id=user_id)
        self._require(user_id)
        return list(self.groups.get(user_id, []))

    async def delete_identity(self, user_id: str) -> None:
        """Remove the user."""
        self._record("delete_identity", user_id=user_id)
        self._require(user_id)
        del self.users[user_id]
        self.groups.pop(user_id, None)
        self.passwords.pop(user_id, None)

    async def set_synced_locally(self, user_id: str, synced: bool) -> None:
        """Write the synced attribute."""
        self._record("set_synced_locally", user_id=user_id, synced=synced)
        record = self._require(user_id)
        record.attributes[SYNCED_LOCALLY_ATTRIBUTE] = "true" if synced else "false"
