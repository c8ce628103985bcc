"""Abstract base class and types for the identity directory.

The directory (Keycloak in production) is authoritative for identities:
credentials, email verification state, and group membership. The engine
consumes it only through this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

# Directory attribute marking whether the local profile has been created
SYNCED_LOCALLY_ATTRIBUTE = "is_synced_locally"

# Required action forcing the user to verify their email at next login
VERIFY_EMAIL_ACTION = "VERIFY_EMAIL"


@dataclass
class IdentityRecord:
    """Directory view of a user.

    Attributes:
        id: Directory identity id.
        username: Login name.
        email: Current email.
        first_name: Given name.
        last_name: Family name.
        enabled: Whether the account can log in.
        email_verified: Whether the directory considers the email verified.
        created_at: Directory creation time, if reported.
        attributes: Custom single-valued attributes.
        required_actions: Pending required actions (e.g. VERIFY_EMAIL).
    """

    id: str
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    enabled: bool = True
    email_verified: bool = False
    created_at: datetime | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    required_actions: list[str] = field(default_factory=list)

    @property
    def is_synced_locally(self) -> bool:
        """Whether the local profile exists for this identity."""
        return self.attributes.get(SYNCED_LOCALLY_ATTRIBUTE) == "true"


@dataclass
class NewIdentity:
    """Payload for creating a directory identity.

    Attributes:
        username: Login name.
        email: Normalized email.
        first_name: Given name.
        last_name: Family name.
        password: Initial password.
        temporary_password: Force a password change at first login.
        email_verified: Create with the email already verified.
        required_actions: Required actions to set on creation.
    """

    username: str
    email: str
    first_name: str
    last_name: str
    password: str
    temporary_password: bool = False
    email_verified: bool = False
    required_actions: list[str] = field(default_factory=list)


class IdentityDirectory(ABC):
    """Abstract interface for the identity directory.

    WHY ABSTRACT:
    - Tests run against an in-memory directory
    - The engine never depends on Keycloak wire formats

    Every method is bounded by a timeout in real adapters. Failures raise
    app.providers.errors.DirectoryError subclasses.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Adapter identifier for logging."""

    @abstractmethod
    async def create_identity(self, identity: NewIdentity) -> str:
        """Create a user and return its directory id."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> IdentityRecord | None:
        """Fetch a user by id, or None."""

    @abstractmethod
    async def find_by_email(self, email: str) -> IdentityRecord | None:
        """Fetch a user by exact email, or None."""

    @abstractmethod
    async def find_by_username(self, username: str) -> IdentityRecord | None:
        """Fetch a user by exact username, or None."""

    @abstractmethod
    async def verify_email(self, email: str) -> None:
        """Mark the user's email verified and clear VERIFY_EMAIL.

        Raises:
            IdentityNotFoundError: If no user holds the email.
        """

    @abstractmethod
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
        """Apply the given (non-None) fields to a user."""

    @abstractmethod
    async def reset_password(
        self, user_id: str, password: str, *, temporary: bool
    ) -> None:
        """Replace the user's password credential."""

    @abstractmethod
    async def assign_to_group(self, user_id: str, group_path: str) -> None:
        """Move the user into exactly this group, leaving all others."""

    @abstractmethod
    async def get_groups_of(self, user_id: str) -> list[str]:
        """Group paths the user belongs to."""

    @abstractmethod
    async def delete_identity(self, user_id: str) -> None:
        """Delete the user."""

    @abstractmethod
    async def set_synced_locally(self, user_id: str, synced: bool) -> None:
        """Record whether the local profile exists for the user."""
