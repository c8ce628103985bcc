"""Directory group paths.

Groups are identified by their path in the identity directory
(e.g. ``/members/new``). Parent groups only organize their subgroups;
users are assigned to leaf groups, which carry the realm roles.
"""

from enum import Enum


class GroupPath(str, Enum):
    """Known directory groups, keyed by path."""

    MEMBERS = "/members"
    MODERATORS = "/moderators"
    ADMINISTRATORS = "/administrators"
    MEMBERS_NEW = "/members/new"
    MEMBERS_ACTIVE = "/members/active"
    MEMBERS_TRUSTED = "/members/trusted"
    MODERATORS_PEER = "/moderators/peer"
    MODERATORS_PROFESSIONAL = "/moderators/professional"

    @property
    def display_name(self) -> str:
        """Human-readable group name used in invitation emails."""
        return _DISPLAY_NAMES[self]

    @property
    def is_assignable(self) -> bool:
        """Whether users can be placed directly in this group."""
        return self not in (GroupPath.MEMBERS, GroupPath.MODERATORS)

    @classmethod
    def from_path(cls, path: str | None) -> "GroupPath | None":
        """Resolve a path string, returning None for unknown paths."""
        if not path:
            return None
        try:
            return cls(path)
        except ValueError:
            return None

    @classmethod
    def assignable(cls) -> list["GroupPath"]:
        """All groups an admin may place a user into."""
        return [group for group in cls if group.is_assignable]


_DISPLAY_NAMES: dict[GroupPath, str] = {
    GroupPath.MEMBERS: "General members",
    GroupPath.MODERATORS: "Content moderators",
    GroupPath.ADMINISTRATORS: "Administrators",
    GroupPath.MEMBERS_NEW: "New members",
    GroupPath.MEMBERS_ACTIVE: "Active members",
    GroupPath.MEMBERS_TRUSTED: "Trusted members",
    GroupPath.MODERATORS_PEER: "Peer moderators",
    GroupPath.MODERATORS_PROFESSIONAL: "Professional moderators",
}

DEFAULT_ONBOARDING_GROUP = GroupPath.MEMBERS_NEW
