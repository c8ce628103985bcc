"""Tests for directory group paths."""

from app.core.groups import DEFAULT_ONBOARDING_GROUP, GroupPath


class TestGroupPath:
    """Group lookup and assignability."""

    def test_parent_groups_are_not_assignable(self):
        """Users are placed in leaf groups only."""
        assert not GroupPath.MEMBERS.is_assignable
        assert not GroupPath.MODERATORS.is_assignable
        assert GroupPath.MEMBERS_NEW.is_assignable

    def test_assignable_excludes_parents(self):
        """assignable() lists every leaf group."""
        assignable = GroupPath.assignable()
        assert GroupPath.MEMBERS not in assignable
        assert GroupPath.ADMINISTRATORS in assignable
        assert len(assignable) == 6

    def test_from_path_resolves_known_paths(self):
        """Known paths resolve to members."""
        assert GroupPath.from_path("/members/trusted") is GroupPath.MEMBERS_TRUSTED

    def test_from_path_returns_none_for_unknown(self):
        """Unknown or empty paths resolve to None."""
        assert GroupPath.from_path("/nope") is None
        assert GroupPath.from_path(None) is None
        assert GroupPath.from_path("") is None

    def test_display_names(self):
        """Display names are used in invitation emails."""
        assert GroupPath.MEMBERS_NEW.display_name == "New members"
        assert GroupPath.MODERATORS_PEER.display_name == "Peer moderators"

    def test_default_onboarding_group(self):
        """Self-registrations land in /members/new."""
        assert DEFAULT_ONBOARDING_GROUP.value == "/members/new"
