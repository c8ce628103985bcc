"""Tests for AdminInvitationService: the onboarding lobby stage machine."""

import uuid

import pytest

from app.core.errors import (
    IdentityDirectoryError,
    InvalidPaginationError,
    ValidationError,
)
from app.models.app_user import AppUser
from app.models.enums import OnboardingStage, VerificationType
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.services.admin_invitation_service import AdminInvitationService
from app.services.token_lifecycle import TokenLifecycleService

_ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")


async def _invite(db, directory, *, email="ada@example.com", groups=None, **kwargs):
    record = directory.add_user(
        email=email,
        email_verified=False,
        synced_locally=False,
        groups=groups or ["/members/new"],
        **kwargs,
    )
    invitation = await AdminInvitationService(db, directory).create_invitation(
        record.id, _ADMIN_ID
    )
    return record, invitation


async def _stage(db, keycloak_id: str) -> OnboardingStage:
    row = await AdminInvitationRepository.get_by_keycloak_id(db, uuid.UUID(keycloak_id))
    await db.refresh(row)
    return OnboardingStage(row.current_stage)


class TestCreateInvitation:
    """Lobby row creation mirrors the directory."""

    @pytest.mark.asyncio
    async def test_copies_directory_fields(self, db_session, mock_directory):
        """Cached fields come from the directory read-back."""
        record, invitation = await _invite(
            db_session,
            mock_directory,
            first_name="Ada",
            last_name="Lovelace",
            groups=["/members/trusted"],
        )

        assert invitation.keycloak_id == uuid.UUID(record.id)
        assert invitation.email == "ada@example.com"
        assert invitation.first_name == "Ada"
        assert invitation.groups == ["/members/trusted"]
        assert invitation.invited_by == _ADMIN_ID
        assert invitation.current_stage == OnboardingStage.AWAITING_VERIFICATION.value
        assert invitation.is_initial_login is True
        assert invitation.is_email_verified is False

    @pytest.mark.asyncio
    async def test_unknown_identity_raises(self, db_session, mock_directory):
        """The identity must exist in the directory."""
        svc = AdminInvitationService(db_session, mock_directory)
        with pytest.raises(IdentityDirectoryError):
            await svc.create_invitation(str(uuid.uuid4()), _ADMIN_ID)


class TestUpdateInvitation:
    """Re-sync from the directory."""

    @pytest.mark.asyncio
    async def test_refreshes_cached_fields(self, db_session, mock_directory):
        """Directory edits are copied onto the row."""
        record, _ = await _invite(db_session, mock_directory)
        record.email = "ada.new@example.com"
        mock_directory.groups[record.id] = ["/members/active"]

        updated = await AdminInvitationService(
            db_session, mock_directory
        ).update_invitation(record.id)

        assert updated is not None
        assert updated.email == "ada.new@example.com"
        assert updated.groups == ["/members/active"]

    @pytest.mark.asyncio
    async def test_not_in_lobby_is_noop(self, db_session, mock_directory):
        """Identities without a lobby row are ignored."""
        record = mock_directory.add_user(email="bob@example.com")
        svc = AdminInvitationService(db_session, mock_directory)

        assert await svc.update_invitation(record.id) is None
        assert mock_directory.called("find_by_id") == []


class TestStageTransitions:
    """Verification, password reset, overrides, completion."""

    @pytest.mark.asyncio
    async def test_verification_advances_once(self, db_session, mock_directory):
        """A duplicate verification does not rewind or re-advance."""
        record, _ = await _invite(db_session, mock_directory)
        svc = AdminInvitationService(db_session, mock_directory)
        kc_id = uuid.UUID(record.id)

        assert await svc.process_verification_success(kc_id) is True
        assert await svc.process_verification_success(kc_id) is False
        assert await _stage(db_session, record.id) is OnboardingStage.AWAITING_PASSWORD_RESET

    @pytest.mark.asyncio
    async def test_duplicate_verification_does_not_rewind(
        self, db_session, mock_directory
    ):
        """A late verification leaves a later stage untouched."""
        record, _ = await _invite(db_session, mock_directory)
        svc = AdminInvitationService(db_session, mock_directory)
        kc_id = uuid.UUID(record.id)
        await svc.process_verification_success(kc_id)
        await svc.process_password_reset_success(kc_id)

        assert await svc.process_verification_success(kc_id) is False
        assert (
            await _stage(db_session, record.id)
            is OnboardingStage.AWAITING_PROFILE_COMPLETION
        )

    @pytest.mark.asyncio
    async def test_password_reset_consumes_one_time_password(
        self, db_session, mock_directory
    ):
        """Reset clears is_initial_login and moves to profile completion."""
        record, _ = await _invite(db_session, mock_directory)
        kc_id = uuid.UUID(record.id)

        await AdminInvitationService(
            db_session, mock_directory
        ).process_password_reset_success(kc_id)

        row = await AdminInvitationRepository.get_by_keycloak_id(db_session, kc_id)
        await db_session.refresh(row)
        assert row.is_initial_login is False
        assert row.current_stage == OnboardingStage.AWAITING_PROFILE_COMPLETION.value

    @pytest.mark.asyncio
    async def test_override_sets_any_stage(self, db_session, mock_directory):
        """Administrative override may move backwards."""
        record, _ = await _invite(db_session, mock_directory)
        svc = AdminInvitationService(db_session, mock_directory)
        kc_id = uuid.UUID(record.id)
        await svc.process_verification_success(kc_id)

        changed = await svc.update_onboarding_stage(
            kc_id, OnboardingStage.AWAITING_VERIFICATION
        )

        assert changed is True
        assert await _stage(db_session, record.id) is OnboardingStage.AWAITING_VERIFICATION

    @pytest.mark.asyncio
    async def test_override_unknown_row_returns_false(self, db_session, mock_directory):
        """Nothing to update outside the lobby."""
        svc = AdminInvitationService(db_session, mock_directory)
        assert (
            await svc.update_onboarding_stage(
                uuid.uuid4(), OnboardingStage.AWAITING_PASSWORD_RESET
            )
            is False
        )

    @pytest.mark.asyncio
    async def test_reset_for_reissue_restores_initial_login(
        self, db_session, mock_directory
    ):
        """Reissue rewinds to verification with a fresh one-time password."""
        record, _ = await _invite(db_session, mock_directory)
        svc = AdminInvitationService(db_session, mock_directory)
        kc_id = uuid.UUID(record.id)
        await svc.process_password_reset_success(kc_id)

        assert await svc.reset_for_reissue(kc_id) is True

        row = await AdminInvitationRepository.get_by_keycloak_id(db_session, kc_id)
        await db_session.refresh(row)
        assert row.is_initial_login is True
        assert row.current_stage == OnboardingStage.AWAITING_VERIFICATION.value

    @pytest.mark.asyncio
    async def test_complete_removes_row_and_tokens(self, db_session, mock_directory):
        """Completion deletes the email's tokens and the lobby row."""
        record, _ = await _invite(db_session, mock_directory)
        tokens = TokenLifecycleService(db_session)
        await tokens.generate_token(record.email, VerificationType.INVITED)
        kc_id = uuid.UUID(record.id)

        completed = await AdminInvitationService(
            db_session, mock_directory
        ).complete_invitation(kc_id)

        assert completed is True
        assert await AdminInvitationRepository.get_by_keycloak_id(db_session, kc_id) is None
        assert await tokens.find_live_token(record.email, VerificationType.INVITED) is None

    @pytest.mark.asyncio
    async def test_complete_twice_is_noop(self, db_session, mock_directory):
        """The second completion finds nothing."""
        record, _ = await _invite(db_session, mock_directory)
        svc = AdminInvitationService(db_session, mock_directory)

        await svc.complete_invitation(uuid.UUID(record.id))

        assert await svc.complete_invitation(uuid.UUID(record.id)) is False


class TestGetPendingInvites:
    """Paginated, filtered listing."""

    @pytest.mark.asyncio
    async def test_rejects_bad_pagination(self, db_session, mock_directory):
        """Negative page or zero size is INVALID_PAGINATION."""
        svc = AdminInvitationService(db_session, mock_directory)
        with pytest.raises(InvalidPaginationError):
            await svc.get_pending_invites(page=-1)
        with pytest.raises(InvalidPaginationError):
            await svc.get_pending_invites(size=0)

    @pytest.mark.asyncio
    async def test_rejects_unknown_sort_column(self, db_session, mock_directory):
        """Only whitelisted columns are sortable."""
        svc = AdminInvitationService(db_session, mock_directory)
        with pytest.raises(ValidationError) as exc_info:
            await svc.get_pending_invites(sort_by="encrypted_password")
        assert exc_info.value.code == "INVALID_SORT_FIELD"

    @pytest.mark.asyncio
    async def test_pages_and_counts(self, db_session, mock_directory):
        """total counts every match; the page holds size rows."""
        for i in range(3):
            await _invite(db_session, mock_directory, email=f"user{i}@example.com")
        svc = AdminInvitationService(db_session, mock_directory)

        invites, total = await svc.get_pending_invites(
            page=1, size=2, sort_by="email", sort_direction="asc"
        )

        assert total == 3
        assert [i.invitation.email for i in invites] == ["user2@example.com"]

    @pytest.mark.asyncio
    async def test_groups_filter_matches_any_overlap(self, db_session, mock_directory):
        """A row sharing any listed group matches."""
        await _invite(db_session, mock_directory, email="a@example.com", groups=["/members/new"])
        await _invite(
            db_session, mock_directory, email="b@example.com", groups=["/moderators/peer"]
        )
        svc = AdminInvitationService(db_session, mock_directory)

        invites, total = await svc.get_pending_invites(
            groups=["/moderators/peer", "/members/trusted"]
        )

        assert total == 1
        assert invites[0].invitation.email == "b@example.com"

    @pytest.mark.asyncio
    async def test_search_and_stage_filters(self, db_session, mock_directory):
        """Search is a case-insensitive substring; stage is exact."""
        ada, _ = await _invite(db_session, mock_directory, email="ada@example.com")
        await _invite(db_session, mock_directory, email="bob@example.com")
        svc = AdminInvitationService(db_session, mock_directory)
        await svc.process_verification_success(uuid.UUID(ada.id))

        by_search, _ = await svc.get_pending_invites(search="ADA")
        by_stage, _ = await svc.get_pending_invites(
            stage=OnboardingStage.AWAITING_VERIFICATION
        )

        assert [i.invitation.email for i in by_search] == ["ada@example.com"]
        assert [i.invitation.email for i in by_stage] == ["bob@example.com"]

    @pytest.mark.asyncio
    async def test_search_wildcards_match_literally(self, db_session, mock_directory):
        """% in search text is not a wildcard."""
        await _invite(db_session, mock_directory, email="ada@example.com")
        svc = AdminInvitationService(db_session, mock_directory)

        invites, total = await svc.get_pending_invites(search="%")

        assert total == 0
        assert invites == []

    @pytest.mark.asyncio
    async def test_inviter_name_resolved_from_profile(self, db_session, mock_directory):
        """The inviting admin's local profile supplies the display name."""
        db_session.add(
            AppUser(
                keycloak_id=_ADMIN_ID,
                email="admin@example.com",
                username="admin",
                first_name="Grace",
                last_name="Hopper",
            )
        )
        await db_session.flush()
        await _invite(db_session, mock_directory)
        await _invite(
            db_session, mock_directory, email="c@example.com"
        )
        svc = AdminInvitationService(db_session, mock_directory)

        invites, _ = await svc.get_pending_invites(invited_by=_ADMIN_ID)

        assert {i.inviter_name for i in invites} == {"Grace Hopper"}
        assert all(i.inviter_id == _ADMIN_ID for i in invites)
