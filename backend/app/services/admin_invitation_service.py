"""Admin-invitation lobby: the onboarding stage machine.

AWAITING_VERIFICATION → AWAITING_PASSWORD_RESET → AWAITING_PROFILE_COMPLETION
→ (row removed by complete_invitation)

WHY CONDITIONAL UPDATES:
- Verification webhooks and link clicks can arrive twice. The verification
  transition is a single UPDATE guarded by the current stage, so a duplicate
  matches zero rows instead of rewinding a user who already moved on.
- Password reset advances unconditionally: a user who reset the one-time
  password has necessarily passed verification.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidPaginationError, ValidationError, directory_errors
from app.models.admin_invitation import AdminInvitation
from app.models.enums import OnboardingStage
from app.providers.errors import IdentityNotFoundError
from app.providers.identity.base import IdentityDirectory
from app.repositories.admin_invitation_repository import (
    SORTABLE_COLUMNS,
    AdminInvitationRepository,
)
from app.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingInvite:
    """A lobby row with its inviter resolved for display.

    Attributes:
        invitation: The lobby row.
        inviter_id: Directory id of the inviting admin.
        inviter_name: Inviter display name, or None without a local profile.
    """

    invitation: AdminInvitation
    inviter_id: uuid.UUID
    inviter_name: str | None


class AdminInvitationService:
    """Lobby lifecycle for admin-created identities.

    Args:
        db: Async database session.
        directory: Identity directory collaborator (source of cached fields).
    """

    def __init__(self, db: AsyncSession, directory: IdentityDirectory) -> None:
        self._db = db
        self._directory = directory

    # -----------------------------------------------------------------------
    # Creation & re-sync
    # -----------------------------------------------------------------------

    async def create_invitation(
        self, keycloak_id: str, invited_by: uuid.UUID
    ) -> AdminInvitation:
        """Create the lobby row for a freshly created identity.

        Cached fields are read back from the directory so the row mirrors
        what the directory actually stored.

        Raises:
            IdentityDirectoryError: If the identity cannot be read.
        """
        with directory_errors("create_invitation"):
            record = await self._directory.find_by_id(keycloak_id)
            if record is None:
                raise IdentityNotFoundError(keycloak_id)
            groups = await self._directory.get_groups_of(keycloak_id)

        invitation = await AdminInvitationRepository.create(
            self._db,
            keycloak_id=uuid.UUID(record.id),
            email=record.email,
            username=record.username,
            first_name=record.first_name or "",
            last_name=record.last_name or "",
            groups=groups,
            invited_by=invited_by,
            is_enabled=record.enabled,
            date_created=record.created_at,
        )
        logger.info("Created lobby row for identity %s", keycloak_id)
        return invitation

    async def update_invitation(self, keycloak_id: str) -> AdminInvitation | None:
        """Re-sync cached display fields from the directory.

        Returns:
            The updated row, or None when the identity is not in the lobby
            (silent no-op).
        """
        kc_uuid = uuid.UUID(keycloak_id)
        if await AdminInvitationRepository.get_by_keycloak_id(self._db, kc_uuid) is None:
            return None

        with directory_errors("update_invitation"):
            record = await self._directory.find_by_id(keycloak_id)
            if record is None:
                return None
            groups = await self._directory.get_groups_of(keycloak_id)

        return await AdminInvitationRepository.update_cached_fields(
            self._db,
            kc_uuid,
            email=record.email,
            username=record.username,
            first_name=record.first_name or "",
            last_name=record.last_name or "",
            groups=groups,
            is_enabled=record.enabled,
            is_email_verified=record.email_verified,
        )

    # -----------------------------------------------------------------------
    # Stage transitions
    # -----------------------------------------------------------------------

    async def process_verification_success(self, keycloak_id: uuid.UUID) -> bool:
        """Advance AWAITING_VERIFICATION → AWAITING_PASSWORD_RESET.

        Returns:
            True if the row advanced, False for a duplicate (already past
            verification) or an identity not in the lobby.
        """
        advanced = await AdminInvitationRepository.mark_email_verified_and_advance(
            self._db, keycloak_id
        )
        if not advanced:
            logger.info(
                "Verification for %s did not advance the lobby stage", keycloak_id
            )
        return advanced > 0

    async def process_password_reset_success(self, keycloak_id: uuid.UUID) -> None:
        """Consume the one-time password and move to profile completion."""
        await AdminInvitationRepository.invalidate_one_time_password(
            self._db, keycloak_id
        )
        await AdminInvitationRepository.update_stage(
            self._db, keycloak_id, OnboardingStage.AWAITING_PROFILE_COMPLETION
        )

    async def update_onboarding_stage(
        self, keycloak_id: uuid.UUID, stage: OnboardingStage
    ) -> bool:
        """Administrative override of the stage.

        Returns:
            True if a lobby row was updated.
        """
        changed = await AdminInvitationRepository.update_stage(
            self._db, keycloak_id, stage
        )
        if changed:
            logger.info("Stage of %s set to %s by override", keycloak_id, stage.value)
        return changed > 0

    async def reset_for_reissue(self, keycloak_id: uuid.UUID) -> bool:
        """Rewind a row to AWAITING_VERIFICATION with a fresh one-time password."""
        changed = await AdminInvitationRepository.update_stage(
            self._db,
            keycloak_id,
            OnboardingStage.AWAITING_VERIFICATION,
            is_initial_login=True,
        )
        return changed > 0

    async def complete_invitation(self, keycloak_id: uuid.UUID) -> bool:
        """Terminal transition: drop the email's tokens, then the row.

        Both deletes run in the caller's transaction.

        Returns:
            True if a row was removed; False (no-op) when not in the lobby.
        """
        invitation = await AdminInvitationRepository.get_by_keycloak_id(
            self._db, keycloak_id
        )
        if invitation is None:
            return False

        await VerificationTokenRepository.delete_all_for_email(
            self._db, invitation.email
        )
        await AdminInvitationRepository.delete_by_keycloak_id(self._db, keycloak_id)
        logger.info("Completed onboarding for identity %s", keycloak_id)
        return True

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------

    async def get_pending_invites(
        self,
        *,
        page: int = 0,
        size: int = 20,
        groups: list[str] | None = None,
        invited_by: uuid.UUID | None = None,
        sort_by: str = "date_created",
        sort_direction: str = "desc",
        search: str | None = None,
        stage: OnboardingStage | None = None,
    ) -> tuple[list[PendingInvite], int]:
        """Paginated lobby listing.

        Args:
            page: 0-based page index.
            size: Page size.
            groups: Array-overlap filter; None or empty disables it.
            invited_by: Restrict to one inviting admin.
            sort_by: Whitelisted column name.
            sort_direction: "asc" for ascending, anything else descending.
            search: Case-insensitive substring over identity fields.
            stage: Restrict to one stage.

        Returns:
            Tuple of (page rows, total count).

        Raises:
            InvalidPaginationError: If page < 0 or size <= 0.
            ValidationError: If sort_by is not whitelisted.
        """
        if page < 0 or size <= 0:
            raise InvalidPaginationError()
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'",
                details=[{"allowed": sorted(SORTABLE_COLUMNS)}],
                code="INVALID_SORT_FIELD",
            )

        rows, total = await AdminInvitationRepository.list_pending(
            self._db,
            offset=page * size,
            limit=size,
            sort_by=sort_by,
            ascending=sort_direction.lower() == "asc",
            groups=groups,
            invited_by=invited_by,
            search=search,
            stage=stage,
        )
        invites = [
            PendingInvite(
                invitation=invitation,
                inviter_id=invitation.invited_by,
                inviter_name=inviter.name if inviter is not None else None,
            )
            for invitation, inviter in rows
        ]
        return invites, total
