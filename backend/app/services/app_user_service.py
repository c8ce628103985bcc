"""Local profile sync from the identity directory.

An identity that was invited by an administrator graduates to a local
profile only once it is verified and has reached AWAITING_PROFILE_COMPLETION.
Creating that first profile is the lobby's terminal transition.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidStateError, NotFoundError, directory_errors
from app.models.app_user import AppUser
from app.models.enums import OnboardingStage
from app.providers.identity.base import IdentityDirectory, IdentityRecord
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.repositories.app_user_repository import AppUserRepository
from app.services.admin_invitation_service import AdminInvitationService

logger = logging.getLogger(__name__)


class AppUserService:
    """Keeps AppUser rows in step with directory identities.

    Args:
        db: Async database session.
        directory: Identity directory collaborator.
    """

    def __init__(self, db: AsyncSession, directory: IdentityDirectory) -> None:
        self._db = db
        self._directory = directory
        self._invitations = AdminInvitationService(db, directory)

    async def _ensure_ready(self, record: IdentityRecord) -> bool:
        """Check an identity without a profile may get one.

        Returns:
            True if the identity is still in the lobby.

        Raises:
            InvalidStateError: ONBOARDING_INCOMPLETE while the invitee has
                not verified or not finished the password reset.
        """
        invitation = await AdminInvitationRepository.get_by_keycloak_id(
            self._db, uuid.UUID(record.id)
        )
        if invitation is None:
            return False
        if not (
            record.email_verified
            and invitation.current_stage
            == OnboardingStage.AWAITING_PROFILE_COMPLETION.value
        ):
            raise InvalidStateError(
                "User has not finished onboarding", code="ONBOARDING_INCOMPLETE"
            )
        return True

    async def sync_from_identity(
        self, record: IdentityRecord, groups: list[str]
    ) -> AppUser:
        """Upsert the local profile, then flag the identity as synced.

        The first sync of an invited identity also completes its invitation,
        which removes the lobby row and the email's tokens. The flag is
        written after the local writes so a directory failure leaves a
        profile that a retry simply refreshes.

        Raises:
            InvalidStateError: The invitee is not ready for a profile yet.
        """
        keycloak_id = uuid.UUID(record.id)
        existing = await AppUserRepository.get_by_keycloak_id(self._db, keycloak_id)
        in_lobby = existing is None and await self._ensure_ready(record)

        user, created = await AppUserRepository.upsert_from_directory(
            self._db,
            keycloak_id=keycloak_id,
            email=record.email,
            username=record.username,
            first_name=record.first_name,
            last_name=record.last_name,
            groups=groups,
            is_enabled=record.enabled,
            synced_at=datetime.now(UTC),
        )
        if created and in_lobby:
            await self._invitations.complete_invitation(keycloak_id)

        await self._directory.set_synced_locally(record.id, True)
        logger.info("Synced local profile for identity %s", record.id)
        return user

    async def sync_user(self, user_id: uuid.UUID) -> AppUser:
        """Load an identity from the directory and sync its profile.

        Raises:
            NotFoundError: Unknown identity.
            InvalidStateError: The invitee is not ready for a profile yet.
            IdentityDirectoryError: Directory failure.
        """
        with directory_errors("sync_user"):
            record = await self._directory.find_by_id(str(user_id))
            if record is None:
                raise NotFoundError("User", str(user_id))
            groups = await self._directory.get_groups_of(record.id)
            return await self.sync_from_identity(record, groups)

    async def update_local_email(self, keycloak_id: str, email: str) -> AppUser:
        """Mirror an email change onto the local profile.

        Raises:
            NotFoundError: If the identity has no local profile.
        """
        user = await AppUserRepository.get_by_keycloak_id(
            self._db, uuid.UUID(keycloak_id)
        )
        if user is None:
            raise NotFoundError("User", keycloak_id)
        if user.email == email:
            return user
        return await AppUserRepository.update_email(self._db, user, email)
