"""Admin-created identities: create, reissue, and revoke invitations.

An admin-created identity starts with a temporary password and the
VERIFY_EMAIL required action. It is flagged "not synced locally" in the
directory and tracked in the lobby until the invited user finishes
onboarding.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.credentials import (
    generate_temporary_password,
    generate_username,
    suffixed_username,
)
from app.core.errors import (
    ConflictError,
    IdentityDirectoryError,
    IdentitySyncError,
    InvalidStateError,
    NotFoundError,
    TooManyRequestsError,
    ValidationError,
    directory_errors,
)
from app.core.groups import DEFAULT_ONBOARDING_GROUP, GroupPath
from app.models.admin_invitation import AdminInvitation
from app.models.enums import VerificationType
from app.providers.errors import DirectoryError
from app.providers.identity.base import (
    VERIFY_EMAIL_ACTION,
    IdentityDirectory,
    IdentityRecord,
    NewIdentity,
)
from app.providers.notifications.base import NotificationDispatcher, Workflow
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.services.admin_invitation_service import AdminInvitationService
from app.services.onboarding_orchestrator import OnboardingOrchestrator
from app.services.token_lifecycle import TokenLifecycleService, normalize_email

logger = logging.getLogger(__name__)

_MAX_USERNAME_ATTEMPTS = 5
_FALLBACK_GROUP_NAME = "our community"


@dataclass(frozen=True)
class InvitationOutcome:
    """Result of creating or reissuing an invitation.

    Attributes:
        user_id: Directory identity id.
        username: Directory username.
        temporary_password: One-time password to hand to the user.
        invitation_link: Verification link for the invited email.
        invitation_sent: Whether the invitation notification was accepted.
    """

    user_id: str
    username: str
    temporary_password: str
    invitation_link: str
    invitation_sent: bool


def _resolve_group(group_path: str) -> GroupPath:
    group = GroupPath.from_path(group_path)
    if group is None or not group.is_assignable:
        raise ValidationError(
            f"Group '{group_path}' cannot be assigned",
            details=[{"allowed": [g.value for g in GroupPath.assignable()]}],
            code="INVALID_GROUP",
        )
    return group


class AdminUserService:
    """Admin-side identity creation and invitation management.

    Args:
        db: Async database session.
        directory: Identity directory collaborator.
        dispatcher: Notification dispatcher collaborator.
    """

    def __init__(
        self,
        db: AsyncSession,
        directory: IdentityDirectory,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._db = db
        self._directory = directory
        self._tokens = TokenLifecycleService(db)
        self._invitations = AdminInvitationService(db, directory)
        self._orchestrator = OnboardingOrchestrator(db, directory, dispatcher)

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def _available_username(self, username: str) -> str:
        candidate = username
        for _ in range(_MAX_USERNAME_ATTEMPTS):
            if await self._directory.find_by_username(candidate) is None:
                return candidate
            candidate = suffixed_username(username)
        raise ConflictError(
            code="USERNAME_TAKEN",
            message=f"Could not find a free username based on '{username}'",
        )

    async def create_user_as_admin(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        group_path: str,
        invited_by: uuid.UUID,
        username: str | None = None,
        send_invitation_email: bool = True,
    ) -> InvitationOutcome:
        """Create a directory identity and put it in the lobby.

        Args:
            email: Invitee email.
            first_name: Given name.
            last_name: Family name.
            group_path: Assignable onboarding group.
            invited_by: Directory id of the acting admin.
            username: Explicit username; generated from the names if None.
            send_invitation_email: Trigger the invitation notification.

        Returns:
            InvitationOutcome with the temporary password and link.

        Raises:
            ValidationError: INVALID_GROUP or USERNAME_GENERATION_FAILED.
            ConflictError: USER_ALREADY_EXISTS or USERNAME_TAKEN.
            IdentityDirectoryError: Directory failure.
        """
        group = _resolve_group(group_path)
        email = normalize_email(email)
        base_username = (
            username.strip().lower()
            if username
            else generate_username(first_name, last_name)
        )

        with directory_errors("create_user_as_admin"):
            if await self._directory.find_by_email(email) is not None:
                raise ConflictError(
                    code="USER_ALREADY_EXISTS",
                    message="An account with this email already exists",
                )
            final_username = await self._available_username(base_username)

            temporary_password = generate_temporary_password()
            user_id = await self._directory.create_identity(
                NewIdentity(
                    username=final_username,
                    email=email,
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                    password=temporary_password,
                    temporary_password=True,
                    email_verified=False,
                    required_actions=[VERIFY_EMAIL_ACTION],
                )
            )

        try:
            with directory_errors("create_user_as_admin"):
                await self._directory.assign_to_group(user_id, group.value)
                await self._directory.set_synced_locally(user_id, False)
            await self._invitations.create_invitation(user_id, invited_by)
            link, sent = await self._send_invitation(
                user_id=user_id,
                email=email,
                first_name=first_name.strip(),
                group_path=group.value,
                temporary_password=temporary_password,
                send=send_invitation_email,
            )
        except (IdentityDirectoryError, TooManyRequestsError, SQLAlchemyError) as e:
            await self._discard_identity(user_id)
            if isinstance(e, SQLAlchemyError):
                raise IdentitySyncError(user_id, "create_user_as_admin") from e
            raise

        logger.info("Admin %s created identity %s", invited_by, user_id)
        return InvitationOutcome(
            user_id=user_id,
            username=final_username,
            temporary_password=temporary_password,
            invitation_link=link,
            invitation_sent=sent,
        )

    async def commit_created(self, user_id: str) -> None:
        """Commit a new invitee's local rows, or remove the identity.

        Raises:
            IdentitySyncError: The commit failed; the directory identity has
                been discarded so the admin can simply retry.
        """
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            await self._discard_identity(user_id)
            raise IdentitySyncError(user_id, "create_user_as_admin") from e

    async def _discard_identity(self, user_id: str) -> None:
        """Best-effort removal of an identity whose setup did not finish."""
        try:
            await self._directory.delete_identity(user_id)
        except DirectoryError:
            logger.error(
                "Could not remove half-created identity %s; manual cleanup needed",
                user_id,
                exc_info=True,
            )

    async def _send_invitation(
        self,
        *,
        user_id: str,
        email: str,
        first_name: str,
        group_path: str,
        temporary_password: str,
        send: bool,
    ) -> tuple[str, bool]:
        link = await self._orchestrator.create_verification_link(
            email, VerificationType.INVITED, group_path
        )
        if not send:
            return link, False

        group = GroupPath.from_path(group_path)
        sent = await self._orchestrator.notify(
            Workflow.ADMIN_ONBOARDING_INVITE,
            user_id,
            email,
            {
                "firstName": first_name,
                "temporaryPassword": temporary_password,
                "invitationLink": link,
                "groupName": group.display_name if group else _FALLBACK_GROUP_NAME,
            },
        )
        return link, sent

    # -----------------------------------------------------------------------
    # Reissue & revoke
    # -----------------------------------------------------------------------

    async def _load_unactivated(
        self, user_id: uuid.UUID
    ) -> tuple[IdentityRecord, AdminInvitation]:
        """Fetch an identity that is still in onboarding.

        Raises:
            NotFoundError: No identity, or no lobby row.
            InvalidStateError: USER_ALREADY_ACTIVE or INVITATION_ALREADY_VERIFIED.
        """
        with directory_errors("load_invitee"):
            record = await self._directory.find_by_id(str(user_id))
        if record is None:
            raise NotFoundError("User", str(user_id))
        if record.is_synced_locally:
            raise InvalidStateError(
                "User has already completed onboarding", code="USER_ALREADY_ACTIVE"
            )
        if record.email_verified:
            raise InvalidStateError(
                "Invitation has already been accepted",
                code="INVITATION_ALREADY_VERIFIED",
            )

        invitation = await AdminInvitationRepository.get_by_keycloak_id(
            self._db, user_id
        )
        if invitation is None:
            raise NotFoundError("Invitation", str(user_id))
        return record, invitation

    async def reissue_invitation(
        self,
        *,
        user_id: uuid.UUID,
        email: str,
        group_path: str | None = None,
        send_invitation_email: bool = True,
    ) -> InvitationOutcome:
        """Reset the temporary password and send a fresh invitation link.

        Args:
            user_id: Directory identity id.
            email: Email to invite (may differ from the current one).
            group_path: New assignable group; keeps the current one if None.
            send_invitation_email: Trigger the invitation notification.

        Raises:
            NotFoundError: Unknown identity or not in the lobby.
            InvalidStateError: Identity already active or verified.
            ConflictError: USER_ALREADY_EXISTS if the new email is taken.
            TooManyRequestsError: If a link for the email is in cooldown.
            IdentityDirectoryError: Directory failure.
        """
        record, invitation = await self._load_unactivated(user_id)
        group = _resolve_group(group_path) if group_path else None
        email = normalize_email(email)
        kc_id = str(user_id)
        await self._tokens.check_rate_limit(email)

        temporary_password = generate_temporary_password()
        with directory_errors("reissue_invitation"):
            if email != record.email:
                holder = await self._directory.find_by_email(email)
                if holder is not None and holder.id != kc_id:
                    raise ConflictError(
                        code="USER_ALREADY_EXISTS",
                        message="An account with this email already exists",
                    )
                await self._directory.update_identity(
                    kc_id, email=email, email_verified=False
                )
            await self._directory.reset_password(
                kc_id, temporary_password, temporary=True
            )
            if group is not None:
                await self._directory.assign_to_group(kc_id, group.value)

        if email != record.email:
            await self._tokens.remove_tokens_for_email(record.email)
        await self._invitations.update_invitation(kc_id)
        await self._invitations.reset_for_reissue(user_id)

        if group is not None:
            link_group = group.value
        elif invitation.groups:
            link_group = invitation.groups[0]
        else:
            link_group = DEFAULT_ONBOARDING_GROUP.value
        link, sent = await self._send_invitation(
            user_id=kc_id,
            email=email,
            first_name=record.first_name or "",
            group_path=link_group,
            temporary_password=temporary_password,
            send=send_invitation_email,
        )
        logger.info("Reissued invitation for identity %s", kc_id)
        return InvitationOutcome(
            user_id=kc_id,
            username=record.username,
            temporary_password=temporary_password,
            invitation_link=link,
            invitation_sent=sent,
        )

    async def revoke_invitation(self, user_id: uuid.UUID) -> None:
        """Delete a not-yet-onboarded identity and its lobby row.

        Raises:
            NotFoundError: Unknown identity or not in the lobby.
            InvalidStateError: Identity already active or verified.
            IdentityDirectoryError: Directory failure.
        """
        await self._load_unactivated(user_id)
        with directory_errors("revoke_invitation"):
            await self._directory.delete_identity(str(user_id))
        await self._invitations.complete_invitation(user_id)
        logger.info("Revoked invitation for identity %s", user_id)
