"""Onboarding orchestrator: verification links and finalize dispatch.

Given a validated (token, email) pair, drives the finalize path bound to the
token's type across two systems of record that share no transaction: the
identity directory and the local database.

WHY THIS ORDERING:
- Directory write first, local write second, token retired last. Any failure
  before the retirement leaves the token live, so the client re-submits the
  same link and the finalize step runs again.
- Each finalize step is idempotent on retry: it detects directory work that
  a previous attempt already completed instead of repeating it.
- A local write that fails after the directory write succeeded is the one
  divergence that cannot self-heal. It is logged at ERROR with the identity
  id and operation, and surfaced as IdentitySyncError.

Notifications are fire-and-forget: a failed dispatch is logged and the link
stays retrievable through request_new_verification_link().
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import decrypt_password
from app.core.errors import (
    IdentitySyncError,
    NotFoundError,
    PendingRegistrationNotFoundError,
    directory_errors,
)
from app.core.groups import DEFAULT_ONBOARDING_GROUP
from app.models.enums import VerificationType
from app.models.verification_token import VerificationToken
from app.providers.errors import IdentityConflictError, IdentityNotFoundError
from app.providers.identity.base import IdentityDirectory, NewIdentity
from app.providers.notifications.base import NotificationDispatcher, Workflow
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.repositories.pending_user_repository import PendingUserRepository
from app.services.admin_invitation_service import AdminInvitationService
from app.services.app_user_service import AppUserService
from app.services.token_lifecycle import TokenLifecycleService, normalize_email

logger = logging.getLogger(__name__)


def build_verification_link(token: str, email: str) -> str:
    """Frontend URL embedding the plain token and its anchor email."""
    query = urlencode({"token": token, "email": email})
    return f"{settings.frontend_url.rstrip('/')}/auth/verify?{query}"


# =============================================================================
# Finalize variants
# =============================================================================


@dataclass(frozen=True)
class SelfRegFinalize:
    """Promote a staged self-registration into a directory identity."""

    token_id: int
    email: str
    group_path: str


@dataclass(frozen=True)
class InvitedFinalize:
    """Verify an admin-created identity and advance its lobby row."""

    token_id: int
    email: str
    group_path: str | None


@dataclass(frozen=True)
class AppUserFinalize:
    """Verify an existing identity's email, or apply an email change."""

    token_id: int
    email: str
    new_value: str | None


FinalizeStep = SelfRegFinalize | InvitedFinalize | AppUserFinalize


def to_finalize_step(token: VerificationToken) -> FinalizeStep:
    """Narrow a token row to the variant carrying only the fields it needs."""
    match token.verification_type:
        case VerificationType.SELF_REG:
            return SelfRegFinalize(
                token_id=token.id,
                email=token.email,
                group_path=token.group_path or DEFAULT_ONBOARDING_GROUP.value,
            )
        case VerificationType.INVITED:
            return InvitedFinalize(
                token_id=token.id, email=token.email, group_path=token.group_path
            )
        case VerificationType.APP_USER:
            return AppUserFinalize(
                token_id=token.id, email=token.email, new_value=token.new_value
            )
    msg = f"Unknown verification type: {token.type}"
    raise ValueError(msg)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a successful finalize.

    Attributes:
        type: Finalize path that ran.
        group_path: Onboarding group, when the path has one.
        user_id: Directory identity id.
        username: Directory username.
        resolved_email: Email the identity holds after finalize.
    """

    type: VerificationType
    group_path: str | None
    user_id: str
    username: str
    resolved_email: str


class OnboardingOrchestrator:
    """Issues verification links and runs finalize steps.

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
        self._dispatcher = dispatcher
        self._tokens = TokenLifecycleService(db)
        self._invitations = AdminInvitationService(db, directory)
        self._profiles = AppUserService(db, directory)

    # -----------------------------------------------------------------------
    # Links
    # -----------------------------------------------------------------------

    async def create_verification_link(
        self,
        email: str,
        verification_type: VerificationType,
        group_path: str | None = None,
        new_value: str | None = None,
    ) -> str:
        """Issue a token and format the frontend verification URL.

        Raises:
            TooManyRequestsError: If (email, type) is inside its cooldown.
        """
        issued = await self._tokens.generate_token(
            email, verification_type, group_path, new_value
        )
        return build_verification_link(issued.value, issued.record.email)

    async def notify(
        self,
        workflow: Workflow,
        recipient_id: str,
        recipient_email: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """Dispatch a notification; never raises.

        Returns:
            True if the dispatcher accepted the event.
        """
        try:
            sent = await self._dispatcher.trigger(
                workflow, recipient_id, recipient_email, payload
            )
        except Exception:
            logger.warning(
                "Notification %s to %s failed",
                workflow.value,
                recipient_id,
                exc_info=True,
            )
            return False
        if not sent:
            logger.warning("Notification %s to %s not sent", workflow.value, recipient_id)
        return sent

    async def request_new_verification_link(self, email: str) -> None:
        """Re-send whichever verification link the email is waiting on.

        Branches are tried in order and the first match wins: staged
        self-registration, lobby invitation, then a directory identity with a
        pending verification. No match is a silent success.

        Raises:
            TooManyRequestsError: If any token for the email is in cooldown.
            IdentityDirectoryError: If the directory lookup fails.
        """
        email = normalize_email(email)
        await self._tokens.check_rate_limit(email)

        pending = await PendingUserRepository.get_by_email(self._db, email)
        if pending is not None:
            link = await self.create_verification_link(
                email, VerificationType.SELF_REG, DEFAULT_ONBOARDING_GROUP.value
            )
            await self.notify(
                Workflow.SELF_REG_VERIFICATION,
                email,
                email,
                {"firstName": pending.first_name, "verificationLink": link},
            )
            logger.info("Re-sent self-registration link to %s", email)
            return

        invitation = await AdminInvitationRepository.get_by_email(self._db, email)
        if invitation is not None:
            group_path = (
                invitation.groups[0]
                if invitation.groups
                else DEFAULT_ONBOARDING_GROUP.value
            )
            link = await self.create_verification_link(
                email, VerificationType.INVITED, group_path
            )
            await self.notify(
                Workflow.RENEW_INVITATION_LINK,
                str(invitation.keycloak_id),
                email,
                {"firstName": invitation.first_name, "verificationLink": link},
            )
            logger.info("Renewed invitation link for %s", email)
            return

        with directory_errors("find_by_email"):
            record = await self._directory.find_by_email(email)
        if record is None:
            return

        live = await self._tokens.find_live_token(email, VerificationType.APP_USER)
        if live is not None and live.new_value:
            link = await self.create_verification_link(
                email, VerificationType.APP_USER, None, live.new_value
            )
            recipient = live.new_value
            payload = {
                "firstName": record.first_name,
                "verificationLink": link,
                "isNewUser": False,
            }
        elif not record.email_verified:
            link = await self.create_verification_link(email, VerificationType.APP_USER)
            recipient = email
            payload = {
                "firstName": record.first_name,
                "verificationLink": link,
                "isNewUser": True,
            }
        else:
            return

        await self.notify(Workflow.APP_USER_VERIFICATION, record.id, recipient, payload)
        logger.info("Re-sent email verification link for identity %s", record.id)

    # -----------------------------------------------------------------------
    # Finalize
    # -----------------------------------------------------------------------

    async def process_verification(self, token: str, email: str) -> VerificationResult:
        """Validate (token, email) and run the finalize step for its type.

        Raises:
            InvalidTokenError: No token matches.
            TokenExpiredError: The token expired (and was deleted).
            PendingRegistrationNotFoundError: SELF_REG staging row is gone.
            IdentityDirectoryError: Directory failure; the token stays live.
            IdentitySyncError: Local write failed after the directory write.
        """
        record = await self._tokens.find_and_validate_token(token, email)
        step = to_finalize_step(record)

        match step:
            case SelfRegFinalize():
                result = await self._finalize_self_reg(step)
            case InvitedFinalize():
                result = await self._finalize_invited(step)
            case AppUserFinalize():
                result = await self._finalize_app_user(step)

        await self._tokens.remove_token(step.token_id)
        logger.info(
            "Finalized %s verification for identity %s", result.type.value, result.user_id
        )
        return result

    def _sync_failed(self, identity_id: str, operation: str) -> IdentitySyncError:
        logger.error(
            "Local write failed after directory write (identity=%s, operation=%s)",
            identity_id,
            operation,
            exc_info=True,
        )
        return IdentitySyncError(identity_id, operation)

    async def _finalize_self_reg(self, step: SelfRegFinalize) -> VerificationResult:
        pending = await PendingUserRepository.get_by_email(self._db, step.email)
        if pending is None:
            raise PendingRegistrationNotFoundError()

        with directory_errors("self_registration"):
            existing = await self._directory.find_by_email(step.email)
            if existing is not None and existing.username == pending.username:
                # A previous attempt created the identity before failing
                user_id = existing.id
            elif existing is not None:
                raise IdentityConflictError(step.email)
            else:
                user_id = await self._directory.create_identity(
                    NewIdentity(
                        username=pending.username,
                        email=pending.email,
                        first_name=pending.first_name,
                        last_name=pending.last_name,
                        password=decrypt_password(pending.encrypted_password),
                        temporary_password=False,
                        email_verified=True,
                    )
                )
            await self._directory.assign_to_group(user_id, step.group_path)
            identity = await self._directory.find_by_id(user_id)
            if identity is None:
                raise IdentityNotFoundError(user_id)
            groups = await self._directory.get_groups_of(user_id)

        try:
            with directory_errors("set_synced_locally"):
                await self._profiles.sync_from_identity(identity, groups)
            await PendingUserRepository.delete_by_email(self._db, step.email)
        except SQLAlchemyError as e:
            raise self._sync_failed(user_id, "self_registration") from e

        return VerificationResult(
            type=VerificationType.SELF_REG,
            group_path=step.group_path,
            user_id=user_id,
            username=identity.username,
            resolved_email=identity.email,
        )

    async def _finalize_invited(self, step: InvitedFinalize) -> VerificationResult:
        with directory_errors("invited_verification"):
            identity = await self._directory.find_by_email(step.email)
            if identity is None:
                raise IdentityNotFoundError(step.email)
            if not identity.email_verified:
                await self._directory.verify_email(step.email)

        try:
            await self._invitations.process_verification_success(
                uuid.UUID(identity.id)
            )
        except SQLAlchemyError as e:
            raise self._sync_failed(identity.id, "invited_verification") from e

        return VerificationResult(
            type=VerificationType.INVITED,
            group_path=step.group_path,
            user_id=identity.id,
            username=identity.username,
            resolved_email=identity.email,
        )

    async def _finalize_app_user(self, step: AppUserFinalize) -> VerificationResult:
        with directory_errors("app_user_verification"):
            identity = await self._directory.find_by_email(step.email)
            if identity is None and step.new_value:
                # A previous attempt already moved the identity to the new email
                identity = await self._directory.find_by_email(step.new_value)
            if identity is None:
                raise IdentityNotFoundError(step.email)

            if step.new_value:
                if identity.email != step.new_value or not identity.email_verified:
                    await self._directory.update_identity(
                        identity.id, email=step.new_value, email_verified=True
                    )
                resolved_email = step.new_value
            else:
                if not identity.email_verified:
                    await self._directory.verify_email(step.email)
                resolved_email = step.email

        try:
            await self._profiles.update_local_email(identity.id, resolved_email)
        except (NotFoundError, SQLAlchemyError) as e:
            raise self._sync_failed(identity.id, "app_user_verification") from e

        return VerificationResult(
            type=VerificationType.APP_USER,
            group_path=None,
            user_id=identity.id,
            username=identity.username,
            resolved_email=resolved_email,
        )
