"""Forgot-password flow backed by one-time codes."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.credentials import validate_password_confirmation, validate_password_policy
from app.core.errors import InvalidTokenError, directory_errors
from app.models.enums import OtpPurpose
from app.providers.identity.base import IdentityDirectory
from app.providers.notifications.base import NotificationDispatcher, Workflow
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.services.admin_invitation_service import AdminInvitationService
from app.services.onboarding_orchestrator import OnboardingOrchestrator
from app.services.otp_worker import OtpWorker
from app.services.token_lifecycle import normalize_email

logger = logging.getLogger(__name__)


class PasswordRecoveryService:
    """Issues reset codes and applies password resets.

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
        self._otp = OtpWorker(db)
        self._invitations = AdminInvitationService(db, directory)
        self._orchestrator = OnboardingOrchestrator(db, directory, dispatcher)

    async def initiate(self, email: str) -> None:
        """Email a reset code if the directory knows the address.

        Unknown emails return silently so the response does not reveal
        whether an account exists.

        Raises:
            TooManyRequestsError: If a code was issued within the cooldown.
        """
        email = normalize_email(email)
        with directory_errors("forgot_password"):
            record = await self._directory.find_by_email(email)
        if record is None:
            logger.info("Password reset requested for unknown email")
            return

        code = await self._otp.generate_and_save_otp(email, OtpPurpose.FORGOT_PASSWORD)
        await self._orchestrator.notify(
            Workflow.FORGOT_PASSWORD_OTP, record.id, email, {"otp_code": code}
        )

    async def complete(
        self,
        *,
        email: str,
        code: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        """Consume the code and set the new password.

        Raises:
            ValidationError: PASSWORD_MISMATCH or PASSWORD_POLICY_VIOLATION.
            InvalidTokenError: Wrong or missing code.
            TokenExpiredError: Code expired.
            IdentityDirectoryError: Directory failure.
        """
        validate_password_confirmation(new_password, confirm_password)
        validate_password_policy(new_password)

        email = normalize_email(email)
        await self._otp.verify_otp(email, code, OtpPurpose.FORGOT_PASSWORD)

        with directory_errors("reset_password"):
            record = await self._directory.find_by_email(email)
            if record is None:
                raise InvalidTokenError()
            await self._directory.reset_password(
                record.id, new_password, temporary=False
            )

        keycloak_id = uuid.UUID(record.id)
        if await AdminInvitationRepository.get_by_keycloak_id(self._db, keycloak_id):
            await self._invitations.process_password_reset_success(keycloak_id)
        logger.info("Password reset completed for identity %s", record.id)
