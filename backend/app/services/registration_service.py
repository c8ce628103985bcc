"""Self-registration intake.

A registration is staged locally (PendingUser) until the emailed link is
clicked; only then does the identity exist in the directory. The password is
encrypted reversibly because it must be replayed into the directory at
promotion time.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.credentials import (
    encrypt_password,
    validate_password_confirmation,
    validate_password_policy,
)
from app.core.errors import ConflictError, directory_errors
from app.core.groups import DEFAULT_ONBOARDING_GROUP
from app.models.enums import VerificationType
from app.providers.identity.base import IdentityDirectory
from app.providers.notifications.base import NotificationDispatcher, Workflow
from app.repositories.pending_user_repository import PendingUserRepository
from app.services.onboarding_orchestrator import OnboardingOrchestrator
from app.services.token_lifecycle import normalize_email

logger = logging.getLogger(__name__)


class RegistrationService:
    """Stages self-registrations and sends the verification link.

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
        self._orchestrator = OnboardingOrchestrator(db, directory, dispatcher)

    async def register(
        self,
        *,
        username: str,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        confirm_password: str,
    ) -> str:
        """Stage a registration and email its verification link.

        Returns:
            The normalized email the link was sent to.

        Raises:
            ValidationError: PASSWORD_MISMATCH or PASSWORD_POLICY_VIOLATION.
            ConflictError: USER_ALREADY_EXISTS if the username or email is
                held by a directory identity or another staged registration.
            IdentityDirectoryError: If the uniqueness lookup fails.
        """
        validate_password_confirmation(password, confirm_password)
        validate_password_policy(password)

        email = normalize_email(email)
        username = username.strip().lower()

        with directory_errors("register"):
            taken = (
                await self._directory.find_by_username(username) is not None
                or await self._directory.find_by_email(email) is not None
            )
        if taken or await PendingUserRepository.exists_by_username_or_email(
            self._db, username=username, email=email
        ):
            raise ConflictError(
                code="USER_ALREADY_EXISTS",
                message="An account with this username or email already exists",
            )

        await PendingUserRepository.create(
            self._db,
            username=username,
            email=email,
            encrypted_password=encrypt_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
        )

        link = await self._orchestrator.create_verification_link(
            email, VerificationType.SELF_REG, DEFAULT_ONBOARDING_GROUP.value
        )
        await self._orchestrator.notify(
            Workflow.SELF_REG_VERIFICATION,
            email,
            email,
            {"firstName": first_name.strip(), "verificationLink": link},
        )
        logger.info("Staged self-registration for %s", email)
        return email
