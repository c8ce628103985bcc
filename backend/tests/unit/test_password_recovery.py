"""Tests for PasswordRecoveryService (forgot password)."""

import uuid

import pytest

from app.core.errors import InvalidTokenError, TooManyRequestsError, ValidationError
from app.models.enums import OnboardingStage
from app.providers.notifications.base import Workflow
from app.repositories.admin_invitation_repository import AdminInvitationRepository
from app.services.admin_invitation_service import AdminInvitationService
from app.services.password_recovery import PasswordRecoveryService

_EMAIL = "ada@example.com"
_NEW_PASSWORD = "Brand-New-Pass1"  # nosec B105


@pytest.fixture
def service(db_session, mock_directory, mock_dispatcher):
    return PasswordRecoveryService(db_session, mock_directory, mock_dispatcher)


class TestInitiate:
    """Code issuance."""

    @pytest.mark.asyncio
    async def test_sends_code_to_known_email(
        self, mock_directory, mock_dispatcher, service
    ):
        """Known identities receive a six-digit code."""
        record = mock_directory.add_user(email=_EMAIL)

        await service.initiate("ADA@example.com")

        sent = mock_dispatcher.last(Workflow.FORGOT_PASSWORD_OTP)
        assert sent["recipient_id"] == record.id
        assert len(sent["payload"]["otp_code"]) == 6

    @pytest.mark.asyncio
    async def test_unknown_email_is_silent(self, mock_dispatcher, service):
        """No account, no email, no error."""
        await service.initiate("nobody@example.com")

        assert mock_dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_second_request_in_cooldown(self, mock_directory, service):
        """A new code cannot be requested immediately."""
        mock_directory.add_user(email=_EMAIL)
        await service.initiate(_EMAIL)

        with pytest.raises(TooManyRequestsError):
            await service.initiate(_EMAIL)


class TestComplete:
    """Code consumption and password reset."""

    async def _code(self, service, mock_dispatcher) -> str:
        await service.initiate(_EMAIL)
        return mock_dispatcher.last(Workflow.FORGOT_PASSWORD_OTP)["payload"]["otp_code"]

    @pytest.mark.asyncio
    async def test_resets_password(self, mock_directory, mock_dispatcher, service):
        """The directory receives a permanent password."""
        record = mock_directory.add_user(email=_EMAIL)
        code = await self._code(service, mock_dispatcher)

        await service.complete(
            email=_EMAIL,
            code=code,
            new_password=_NEW_PASSWORD,
            confirm_password=_NEW_PASSWORD,
        )

        assert mock_directory.passwords[record.id] == (_NEW_PASSWORD, False)

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, mock_directory, mock_dispatcher, service):
        """A consumed code is rejected."""
        mock_directory.add_user(email=_EMAIL)
        code = await self._code(service, mock_dispatcher)
        kwargs = {
            "email": _EMAIL,
            "code": code,
            "new_password": _NEW_PASSWORD,
            "confirm_password": _NEW_PASSWORD,
        }
        await service.complete(**kwargs)

        with pytest.raises(InvalidTokenError):
            await service.complete(**kwargs)

    @pytest.mark.asyncio
    async def test_wrong_code(self, mock_directory, mock_dispatcher, service):
        """A mismatched code leaves the password untouched."""
        record = mock_directory.add_user(email=_EMAIL)
        code = await self._code(service, mock_dispatcher)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidTokenError):
            await service.complete(
                email=_EMAIL,
                code=wrong,
                new_password=_NEW_PASSWORD,
                confirm_password=_NEW_PASSWORD,
            )
        assert record.id not in mock_directory.passwords

    @pytest.mark.asyncio
    async def test_password_rules_checked_first(self, service):
        """Mismatch is reported before the code is looked at."""
        with pytest.raises(ValidationError) as exc_info:
            await service.complete(
                email=_EMAIL,
                code="123456",
                new_password=_NEW_PASSWORD,
                confirm_password="different",
            )
        assert exc_info.value.code == "PASSWORD_MISMATCH"

    @pytest.mark.asyncio
    async def test_advances_invited_user(
        self, db_session, mock_directory, mock_dispatcher, service
    ):
        """An invited identity moves to profile completion."""
        record = mock_directory.add_user(email=_EMAIL, synced_locally=False)
        await AdminInvitationService(db_session, mock_directory).create_invitation(
            record.id, uuid.UUID(int=1)
        )
        code = await self._code(service, mock_dispatcher)

        await service.complete(
            email=_EMAIL,
            code=code,
            new_password=_NEW_PASSWORD,
            confirm_password=_NEW_PASSWORD,
        )

        row = await AdminInvitationRepository.get_by_keycloak_id(
            db_session, uuid.UUID(record.id)
        )
        await db_session.refresh(row)
        assert row.current_stage == OnboardingStage.AWAITING_PROFILE_COMPLETION.value
        assert row.is_initial_login is False
