"""One-time code issuance and verification.

Codes are 6 digits, drawn from a CSPRNG, bcrypt-hashed at rest, and
single-use. A mismatched code leaves the credential in place so the user can
retry until natural expiry; there is no attempt-count lockout.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import hash_otp_code, new_otp_code, otp_code_matches
from app.core.errors import InvalidTokenError, TokenExpiredError, TooManyRequestsError
from app.models.enums import OtpPurpose
from app.repositories.otp_credential_repository import OtpCredentialRepository
from app.services.token_lifecycle import normalize_email

logger = logging.getLogger(__name__)


class OtpWorker:
    """Issues and verifies one-time codes.

    Args:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def generate_and_save_otp(self, email: str, purpose: OtpPurpose) -> str:
        """Issue a new code for (email, purpose).

        Args:
            email: Recipient email (normalized here).
            purpose: Flow the code authorizes.

        Returns:
            The raw 6-digit code, for out-of-band delivery only.

        Raises:
            TooManyRequestsError: If a live code was issued within the cooldown.
        """
        email = normalize_email(email)
        now = datetime.now(UTC)

        existing = await OtpCredentialRepository.get_for_email_and_purpose(
            self._db, email=email, purpose=purpose
        )
        if existing is not None and not existing.is_expired(now):
            cooldown = settings.otp_cooldown_seconds
            elapsed = await OtpCredentialRepository.age_seconds(self._db, existing.id)
            if elapsed < cooldown:
                remaining = int(cooldown - elapsed) + 1
                raise TooManyRequestsError(retry_after_seconds=remaining)

        await OtpCredentialRepository.delete_for_email_and_purpose(
            self._db, email=email, purpose=purpose
        )

        code = new_otp_code()
        await OtpCredentialRepository.create(
            self._db,
            email=email,
            code_hash=hash_otp_code(code),
            purpose=purpose,
            expiry_date=now + timedelta(minutes=settings.otp_ttl_minutes),
        )
        logger.info("Issued %s code for %s", purpose.value, email)
        return code

    async def verify_otp(self, email: str, raw_code: str, purpose: OtpPurpose) -> None:
        """Consume a code if it matches.

        Raises:
            InvalidTokenError: No credential, or the code does not match
                (the credential is kept).
            TokenExpiredError: The credential had expired; it is deleted
                (and committed) before raising.
        """
        email = normalize_email(email)
        otp = await OtpCredentialRepository.get_for_email_and_purpose(
            self._db, email=email, purpose=purpose
        )
        if otp is None:
            raise InvalidTokenError("Invalid or expired code")

        if otp.is_expired():
            await OtpCredentialRepository.delete_by_id(self._db, otp.id)
            # Persist the delete: the request session rolls back on error
            await self._db.commit()
            raise TokenExpiredError("Code has expired. Please request a new one.")

        if not otp_code_matches(raw_code.strip(), otp.code_hash):
            raise InvalidTokenError("Invalid or expired code")

        await OtpCredentialRepository.delete_by_id(self._db, otp.id)
