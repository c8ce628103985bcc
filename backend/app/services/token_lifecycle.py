"""Verification token lifecycle: issue, rate-limit, validate, retire.

Tokens are single-use proofs bound to (email, type). Validation is
non-destructive: the caller retires the token only after its finalize step
succeeded, so a failed finalize can be retried with the same link.

Invariants:
- At most one live token per (email, type): issuance deletes before insert.
- Lookup is by (token, email), never by token alone.
- An expired token is deleted when validation detects it.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import hash_token, new_verification_token
from app.core.errors import InvalidTokenError, TokenExpiredError, TooManyRequestsError
from app.models.enums import VerificationType
from app.models.verification_token import VerificationToken
from app.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Canonical form used for every email comparison and storage."""
    return email.strip().lower()


def token_ttl(verification_type: VerificationType) -> timedelta:
    """Lifetime of a freshly issued token of the given type."""
    hours = {
        VerificationType.SELF_REG: settings.self_reg_token_ttl_hours,
        VerificationType.INVITED: settings.invited_token_ttl_hours,
        VerificationType.APP_USER: settings.app_user_token_ttl_hours,
    }[verification_type]
    return timedelta(hours=hours)


@dataclass(frozen=True)
class IssuedToken:
    """A persisted token plus the plain value that goes into the link.

    Attributes:
        record: Persisted row (holds only the token hash).
        value: Plain token. Never stored; returned once for delivery.
    """

    record: VerificationToken
    value: str


class TokenLifecycleService:
    """Issues, validates, and retires verification tokens.

    Args:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # -----------------------------------------------------------------------
    # Rate limiting
    # -----------------------------------------------------------------------

    def _enforce_cooldown(self, elapsed_seconds: float | None) -> None:
        if elapsed_seconds is None:
            return
        cooldown = settings.verification_cooldown_seconds
        if elapsed_seconds < cooldown:
            remaining = int(cooldown - elapsed_seconds) + 1
            raise TooManyRequestsError(retry_after_seconds=remaining)

    async def check_rate_limit(self, email: str) -> None:
        """Reject if any token for the email was issued within the cooldown.

        Best-effort: two concurrent callers may both pass. Delete-before-insert
        in generate_token still leaves a single live token per (email, type).

        Raises:
            TooManyRequestsError: With the seconds left in the window.
        """
        elapsed = await VerificationTokenRepository.seconds_since_latest(
            self._db, normalize_email(email)
        )
        self._enforce_cooldown(elapsed)

    # -----------------------------------------------------------------------
    # Issuance
    # -----------------------------------------------------------------------

    async def generate_token(
        self,
        email: str,
        verification_type: VerificationType,
        group_path: str | None = None,
        new_value: str | None = None,
    ) -> IssuedToken:
        """Issue a token, superseding any previous one for (email, type).

        Args:
            email: Anchor email (normalized here).
            verification_type: Finalize path the token drives.
            group_path: Onboarding group target.
            new_value: Proposed replacement value (e.g. new email).

        Returns:
            IssuedToken with the persisted row and the plain value.

        Raises:
            TooManyRequestsError: If a token for (email, type) was issued
                within the cooldown window.
        """
        email = normalize_email(email)
        elapsed = await VerificationTokenRepository.seconds_since_latest(
            self._db, email, verification_type
        )
        self._enforce_cooldown(elapsed)

        superseded = await VerificationTokenRepository.delete_for_email_and_type(
            self._db, email=email, verification_type=verification_type
        )
        if superseded:
            logger.debug(
                "Superseded %d %s token(s) for %s",
                superseded,
                verification_type.value,
                email,
            )

        plain, token_hash = new_verification_token()
        record = await VerificationTokenRepository.create(
            self._db,
            token_hash=token_hash,
            email=email,
            verification_type=verification_type,
            expiry_date=datetime.now(UTC) + token_ttl(verification_type),
            group_path=group_path,
            new_value=normalize_email(new_value) if new_value else None,
        )
        return IssuedToken(record=record, value=plain)

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    async def find_and_validate_token(self, token: str, email: str) -> VerificationToken:
        """Return the live token for (token, email) without consuming it.

        Raises:
            InvalidTokenError: No token matches the pair.
            TokenExpiredError: The token matched but had expired. The row is
                deleted (and committed) before raising.
        """
        record = await VerificationTokenRepository.get_by_token_and_email(
            self._db, token_hash=hash_token(token), email=normalize_email(email)
        )
        if record is None:
            raise InvalidTokenError()

        if record.is_expired():
            await VerificationTokenRepository.delete_by_id(self._db, record.id)
            # Persist the delete: the request session rolls back on error
            await self._db.commit()
            raise TokenExpiredError()

        return record

    async def find_live_token(
        self, email: str, verification_type: VerificationType
    ) -> VerificationToken | None:
        """Newest unexpired token for (email, type), or None."""
        latest = await VerificationTokenRepository.get_latest_for_email(
            self._db, normalize_email(email), verification_type
        )
        if latest is None or latest.is_expired():
            return None
        return latest

    # -----------------------------------------------------------------------
    # Retirement
    # -----------------------------------------------------------------------

    async def remove_token(self, token_id: int) -> None:
        """Retire one token. Idempotent."""
        await VerificationTokenRepository.delete_by_id(self._db, token_id)

    async def remove_tokens_for_email(self, email: str) -> int:
        """Retire every token bound to an email. Idempotent.

        Returns:
            Number of tokens removed.
        """
        return await VerificationTokenRepository.delete_all_for_email(
            self._db, normalize_email(email)
        )
