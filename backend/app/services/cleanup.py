"""Expiry and orphan sweep for verification state.

Three predicate-scoped bulk deletes, run daily by the scheduler:
- OTP credentials past their expiry
- Verification tokens past their expiry
- Pending registrations with no token left for their email

WHY ORDER MATTERS:
- Tokens are swept before pending users, so a registration whose link
  expired loses its token first and is reaped as an orphan in the same pass.

Each delete only matches rows whose expiry has already passed at sweep
time, so a live token mid-finalize is never touched.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError
from app.repositories.otp_credential_repository import OtpCredentialRepository
from app.repositories.pending_user_repository import PendingUserRepository
from app.repositories.verification_token_repository import (
    VerificationTokenRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupSweepResult:
    """Result of one sweep.

    Attributes:
        expired_otps: Expired OTP credentials deleted.
        expired_tokens: Expired verification tokens deleted.
        orphaned_pending_users: Pending registrations without a token deleted.
    """

    expired_otps: int
    expired_tokens: int
    orphaned_pending_users: int


class CleanupError(APIError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def run_cleanup_sweep(db: AsyncSession) -> CleanupSweepResult:
    """Run every sweep step in one transaction.

    Args:
        db: Database session. The caller commits.

    Returns:
        CleanupSweepResult with deletion counts.

    Raises:
        CleanupError: If a database operation fails.
    """
    try:
        expired_otps = await OtpCredentialRepository.delete_expired(db)
        expired_tokens = await VerificationTokenRepository.delete_expired(db)
        orphaned = await PendingUserRepository.delete_orphaned(db)
    except SQLAlchemyError as exc:
        logger.error("Cleanup sweep failed: %s", exc)
        raise CleanupError("Cleanup sweep failed") from exc

    result = CleanupSweepResult(
        expired_otps=expired_otps,
        expired_tokens=expired_tokens,
        orphaned_pending_users=orphaned,
    )
    logger.info(
        "Cleanup sweep removed %d OTPs, %d tokens, %d pending users",
        result.expired_otps,
        result.expired_tokens,
        result.orphaned_pending_users,
    )
    return result
