"""Repository for OtpCredential CRUD operations."""

from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OtpPurpose
from app.models.otp_credential import OtpCredential


class OtpCredentialRepository:
    """Stateless repository for OtpCredential table operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        code_hash: str,
        purpose: OtpPurpose,
        expiry_date: datetime,
    ) -> OtpCredential:
        """Store a new hashed one-time code.

        Returns:
            Created OtpCredential with id and created_at populated.
        """
        otp = OtpCredential(
            email=email,
            code_hash=code_hash,
            purpose=purpose.value,
            expiry_date=expiry_date,
        )
        db.add(otp)
        await db.flush()
        await db.refresh(otp)
        return otp

    @staticmethod
    async def get_for_email_and_purpose(
        db: AsyncSession,
        *,
        email: str,
        purpose: OtpPurpose,
    ) -> OtpCredential | None:
        """Newest credential for (email, purpose), or None."""
        stmt = (
            select(OtpCredential)
            .where(
                OtpCredential.email == email,
                OtpCredential.purpose == purpose.value,
            )
            .order_by(OtpCredential.created_at.desc(), OtpCredential.id.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def age_seconds(db: AsyncSession, otp_id: int) -> float:
        """Seconds since a credential was issued, by the database clock."""
        stmt = select(
            func.extract("epoch", func.now() - OtpCredential.created_at)
        ).where(OtpCredential.id == otp_id)
        return float((await db.execute(stmt)).scalar_one())

    @staticmethod
    async def delete_by_id(db: AsyncSession, otp_id: int) -> None:
        """Delete a single credential. Idempotent."""
        await db.execute(delete(OtpCredential).where(OtpCredential.id == otp_id))

    @staticmethod
    async def delete_for_email_and_purpose(
        db: AsyncSession,
        *,
        email: str,
        purpose: OtpPurpose,
    ) -> None:
        """Delete every credential for (email, purpose)."""
        stmt = delete(OtpCredential).where(
            OtpCredential.email == email,
            OtpCredential.purpose == purpose.value,
        )
        await db.execute(stmt)

    @staticmethod
    async def delete_expired(db: AsyncSession) -> int:
        """Delete all expired credentials (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(OtpCredential).where(
            OtpCredential.expiry_date < datetime.now(UTC),
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
