"""Repository for VerificationToken CRUD operations.

Link tokens are stored as SHA-256 hashes and looked up by the (token, email)
pair, never by token alone.
"""

from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import VerificationType
from app.models.verification_token import VerificationToken


class VerificationTokenRepository:
    """Stateless repository for VerificationToken table operations.

    All methods are static with no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        token_hash: str,
        email: str,
        verification_type: VerificationType,
        expiry_date: datetime,
        group_path: str | None = None,
        new_value: str | None = None,
    ) -> VerificationToken:
        """Store a new verification token.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain token.
            email: Anchor email.
            verification_type: Finalize path the token drives.
            expiry_date: Token expiry timestamp.
            group_path: Onboarding group target.
            new_value: Proposed replacement value (e.g. new email).

        Returns:
            Created VerificationToken with id and created_at populated.
        """
        vt = VerificationToken(
            token=token_hash,
            email=email,
            type=verification_type.value,
            expiry_date=expiry_date,
            group_path=group_path,
            new_value=new_value,
        )
        db.add(vt)
        await db.flush()
        await db.refresh(vt)
        return vt

    @staticmethod
    async def get_by_token_and_email(
        db: AsyncSession,
        *,
        token_hash: str,
        email: str,
    ) -> VerificationToken | None:
        """Look up a token by its hash and bound email.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the presented token.
            email: Normalized email presented alongside it.

        Returns:
            VerificationToken if found, None otherwise.
        """
        stmt = select(VerificationToken).where(
            VerificationToken.token == token_hash,
            VerificationToken.email == email,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_for_email(
        db: AsyncSession,
        email: str,
        verification_type: VerificationType | None = None,
    ) -> VerificationToken | None:
        """Most recently issued token for an email.

        Args:
            db: Async database session.
            email: Normalized email.
            verification_type: Restrict to one type; None means any type.

        Returns:
            Newest VerificationToken by created_at, or None.
        """
        stmt = select(VerificationToken).where(VerificationToken.email == email)
        if verification_type is not None:
            stmt = stmt.where(VerificationToken.type == verification_type.value)
        stmt = stmt.order_by(
            VerificationToken.created_at.desc(), VerificationToken.id.desc()
        ).limit(1)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def seconds_since_latest(
        db: AsyncSession,
        email: str,
        verification_type: VerificationType | None = None,
    ) -> float | None:
        """Age of the newest token for an email, measured by the database clock.

        Args:
            db: Async database session.
            email: Normalized email.
            verification_type: Restrict to one type; None means any type.

        Returns:
            Seconds since the newest token was issued, or None if there is none.
        """
        stmt = select(
            func.extract("epoch", func.now() - func.max(VerificationToken.created_at))
        ).where(VerificationToken.email == email)
        if verification_type is not None:
            stmt = stmt.where(VerificationToken.type == verification_type.value)
        age = (await db.execute(stmt)).scalar_one()
        return None if age is None else float(age)

    @staticmethod
    async def delete_by_id(db: AsyncSession, token_id: int) -> int:
        """Delete a single token. Idempotent.

        Returns:
            Number of deleted rows (0 or 1).
        """
        stmt = delete(VerificationToken).where(VerificationToken.id == token_id)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_for_email_and_type(
        db: AsyncSession,
        *,
        email: str,
        verification_type: VerificationType,
    ) -> int:
        """Delete every token for an (email, type) pair (supersede on reissue).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(
            VerificationToken.email == email,
            VerificationToken.type == verification_type.value,
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_all_for_email(db: AsyncSession, email: str) -> int:
        """Delete all tokens for an email, any type.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(VerificationToken.email == email)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_expired(db: AsyncSession) -> int:
        """Delete all expired tokens (periodic cleanup).

        Args:
            db: Async database session.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(
            VerificationToken.expiry_date < datetime.now(UTC),
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
