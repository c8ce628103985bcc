"""Repository for PendingUser staging rows."""

from typing import Any, cast

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.pending_user import PendingUser
from app.models.verification_token import VerificationToken


class PendingUserRepository:
    """Stateless repository for PendingUser table operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        username: str,
        email: str,
        encrypted_password: str,
        first_name: str,
        last_name: str,
    ) -> PendingUser:
        """Stage a self-registration.

        Raises:
            sqlalchemy.exc.IntegrityError: If username or email is already staged.
        """
        pending = PendingUser(
            username=username,
            email=email,
            encrypted_password=encrypted_password,
            first_name=first_name,
            last_name=last_name,
        )
        db.add(pending)
        await db.flush()
        await db.refresh(pending)
        return pending

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> PendingUser | None:
        """Fetch the staged registration for a normalized email."""
        result = await db.execute(select(PendingUser).where(PendingUser.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def exists_by_username_or_email(
        db: AsyncSession,
        *,
        username: str,
        email: str,
    ) -> bool:
        """Whether either value is already held by a staged registration."""
        stmt = select(
            exists().where(
                or_(PendingUser.username == username, PendingUser.email == email)
            )
        )
        result = await db.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def delete_by_email(db: AsyncSession, email: str) -> int:
        """Delete the staged registration for an email. Idempotent.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(PendingUser).where(PendingUser.email == email)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_orphaned(db: AsyncSession) -> int:
        """Delete staged registrations with no verification token left.

        Returns:
            Number of deleted rows.
        """
        has_token = exists().where(VerificationToken.email == PendingUser.email)
        stmt = delete(PendingUser).where(~has_token)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
