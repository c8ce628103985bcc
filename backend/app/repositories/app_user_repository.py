"""Repository for AppUser local profiles."""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.app_user import AppUser


class AppUserRepository:
    """Stateless repository for AppUser table operations."""

    @staticmethod
    async def get_by_keycloak_id(
        db: AsyncSession, keycloak_id: uuid.UUID
    ) -> AppUser | None:
        """Fetch a profile by directory identity id.

        Args:
            db: Async database session.
            keycloak_id: Directory identity id.

        Returns:
            AppUser if found, None otherwise.
        """
        result = await db.execute(
            select(AppUser).where(AppUser.keycloak_id == keycloak_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_from_directory(
        db: AsyncSession,
        *,
        keycloak_id: uuid.UUID,
        email: str,
        username: str,
        first_name: str | None,
        last_name: str | None,
        groups: list[str],
        is_enabled: bool,
        synced_at: datetime,
    ) -> tuple[AppUser, bool]:
        """Create or refresh a profile from directory-authoritative fields.

        Locally owned fields (display_name, date_joined) are left untouched
        on an existing profile.

        Returns:
            The created or updated AppUser, and whether it was created.
        """
        user = await AppUserRepository.get_by_keycloak_id(db, keycloak_id)
        created = user is None
        if user is None:
            user = AppUser(keycloak_id=keycloak_id)
            db.add(user)

        user.email = email
        user.username = username
        user.first_name = first_name
        user.last_name = last_name
        user.groups = list(groups)
        user.is_enabled = is_enabled
        user.last_synced_at = synced_at

        await db.flush()
        await db.refresh(user)
        return user, created

    @staticmethod
    async def update_email(db: AsyncSession, user: AppUser, email: str) -> AppUser:
        """Write a new email onto an existing profile."""
        user.email = email
        await db.flush()
        await db.refresh(user)
        return user
