"""Repository for AdminInvitation (onboarding lobby) operations.

Stage transitions that must not regress are expressed as conditional
UPDATEs guarded by the current-stage predicate, so a duplicate request
matches zero rows instead of rewinding state.
"""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin_invitation import AdminInvitation
from app.models.app_user import AppUser
from app.models.enums import OnboardingStage

# Fields that may be re-synced from the directory via update_cached_fields().
# Stage and login flags move only through the dedicated transition methods.
_SYNCABLE_FIELDS: frozenset[str] = frozenset(
    {
        "email",
        "username",
        "first_name",
        "last_name",
        "groups",
        "is_enabled",
        "is_email_verified",
    }
)

# Whitelisted sort columns for list_pending()
SORTABLE_COLUMNS: dict[str, Any] = {
    "date_created": AdminInvitation.date_created,
    "updated_at": AdminInvitation.updated_at,
    "email": AdminInvitation.email,
    "username": AdminInvitation.username,
    "first_name": AdminInvitation.first_name,
    "last_name": AdminInvitation.last_name,
    "current_stage": AdminInvitation.current_stage,
}


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user search text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AdminInvitationRepository:
    """Stateless repository for AdminInvitation table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        keycloak_id: uuid.UUID,
        email: str,
        username: str,
        first_name: str,
        last_name: str,
        groups: list[str],
        invited_by: uuid.UUID,
        is_enabled: bool = True,
        date_created: datetime | None = None,
    ) -> AdminInvitation:
        """Create a lobby row in AWAITING_VERIFICATION.

        Args:
            db: Async database session.
            keycloak_id: Directory identity id.
            email: Directory email.
            username: Directory username.
            first_name: Given name.
            last_name: Family name.
            groups: Group paths the identity belongs to.
            invited_by: Directory id of the inviting admin.
            is_enabled: Directory enabled flag.
            date_created: Directory creation time; database time if None.

        Returns:
            Created AdminInvitation.

        Raises:
            sqlalchemy.exc.IntegrityError: If keycloak_id is already in the lobby.
        """
        invitation = AdminInvitation(
            keycloak_id=keycloak_id,
            email=email,
            username=username,
            first_name=first_name,
            last_name=last_name,
            groups=list(groups),
            invited_by=invited_by,
            is_enabled=is_enabled,
            is_email_verified=False,
            current_stage=OnboardingStage.AWAITING_VERIFICATION.value,
            is_initial_login=True,
        )
        if date_created is not None:
            invitation.date_created = date_created
        db.add(invitation)
        await db.flush()
        await db.refresh(invitation)
        return invitation

    @staticmethod
    async def get_by_keycloak_id(
        db: AsyncSession, keycloak_id: uuid.UUID
    ) -> AdminInvitation | None:
        """Fetch the lobby row for a directory identity."""
        stmt = select(AdminInvitation).where(AdminInvitation.keycloak_id == keycloak_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> AdminInvitation | None:
        """Fetch the lobby row holding a normalized email."""
        result = await db.execute(
            select(AdminInvitation).where(AdminInvitation.email == email)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_cached_fields(
        db: AsyncSession,
        keycloak_id: uuid.UUID,
        **kwargs: str | bool | list[str],
    ) -> AdminInvitation | None:
        """Re-sync cached directory fields on a lobby row.

        Args:
            db: Async database session.
            keycloak_id: Directory identity id.
            **kwargs: Field names and values to update.

        Returns:
            Updated AdminInvitation, or None if the identity is not in the lobby.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _SYNCABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        invitation = await AdminInvitationRepository.get_by_keycloak_id(db, keycloak_id)
        if invitation is None:
            return None

        for field, value in kwargs.items():
            setattr(invitation, field, value)

        await db.flush()
        await db.refresh(invitation)
        return invitation

    @staticmethod
    async def mark_email_verified_and_advance(
        db: AsyncSession, keycloak_id: uuid.UUID
    ) -> int:
        """AWAITING_VERIFICATION → AWAITING_PASSWORD_RESET, conditionally.

        Returns:
            Number of rows advanced (0 when already past verification or
            not in the lobby).
        """
        stmt = (
            update(AdminInvitation)
            .where(
                AdminInvitation.keycloak_id == keycloak_id,
                AdminInvitation.current_stage
                == OnboardingStage.AWAITING_VERIFICATION.value,
            )
            .values(
                current_stage=OnboardingStage.AWAITING_PASSWORD_RESET.value,
                is_email_verified=True,
                updated_at=func.now(),
            )
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def invalidate_one_time_password(
        db: AsyncSession, keycloak_id: uuid.UUID
    ) -> int:
        """Clear is_initial_login if still set.

        Returns:
            Number of rows changed.
        """
        stmt = (
            update(AdminInvitation)
            .where(
                AdminInvitation.keycloak_id == keycloak_id,
                AdminInvitation.is_initial_login.is_(True),
            )
            .values(is_initial_login=False, updated_at=func.now())
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def update_stage(
        db: AsyncSession,
        keycloak_id: uuid.UUID,
        stage: OnboardingStage,
        *,
        is_initial_login: bool | None = None,
    ) -> int:
        """Set the stage unconditionally.

        Args:
            db: Async database session.
            keycloak_id: Directory identity id.
            stage: Target stage.
            is_initial_login: Also set the one-time-password flag when given.

        Returns:
            Number of rows changed (0 when not in the lobby).
        """
        values: dict[str, Any] = {
            "current_stage": stage.value,
            "updated_at": func.now(),
        }
        if is_initial_login is not None:
            values["is_initial_login"] = is_initial_login

        stmt = (
            update(AdminInvitation)
            .where(AdminInvitation.keycloak_id == keycloak_id)
            .values(**values)
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_by_keycloak_id(db: AsyncSession, keycloak_id: uuid.UUID) -> int:
        """Remove a lobby row. Idempotent.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(AdminInvitation).where(AdminInvitation.keycloak_id == keycloak_id)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        *,
        offset: int,
        limit: int,
        sort_by: str = "date_created",
        ascending: bool = False,
        groups: list[str] | None = None,
        invited_by: uuid.UUID | None = None,
        search: str | None = None,
        stage: OnboardingStage | None = None,
    ) -> tuple[list[tuple[AdminInvitation, AppUser | None]], int]:
        """List lobby rows with their inviter's local profile.

        Args:
            db: Async database session.
            offset: Number of rows to skip.
            limit: Maximum rows to return.
            sort_by: Key of SORTABLE_COLUMNS.
            ascending: Sort direction.
            groups: Array-overlap filter; None or empty disables it.
            invited_by: Restrict to one inviting admin.
            search: Case-insensitive substring over email, username and names.
            stage: Restrict to one onboarding stage.

        Returns:
            Tuple of ([(invitation, inviter profile or None)], total count).

        Raises:
            KeyError: If sort_by is not a whitelisted column.
        """
        sort_column = SORTABLE_COLUMNS[sort_by]

        conditions: list[ColumnElement[bool]] = []
        if groups:
            conditions.append(AdminInvitation.groups.overlap(groups))
        if invited_by is not None:
            conditions.append(AdminInvitation.invited_by == invited_by)
        if stage is not None:
            conditions.append(AdminInvitation.current_stage == stage.value)
        if search:
            pattern = f"%{_escape_like(search.strip())}%"
            conditions.append(
                or_(
                    AdminInvitation.email.ilike(pattern, escape="\\"),
                    AdminInvitation.username.ilike(pattern, escape="\\"),
                    AdminInvitation.first_name.ilike(pattern, escape="\\"),
                    AdminInvitation.last_name.ilike(pattern, escape="\\"),
                )
            )

        count_stmt = select(func.count()).select_from(AdminInvitation).where(*conditions)
        total_result = await db.execute(count_stmt)
        total = total_result.scalar_one()

        order = sort_column.asc() if ascending else sort_column.desc()
        data_stmt = (
            select(AdminInvitation, AppUser)
            .outerjoin(AppUser, AppUser.keycloak_id == AdminInvitation.invited_by)
            .where(*conditions)
            .order_by(order, AdminInvitation.id)
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(data_stmt)
        rows = [(row[0], row[1]) for row in result.all()]

        return rows, total
